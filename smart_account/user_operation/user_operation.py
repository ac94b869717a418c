import copy
import re
from dataclasses import dataclass
from typing import Any

from eth_abi import decode, encode
from eth_utils import keccak, to_checksum_address

from smart_account.exceptions import InvalidFieldError
from smart_account.typing import Address, UserOperationHash

USER_OPERATION_FIELDS = [
    "sender",
    "nonce",
    "initCode",
    "callData",
    "callGasLimit",
    "verificationGasLimit",
    "preVerificationGas",
    "maxFeePerGas",
    "maxPriorityFeePerGas",
    "paymasterAndData",
    "signature",
]


@dataclass()
class UserOperation:
    """EntryPoint v0.6 user operation.

    Gas and nonce fields left as None are "not populated yet", which is
    different from an explicit zero. Byte fields default to empty.
    """
    sender_address: Address | None = None
    nonce: int | None = None
    init_code: bytes = b""
    call_data: bytes = b""
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None
    paymaster_and_data: bytes = b""
    signature: bytes = b""

    @classmethod
    def from_json(cls, json_request_dict: dict[str, Any]) -> "UserOperation":
        cls.verify_fields_exist(json_request_dict)

        return cls(
            sender_address=verify_and_get_address(
                "sender", json_request_dict["sender"]),
            nonce=verify_and_get_uint(
                "nonce", json_request_dict["nonce"]),
            init_code=verify_and_get_bytes(
                "initCode", json_request_dict["initCode"]),
            call_data=verify_and_get_bytes(
                "callData", json_request_dict["callData"]),
            call_gas_limit=verify_and_get_uint(
                "callGasLimit", json_request_dict["callGasLimit"]),
            verification_gas_limit=verify_and_get_uint(
                "verificationGasLimit",
                json_request_dict["verificationGasLimit"]),
            pre_verification_gas=verify_and_get_uint(
                "preVerificationGas",
                json_request_dict["preVerificationGas"]),
            max_fee_per_gas=verify_and_get_uint(
                "maxFeePerGas", json_request_dict["maxFeePerGas"]),
            max_priority_fee_per_gas=verify_and_get_uint(
                "maxPriorityFeePerGas",
                json_request_dict["maxPriorityFeePerGas"]),
            paymaster_and_data=verify_and_get_bytes(
                "paymasterAndData", json_request_dict["paymasterAndData"]),
            signature=verify_and_get_bytes(
                "signature", json_request_dict["signature"]),
        )

    @staticmethod
    def verify_fields_exist(json_request_dict: dict[str, Any]) -> None:
        for field_name in USER_OPERATION_FIELDS:
            if field_name not in json_request_dict:
                raise InvalidFieldError(
                    f"UserOperation missing {field_name} field",
                    field_name,
                )

    def get_user_operation_json(self) -> dict[str, str | None]:
        return {
            "sender": self.sender_address,
            "nonce": _to_hex_or_none(self.nonce),
            "initCode": "0x" + self.init_code.hex(),
            "callData": "0x" + self.call_data.hex(),
            "callGasLimit": _to_hex_or_none(self.call_gas_limit),
            "verificationGasLimit": _to_hex_or_none(
                self.verification_gas_limit),
            "preVerificationGas": _to_hex_or_none(self.pre_verification_gas),
            "maxFeePerGas": _to_hex_or_none(self.max_fee_per_gas),
            "maxPriorityFeePerGas": _to_hex_or_none(
                self.max_priority_fee_per_gas),
            "paymasterAndData": "0x" + self.paymaster_and_data.hex(),
            "signature": "0x" + self.signature.hex(),
        }

    def to_list(self) -> list[Address | int | bytes]:
        """Positional form used by the ABI encoders. Unset numbers are 0."""
        return [
            self.sender_address,
            self.nonce or 0,
            self.init_code,
            self.call_data,
            self.call_gas_limit or 0,
            self.verification_gas_limit or 0,
            self.pre_verification_gas or 0,
            self.max_fee_per_gas or 0,
            self.max_priority_fee_per_gas or 0,
            self.paymaster_and_data,
            self.signature,
        ]

    def copy(self) -> "UserOperation":
        return copy.deepcopy(self)

    def get_paymaster_address(self) -> Address | None:
        if len(self.paymaster_and_data) >= 20:
            return to_checksum_address(self.paymaster_and_data[:20])
        return None

    def get_factory_address(self) -> Address | None:
        if len(self.init_code) >= 20:
            return to_checksum_address(self.init_code[:20])
        return None


def pack_user_operation(
    user_operation_list: list, for_signature: bool = True
) -> bytes:
    user_operation_list = list(user_operation_list)
    if for_signature:
        user_operation_list[2] = keccak(user_operation_list[2])
        user_operation_list[3] = keccak(user_operation_list[3])
        user_operation_list[9] = keccak(user_operation_list[9])
        user_operation_list_without_signature = user_operation_list[:-1]

        packed_user_operation = encode(
            [
                "address",
                "uint256",
                "bytes32",
                "bytes32",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bytes32",
            ],
            user_operation_list_without_signature,
        )
    else:
        packed_user_operation = encode(
            [
                "address",
                "uint256",
                "bytes",
                "bytes",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "uint256",
                "bytes",
                "bytes",
            ],
            user_operation_list,
        )
    return packed_user_operation


def unpack_user_operation(packed_user_operation: bytes) -> UserOperation:
    (
        sender,
        nonce,
        init_code,
        call_data,
        call_gas_limit,
        verification_gas_limit,
        pre_verification_gas,
        max_fee_per_gas,
        max_priority_fee_per_gas,
        paymaster_and_data,
        signature,
    ) = decode(
        [
            "address",
            "uint256",
            "bytes",
            "bytes",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "uint256",
            "bytes",
            "bytes",
        ],
        packed_user_operation,
    )
    return UserOperation(
        sender_address=to_checksum_address(sender),
        nonce=nonce,
        init_code=init_code,
        call_data=call_data,
        call_gas_limit=call_gas_limit,
        verification_gas_limit=verification_gas_limit,
        pre_verification_gas=pre_verification_gas,
        max_fee_per_gas=max_fee_per_gas,
        max_priority_fee_per_gas=max_priority_fee_per_gas,
        paymaster_and_data=paymaster_and_data,
        signature=signature,
    )


def canonical_encode(
    user_operation: UserOperation, for_signature: bool = True
) -> bytes:
    return pack_user_operation(user_operation.to_list(), for_signature)


def get_user_operation_hash_bytes(
    user_operation: UserOperation, entrypoint_addr: str, chain_id: int
) -> bytes:
    packed_user_operation = keccak(canonical_encode(user_operation, True))

    encoded_user_operation_hash = encode(
        ["(bytes32,address,uint256)"],
        [[packed_user_operation, entrypoint_addr, chain_id]],
    )
    return keccak(encoded_user_operation_hash)


def get_user_operation_hash(
    user_operation: UserOperation, entrypoint_addr: str, chain_id: int
) -> UserOperationHash:
    return UserOperationHash(
        "0x" + get_user_operation_hash_bytes(
            user_operation, entrypoint_addr, chain_id).hex()
    )


def _to_hex_or_none(value: int | None) -> str | None:
    if value is None:
        return None
    return hex(value)


def verify_and_get_address(field_name: str, value: Address | None) -> Address:
    address_pattern = "^0x[0-9a-fA-F]{40}$"
    if isinstance(value, str) and re.match(address_pattern, value) is not None:
        return value
    else:
        raise InvalidFieldError(
            f"Invalid address value : {value} in field {field_name}",
            field_name,
        )


def verify_and_get_uint(field_name: str, value: str | int | None) -> int:
    if value is None:
        raise InvalidFieldError(
            f"Invalid uint hex value in field {field_name}",
            field_name,
        )

    if isinstance(value, int) and not isinstance(value, bool) and value >= 0:
        return value
    if value == "0x":
        return 0
    elif isinstance(value, str) and value[:2] == "0x":
        try:
            return int(value, 16)
        except ValueError:
            raise InvalidFieldError(
                f"Invalid uint hex value : {value} in field {field_name}",
                field_name,
            )
    else:
        raise InvalidFieldError(
            f"Invalid uint hex value : {value} in field {field_name}",
            field_name,
        )


def verify_and_get_bytes(field_name: str, value: str | bytes | None) -> bytes:
    if value is None:
        raise InvalidFieldError(
            f"Invalid bytes hex value in field {field_name}",
            field_name,
        )

    if isinstance(value, bytes):
        return value
    if isinstance(value, str) and value[:2] == "0x":
        try:
            return bytes.fromhex(value[2:])
        except ValueError:
            raise InvalidFieldError(
                f"Invalid bytes hex value : {value} in field {field_name}",
                field_name,
            )
    else:
        raise InvalidFieldError(
            f"Invalid bytes hex value : {value} in field {field_name}",
            field_name,
        )


def is_user_operation_hash(user_operation_hash: str) -> bool:
    hash_pattern = "^0x[0-9a-fA-F]{64}$"
    return (
        isinstance(user_operation_hash, str)
        and re.match(hash_pattern, user_operation_hash) is not None
    )
