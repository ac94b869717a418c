from abc import ABC, abstractmethod

from eth_abi import decode, encode
from eth_utils import to_checksum_address

from smart_account.constants import DEFAULT_ERC20_SESSION_VALIDATION_MODULE
from smart_account.exceptions import SessionError
from smart_account.typing import Address
from smart_account.utils.decode import decode_erc20_transfer


class SessionValidationModule(ABC):
    """Client side view of an on-chain session validation module: it builds
    the session key data and rejects calls the module would reject."""

    @abstractmethod
    def get_address(self) -> Address:
        pass

    @abstractmethod
    def validate_session_call(
        self, to: Address, value: int, data: bytes, session_key_data: bytes
    ) -> None:
        pass


class ERC20SessionValidationModule(SessionValidationModule):
    module_address: Address

    def __init__(
        self, module_address: Address = DEFAULT_ERC20_SESSION_VALIDATION_MODULE
    ):
        self.module_address = module_address

    def get_address(self) -> Address:
        return self.module_address

    @staticmethod
    def get_session_key_data(
        session_key: Address, token: Address, recipient: Address,
        max_amount: int
    ) -> bytes:
        return encode(
            ["address", "address", "address", "uint256"],
            [
                to_checksum_address(session_key),
                to_checksum_address(token),
                to_checksum_address(recipient),
                max_amount,
            ],
        )

    @staticmethod
    def decode_session_key_data(
        session_key_data: bytes
    ) -> tuple[Address, Address, Address, int]:
        session_key, token, recipient, max_amount = decode(
            ["address", "address", "address", "uint256"], session_key_data)
        return (
            to_checksum_address(session_key),
            to_checksum_address(token),
            to_checksum_address(recipient),
            max_amount,
        )

    def validate_session_call(
        self, to: Address, value: int, data: bytes, session_key_data: bytes
    ) -> None:
        _, token, recipient, max_amount = \
            self.decode_session_key_data(session_key_data)
        if to_checksum_address(to) != token:
            raise SessionError(f"ERC20SV Invalid Token : {to}")
        if value != 0:
            raise SessionError(f"ERC20SV Non Zero Value : {value}")
        transfer = decode_erc20_transfer(data)
        if transfer is None:
            raise SessionError("ERC20SV Invalid Selector")
        transfer_recipient, amount = transfer
        if transfer_recipient != recipient:
            raise SessionError(
                f"ERC20SV Wrong Recipient : {transfer_recipient}")
        if amount > max_amount:
            raise SessionError(f"ERC20SV Max Amount Exceeded : {amount}")
