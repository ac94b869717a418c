from dataclasses import dataclass
from typing import Any

from smart_account.typing import Address, UserOperationHash
from smart_account.utils.decode import to_int


@dataclass
class ReceiptInfo:
    transaction_hash: str
    block_number: int
    block_hash: str | None = None
    gas_used: int | None = None
    status: int | None = None

    @classmethod
    def from_json(cls, json_receipt: dict[str, Any]) -> "ReceiptInfo":
        return cls(
            transaction_hash=json_receipt["transactionHash"],
            block_number=to_int(json_receipt["blockNumber"]),
            block_hash=json_receipt.get("blockHash"),
            gas_used=to_int(json_receipt.get("gasUsed")),
            status=to_int(json_receipt.get("status")),
        )


@dataclass
class UserOpReceipt:
    user_op_hash: UserOperationHash
    sender: Address
    nonce: int
    success: bool
    actual_gas_cost: int
    actual_gas_used: int
    receipt: ReceiptInfo
    paymaster: Address | None = None
    reason: str | None = None

    @classmethod
    def from_json(cls, json_receipt: dict[str, Any]) -> "UserOpReceipt":
        return cls(
            user_op_hash=UserOperationHash(json_receipt["userOpHash"]),
            sender=Address(json_receipt["sender"]),
            nonce=to_int(json_receipt["nonce"]),
            success=bool(json_receipt["success"]),
            actual_gas_cost=to_int(json_receipt["actualGasCost"]),
            actual_gas_used=to_int(json_receipt["actualGasUsed"]),
            receipt=ReceiptInfo.from_json(json_receipt["receipt"]),
            paymaster=json_receipt.get("paymaster"),
            reason=json_receipt.get("reason"),
        )


@dataclass
class UserOpByHash:
    user_operation: dict[str, Any]
    entrypoint: Address
    transaction_hash: str | None
    block_hash: str | None
    block_number: int | None

    @classmethod
    def from_json(cls, json_result: dict[str, Any]) -> "UserOpByHash":
        return cls(
            user_operation=json_result["userOperation"],
            entrypoint=Address(json_result["entryPoint"]),
            transaction_hash=json_result.get("transactionHash"),
            block_hash=json_result.get("blockHash"),
            block_number=to_int(json_result.get("blockNumber")),
        )


@dataclass
class UserOpGasEstimate:
    """Fields a bundler estimate returned. Missing ones stay None."""
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None

    @classmethod
    def from_json(cls, json_result: dict[str, Any]) -> "UserOpGasEstimate":
        return cls(
            call_gas_limit=to_int(json_result.get("callGasLimit")),
            verification_gas_limit=to_int(
                json_result.get("verificationGasLimit")),
            pre_verification_gas=to_int(
                json_result.get("preVerificationGas")),
            max_fee_per_gas=to_int(json_result.get("maxFeePerGas")),
            max_priority_fee_per_gas=to_int(
                json_result.get("maxPriorityFeePerGas")),
        )
