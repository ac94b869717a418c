import asyncio
from dataclasses import dataclass
import logging

from smart_account.bundler.bundler_client import BundlerClient
from smart_account.bundler.models import UserOpReceipt
from smart_account.exceptions import IncompleteOperationError
from smart_account.typing import UserOperationHash
from smart_account.user_operation.user_operation import UserOperation

# init_code and paymaster_and_data are legitimately empty, they only have
# to be present
REQUIRED_USER_OPERATION_FIELDS = [
    "sender_address",
    "nonce",
    "init_code",
    "call_data",
    "call_gas_limit",
    "verification_gas_limit",
    "pre_verification_gas",
    "max_fee_per_gas",
    "max_priority_fee_per_gas",
    "paymaster_and_data",
]
NON_EMPTY_USER_OPERATION_FIELDS = ["call_data"]

DEFAULT_INCLUSION_TIMEOUT = 30
DEFAULT_POLL_INTERVAL = 5


def validate_user_operation(
    user_operation: UserOperation, require_signature: bool = False
) -> None:
    for field_name in REQUIRED_USER_OPERATION_FIELDS:
        if getattr(user_operation, field_name) is None:
            raise IncompleteOperationError(
                f"{field_name} is missing in the user operation", field_name)
    for field_name in NON_EMPTY_USER_OPERATION_FIELDS:
        if len(getattr(user_operation, field_name)) == 0:
            raise IncompleteOperationError(
                f"{field_name} is empty in the user operation", field_name)
    if require_signature and len(user_operation.signature) == 0:
        raise IncompleteOperationError(
            "signature is missing in the user operation", "signature")


@dataclass
class UserOpResponse:
    user_op_hash: UserOperationHash
    dispatch_gateway: "DispatchGateway"

    async def wait(
        self,
        timeout: float = DEFAULT_INCLUSION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> UserOpReceipt | None:
        return await self.dispatch_gateway.await_inclusion(
            self.user_op_hash, timeout, poll_interval)


class DispatchGateway:
    bundler_client: BundlerClient

    def __init__(self, bundler_client: BundlerClient):
        self.bundler_client = bundler_client

    async def submit(self, user_operation: UserOperation) -> UserOpResponse:
        validate_user_operation(user_operation, require_signature=True)
        # the bundler gets its own copy, the caller keeps ownership
        user_op_hash = await self.bundler_client.send_user_operation(
            user_operation.copy())
        return UserOpResponse(user_op_hash, self)

    async def await_inclusion(
        self,
        user_op_hash: UserOperationHash,
        timeout: float = DEFAULT_INCLUSION_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> UserOpReceipt | None:
        """Polls for the receipt until timeout. Returns None when the
        operation was not included in time."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            receipt = await self.bundler_client.get_user_operation_receipt(
                user_op_hash)
            if receipt is not None:
                logging.info(
                    f"user operation {user_op_hash} included in transaction "
                    f"{receipt.receipt.transaction_hash}"
                )
                return receipt
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.sleep(min(poll_interval, remaining))

        logging.warning(
            f"user operation {user_op_hash} not included after {timeout} "
            "seconds"
        )
        return None
