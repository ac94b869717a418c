import logging
from typing import Any

from smart_account.bundler.models import \
    UserOpByHash, UserOpGasEstimate, UserOpReceipt
from smart_account.constants import DEFAULT_ENTRYPOINT_ADDRESS
from smart_account.exceptions import BundlerError
from smart_account.typing import Address, UserOperationHash
from smart_account.user_operation.user_operation import UserOperation
from smart_account.utils.decode import to_int
from smart_account.utils.eth_client_utils import \
    get_rpc_error, send_rpc_request


class BundlerClient:
    bundler_url: str
    entrypoint_address: Address

    def __init__(
        self,
        bundler_url: str,
        entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS,
    ):
        self.bundler_url = bundler_url
        self.entrypoint_address = entrypoint_address

    async def _request(self, method: str, params: list) -> Any:
        json_result = await send_rpc_request(self.bundler_url, method, params)
        if "error" in json_result:
            code, message, data = get_rpc_error(json_result)
            logging.error(
                f"Bundler call {method} failed with error code: {code} "
                f"and error message: {message}"
            )
            raise BundlerError(message, method, code, data)
        if "result" not in json_result:
            raise BundlerError(f"Missing result in response to {method}", method)
        return json_result["result"]

    async def estimate_user_operation_gas(
        self, user_operation: UserOperation
    ) -> UserOpGasEstimate:
        # fields that are not populated yet are left for the bundler
        user_operation_json = {
            key: value
            for key, value in user_operation.get_user_operation_json().items()
            if value is not None
        }
        result = await self._request(
            "eth_estimateUserOperationGas",
            [
                user_operation_json,
                self.entrypoint_address,
            ],
        )
        return UserOpGasEstimate.from_json(result)

    async def send_user_operation(
        self, user_operation: UserOperation
    ) -> UserOperationHash:
        result = await self._request(
            "eth_sendUserOperation",
            [
                user_operation.get_user_operation_json(),
                self.entrypoint_address,
            ],
        )
        logging.info(f"user operation sent to bundler with hash: {result}")
        return UserOperationHash(result)

    async def get_user_operation_receipt(
        self, user_operation_hash: UserOperationHash
    ) -> UserOpReceipt | None:
        result = await self._request(
            "eth_getUserOperationReceipt", [user_operation_hash])
        if result is None:
            return None
        return UserOpReceipt.from_json(result)

    async def get_user_operation_by_hash(
        self, user_operation_hash: UserOperationHash
    ) -> UserOpByHash | None:
        result = await self._request(
            "eth_getUserOperationByHash", [user_operation_hash])
        if result is None:
            return None
        return UserOpByHash.from_json(result)

    async def get_gas_fee_values(self) -> tuple[int, int]:
        """Returns the bundler's "standard" (maxFeePerGas,
        maxPriorityFeePerGas) tier."""
        result = await self._request("pimlico_getUserOperationGasPrice", [])
        standard = result["standard"]
        return (
            to_int(standard["maxFeePerGas"]),
            to_int(standard["maxPriorityFeePerGas"]),
        )
