import asyncio
import json
import logging
from typing import Any

from aiohttp import ClientSession

from smart_account.exceptions import ChainQueryError
from smart_account.typing import Address


async def send_rpc_request(
    url: str,
    method: str,
    params=None,
) -> Any:
    """Single JSON-RPC POST. Retries are left to the caller."""
    json_request = {
        "jsonrpc": "2.0",
        "id": 1,
        "method": method,
        "params": params,
    }
    headers = {
        "content-type": "application/json",
        "connection": "keep-alive"
    }
    async with ClientSession() as session:
        async with session.post(
            url,
            json=json_request,
            headers=headers
        ) as response:
            resp = await response.read()
            try:
                return json.loads(resp)
            except json.decoder.JSONDecodeError:
                logging.critical(f"Invalid json response from {url}")
                raise ValueError(f"Invalid json response from {url}")


def get_rpc_error(json_result: dict) -> tuple[int | None, str, Any]:
    error = json_result["error"]
    if isinstance(error, dict):
        return (
            error.get("code"),
            error.get("message", ""),
            error.get("data"),
        )
    return None, str(error), None


class EthClient:
    """Read-only chain queries against an ethereum node."""
    ethereum_node_url: str

    def __init__(self, ethereum_node_url: str):
        self.ethereum_node_url = ethereum_node_url

    async def _request(self, method: str, params=None) -> Any:
        json_result = await send_rpc_request(
            self.ethereum_node_url, method, params)
        if "error" in json_result:
            code, message, _ = get_rpc_error(json_result)
            logging.debug(
                f"eth client call {method} failed with code: {code} "
                f"and message: {message}"
            )
            raise ChainQueryError(message, method, code)
        if "result" not in json_result:
            raise ChainQueryError(
                f"Missing result in response to {method}", method)
        return json_result["result"]

    async def get_code(
        self, address: Address, block: str = "latest"
    ) -> bytes:
        code_hex = await self._request("eth_getCode", [address, block])
        return bytes.fromhex(code_hex[2:])

    async def is_contract(self, address: Address) -> bool:
        return len(await self.get_code(address)) > 0

    async def get_gas_price(self) -> int:
        return int(await self._request("eth_gasPrice"), 16)

    async def get_max_priority_fee_per_gas(self) -> int:
        return int(await self._request("eth_maxPriorityFeePerGas"), 16)

    async def get_base_fee(self, block_number_hex: str = "latest") -> int:
        block = await self._request(
            "eth_getBlockByNumber", [block_number_hex, False])
        if "baseFeePerGas" in block:
            return int(block["baseFeePerGas"], 16)
        else:  # for block requested before the EIP-1559 upgrade
            return 0

    async def get_fee_data(self) -> tuple[int, int]:
        """Returns (max_fee_per_gas, max_priority_fee_per_gas).

        On chains without eip-1559 both are the legacy gas price.
        """
        gas_price, base_fee = await asyncio.gather(
            self.get_gas_price(), self.get_base_fee())
        if base_fee == 0:
            return gas_price, gas_price

        max_priority_fee_per_gas = await self.get_max_priority_fee_per_gas()
        max_fee_per_gas = 2 * base_fee + max_priority_fee_per_gas
        return max_fee_per_gas, max_priority_fee_per_gas

    async def estimate_gas(
        self,
        to: Address,
        data: bytes,
        from_address: Address | None = None,
        value: int = 0,
    ) -> int:
        tx: dict[str, str] = {
            "to": to,
            "data": "0x" + data.hex(),
        }
        if from_address is not None:
            tx["from"] = from_address
        if value > 0:
            tx["value"] = hex(value)
        return int(await self._request("eth_estimateGas", [tx]), 16)

    async def call(
        self, to: Address, data: bytes, block: str = "latest"
    ) -> bytes:
        result_hex = await self._request(
            "eth_call", [{"to": to, "data": "0x" + data.hex()}, block])
        return bytes.fromhex(result_hex[2:])
