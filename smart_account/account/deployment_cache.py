import logging

from smart_account.typing import Address
from smart_account.utils.eth_client_utils import EthClient


class DeploymentCache:
    """Memoizes which accounts have code on chain.

    Entries only ever go from unknown to deployed, so a positive answer is
    never queried again and needs no invalidation.
    """
    eth_client: EthClient
    deployed_addresses: set[str]

    def __init__(self, eth_client: EthClient):
        self.eth_client = eth_client
        self.deployed_addresses = set()

    def mark_deployed(self, address: Address) -> None:
        self.deployed_addresses.add(address.lower())

    async def is_deployed(self, address: Address) -> bool:
        if address.lower() in self.deployed_addresses:
            return True
        is_contract = await self.eth_client.is_contract(address)
        if is_contract:
            logging.debug(f"account {address} is deployed")
            self.mark_deployed(address)
        return is_contract
