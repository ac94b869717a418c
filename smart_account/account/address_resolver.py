from functools import cache
import logging

from eth_abi import decode, encode
from eth_abi.packed import encode_packed
from eth_utils import is_address, keccak, to_bytes, to_checksum_address

from smart_account.constants import \
    DEFAULT_FACTORY_ADDRESS, DEFAULT_FALLBACK_HANDLER_ADDRESS, \
    DEFAULT_IMPLEMENTATION_ADDRESS, PROXY_CREATION_CODE
from smart_account.exceptions import ResolutionError
from smart_account.typing import Address
from smart_account.utils.encode import \
    encode_account_init, encode_deploy_counterfactual_account, \
    encode_get_address_for_counterfactual_account
from smart_account.utils.eth_client_utils import EthClient


def verify_and_get_address(field_name: str, address: str) -> Address:
    if not isinstance(address, str) or not is_address(address):
        raise ResolutionError(
            f"Invalid {field_name} address : {address}", field_name)
    return Address(to_checksum_address(address))


@cache
def get_proxy_bytecode_hash(implementation_address: Address) -> bytes:
    return keccak(
        PROXY_CREATION_CODE +
        encode(["uint256"], [int(implementation_address, 16)])
    )


def get_create2_address(
    deployer_address: Address, salt: bytes, bytecode_hash: bytes
) -> Address:
    return Address(
        to_checksum_address(
            keccak(
                b"\xff" + to_bytes(hexstr=deployer_address) + salt +
                bytecode_hash
            )[12:]
        )
    )


class AddressResolver:
    """Derives the counterfactual address and init code of an account from
    its deployment identity (factory, default module init data, index)."""
    factory_address: Address
    implementation_address: Address
    fallback_handler_address: Address
    eth_client: EthClient | None

    def __init__(
        self,
        factory_address: Address = DEFAULT_FACTORY_ADDRESS,
        implementation_address: Address = DEFAULT_IMPLEMENTATION_ADDRESS,
        fallback_handler_address: Address = DEFAULT_FALLBACK_HANDLER_ADDRESS,
        eth_client: EthClient | None = None,
    ):
        self.factory_address = verify_and_get_address(
            "factory", factory_address)
        self.implementation_address = verify_and_get_address(
            "implementation", implementation_address)
        self.fallback_handler_address = verify_and_get_address(
            "fallback_handler", fallback_handler_address)
        self.eth_client = eth_client

    def get_account_init_calldata(
        self, module_address: Address, module_setup_data: bytes
    ) -> bytes:
        return encode_account_init(
            self.fallback_handler_address,
            verify_and_get_address("module", module_address),
            module_setup_data,
        )

    def get_salt(
        self, module_address: Address, module_setup_data: bytes, index: int
    ) -> bytes:
        init_calldata_hash = keccak(
            self.get_account_init_calldata(module_address, module_setup_data))
        return keccak(
            encode_packed(["bytes32", "uint256"], [init_calldata_hash, index]))

    def resolve_address(
        self, module_address: Address, module_setup_data: bytes, index: int
    ) -> Address:
        if index < 0:
            raise ResolutionError(f"Invalid account index : {index}", "index")
        return get_create2_address(
            self.factory_address,
            self.get_salt(module_address, module_setup_data, index),
            get_proxy_bytecode_hash(self.implementation_address),
        )

    def get_init_code(
        self, module_address: Address, module_setup_data: bytes, index: int
    ) -> bytes:
        return to_bytes(hexstr=self.factory_address) + \
            encode_deploy_counterfactual_account(
                verify_and_get_address("module", module_address),
                module_setup_data,
                index,
            )

    async def resolve_address_from_factory(
        self, module_address: Address, module_setup_data: bytes, index: int
    ) -> Address:
        if self.eth_client is None:
            raise ResolutionError(
                "No ethereum node to query the factory with", "factory")
        result = await self.eth_client.call(
            self.factory_address,
            encode_get_address_for_counterfactual_account(
                verify_and_get_address("module", module_address),
                module_setup_data,
                index,
            ),
        )
        if len(result) < 32:
            raise ResolutionError(
                f"Factory {self.factory_address} returned no address",
                "factory",
            )
        (address,) = decode(["address"], result)
        logging.debug(f"factory resolved counterfactual address {address}")
        return Address(to_checksum_address(address))
