from smart_account.typing import Address

# EntryPoint v0.6
DEFAULT_ENTRYPOINT_ADDRESS = Address(
    "0x5FF137D4b0FDCD49DcA30c7CF57E578a026d2789")

DEFAULT_FACTORY_ADDRESS = Address(
    "0x000000a56Aaca3e9a4C479ea6b6CD0DbcB6634F5")
DEFAULT_FALLBACK_HANDLER_ADDRESS = Address(
    "0x0bBa6d96BD616BedC6BFaa341742FD43c60b83C1")
IMPLEMENTATION_ADDRESSES_BY_VERSION = {
    "V1_0_0": Address("0x00006b7e42e01957da540dc6a8f7c30c4d816af5"),
    "V2_0_0": Address("0x0000002512019Dafb59528B82CB92D3c5D2423aC"),
}
DEFAULT_IMPLEMENTATION_ADDRESS = IMPLEMENTATION_ADDRESSES_BY_VERSION["V2_0_0"]

ECDSA_OWNERSHIP_MODULE_ADDRESSES_BY_VERSION = {
    "V1_0_0": Address("0x0000001c5b32F37F5beA87BDD5374eB2aC54eA8e"),
}
DEFAULT_ECDSA_OWNERSHIP_MODULE = (
    ECDSA_OWNERSHIP_MODULE_ADDRESSES_BY_VERSION["V1_0_0"])

MULTICHAIN_VALIDATION_MODULE_ADDRESSES_BY_VERSION = {
    "V1_0_0": Address("0x000000824dc138db84fd9109fc154bdad332aa8e"),
}
DEFAULT_MULTICHAIN_MODULE = (
    MULTICHAIN_VALIDATION_MODULE_ADDRESSES_BY_VERSION["V1_0_0"])

SESSION_MANAGER_MODULE_ADDRESSES_BY_VERSION = {
    "V1_0_0": Address("0x000002fbffedd9b33f4e7156f2de8d48945e7489"),
}
DEFAULT_SESSION_KEY_MANAGER_MODULE = (
    SESSION_MANAGER_MODULE_ADDRESSES_BY_VERSION["V1_0_0"])

BATCHED_SESSION_ROUTER_MODULE_ADDRESSES_BY_VERSION = {
    "V1_0_0": Address("0x00000d09967410f8c76752a104c9848b57ebba55"),
}
DEFAULT_BATCHED_SESSION_ROUTER_MODULE = (
    BATCHED_SESSION_ROUTER_MODULE_ADDRESSES_BY_VERSION["V1_0_0"])

DEFAULT_ERC20_SESSION_VALIDATION_MODULE = Address(
    "0x000000D50C68705bd6897B2d17c7de32FB519fDA")

NATIVE_TOKEN_ALIAS = Address("0xEeeeeEeeeEeEeeEeEeEeeEEEeeeeEeeeeeeeEEeE")

PROXY_CREATION_CODE = bytes.fromhex(
    "6080346100aa57601f61012038819003918201601f19168301916001600160401b0383"
    "11848410176100af578084926020946040528339810103126100aa5751600160016"
    "0a01b0381168082036100aa5715610065573055604051605a90816100c68239f35b6040"
    "5162461bcd60e51b815260206004820152601e60248201527f496e76616c696420696d"
    "706c656d656e746174696f6e206164647265737300006044820152606490fd5b600080"
    "fd5b634e487b7160e01b600052604160045260246000fdfe6080604052305460008080"
    "92368280378136915af43d82803e156020573d90f35b3d90fdfea26469706673582212"
    "20a03b18dce0be0b4c9afe58a9eb85c35205e2cf087da098bbf1d23945bf8949606473"
    "6f6c63430008110033"
)

DEFAULT_GAS_LIMITS = {
    "validate_user_op_gas": 100_000,
    "validate_paymaster_user_op_gas": 100_000,
    "post_op_gas": 10_877,
}

# 65 bytes signature placeholder used for preverification gas accounting
DUMMY_ECDSA_SIGNATURE = bytes.fromhex(
    "73c3ac716c487ca34bb858247b5ccf1dc354fbaabdd089af3b2ac8e78ba85a49"
    "59a2d76250325bd67c11771c31fccda87c33ceec17cc0de912690521bb95ffcb1b"
)

MAX_UINT256 = 2**256 - 1

# verifying paymaster: address, abi encoded validUntil and validAfter,
# 65 bytes signature
DUMMY_PAYMASTER_AND_DATA_LENGTH = 20 + 64 + 65

ADDRESS_ZERO = Address("0x0000000000000000000000000000000000000000")
