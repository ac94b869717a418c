from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from smart_account.typing import Address

EXECUTE_SIGNATURE = "execute_ncC(address,uint256,bytes)"
EXECUTE_BATCH_SIGNATURE = "executeBatch_y6U(address[],uint256[],bytes[])"
APPROVE_SIGNATURE = "approve(address,uint256)"
TRANSFER_SIGNATURE = "transfer(address,uint256)"
ACCOUNT_INIT_SIGNATURE = "init(address,address,bytes)"
DEPLOY_COUNTERFACTUAL_ACCOUNT_SIGNATURE = \
    "deployCounterFactualAccount(address,bytes,uint256)"
GET_ADDRESS_FOR_COUNTERFACTUAL_ACCOUNT_SIGNATURE = \
    "getAddressForCounterFactualAccount(address,bytes,uint256)"
INIT_FOR_SMART_ACCOUNT_SIGNATURE = "initForSmartAccount(address)"
SET_MERKLE_ROOT_SIGNATURE = "setMerkleRoot(bytes32)"
ENABLE_MODULE_SIGNATURE = "enableModule(address)"
DISABLE_MODULE_SIGNATURE = "disableModule(address,address)"
SETUP_AND_ENABLE_MODULE_SIGNATURE = "setupAndEnableModule(address,bytes)"
IS_MODULE_ENABLED_SIGNATURE = "isModuleEnabled(address)"
GET_NONCE_SIGNATURE = "getNonce(address,uint192)"


def encode_function_call(
    function_signature: str, types: list[str], args: list
) -> bytes:
    return (
        function_signature_to_4byte_selector(function_signature)
        + encode(types, args)
    )


def encode_execute(to: Address, value: int, data: bytes) -> bytes:
    return encode_function_call(
        EXECUTE_SIGNATURE,
        ["address", "uint256", "bytes"],
        [to_checksum_address(to), value, data],
    )


def encode_execute_batch(
    to: list[Address], value: list[int], data: list[bytes]
) -> bytes:
    return encode_function_call(
        EXECUTE_BATCH_SIGNATURE,
        ["address[]", "uint256[]", "bytes[]"],
        [[to_checksum_address(address) for address in to], value, data],
    )


def encode_approve(spender: Address, amount: int) -> bytes:
    return encode_function_call(
        APPROVE_SIGNATURE,
        ["address", "uint256"],
        [to_checksum_address(spender), amount],
    )


def encode_transfer(recipient: Address, amount: int) -> bytes:
    return encode_function_call(
        TRANSFER_SIGNATURE,
        ["address", "uint256"],
        [to_checksum_address(recipient), amount],
    )


def encode_account_init(
    fallback_handler: Address, module_address: Address, module_setup_data: bytes
) -> bytes:
    return encode_function_call(
        ACCOUNT_INIT_SIGNATURE,
        ["address", "address", "bytes"],
        [
            to_checksum_address(fallback_handler),
            to_checksum_address(module_address),
            module_setup_data,
        ],
    )


def encode_deploy_counterfactual_account(
    module_address: Address, module_setup_data: bytes, index: int
) -> bytes:
    return encode_function_call(
        DEPLOY_COUNTERFACTUAL_ACCOUNT_SIGNATURE,
        ["address", "bytes", "uint256"],
        [to_checksum_address(module_address), module_setup_data, index],
    )


def encode_get_address_for_counterfactual_account(
    module_address: Address, module_setup_data: bytes, index: int
) -> bytes:
    return encode_function_call(
        GET_ADDRESS_FOR_COUNTERFACTUAL_ACCOUNT_SIGNATURE,
        ["address", "bytes", "uint256"],
        [to_checksum_address(module_address), module_setup_data, index],
    )


def encode_init_for_smart_account(owner: Address) -> bytes:
    return encode_function_call(
        INIT_FOR_SMART_ACCOUNT_SIGNATURE,
        ["address"],
        [to_checksum_address(owner)],
    )


def encode_set_merkle_root(merkle_root: bytes) -> bytes:
    return encode_function_call(
        SET_MERKLE_ROOT_SIGNATURE, ["bytes32"], [merkle_root])


def encode_enable_module(module_address: Address) -> bytes:
    return encode_function_call(
        ENABLE_MODULE_SIGNATURE,
        ["address"],
        [to_checksum_address(module_address)],
    )


def encode_disable_module(
    prev_module_address: Address, module_address: Address
) -> bytes:
    return encode_function_call(
        DISABLE_MODULE_SIGNATURE,
        ["address", "address"],
        [
            to_checksum_address(prev_module_address),
            to_checksum_address(module_address),
        ],
    )


def encode_setup_and_enable_module(
    module_address: Address, module_setup_data: bytes
) -> bytes:
    return encode_function_call(
        SETUP_AND_ENABLE_MODULE_SIGNATURE,
        ["address", "bytes"],
        [to_checksum_address(module_address), module_setup_data],
    )


def encode_is_module_enabled(module_address: Address) -> bytes:
    return encode_function_call(
        IS_MODULE_ENABLED_SIGNATURE,
        ["address"],
        [to_checksum_address(module_address)],
    )


def encode_get_nonce(sender: Address, key: int) -> bytes:
    return encode_function_call(
        GET_NONCE_SIGNATURE,
        ["address", "uint192"],
        [to_checksum_address(sender), key],
    )


def encode_module_signature(
    module_signature: bytes, module_address: Address
) -> bytes:
    """The account reads (moduleSignature, validationModule) from
    userOp.signature to pick the module that validates the op."""
    return encode(
        ["bytes", "address"],
        [module_signature, to_checksum_address(module_address)],
    )
