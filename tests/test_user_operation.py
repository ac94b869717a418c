import pytest

from smart_account.constants import DEFAULT_ENTRYPOINT_ADDRESS
from smart_account.exceptions import InvalidFieldError
from smart_account.user_operation.user_operation import \
    UserOperation, canonical_encode, get_user_operation_hash, \
    get_user_operation_hash_bytes, is_user_operation_hash, \
    unpack_user_operation

from conftest import CHAIN_ID


def test_full_encoding_is_stable_under_decoding(user_operation):
    """
    Test encode -> decode -> encode gives the same bytes and hash
    """
    user_operation.signature = b"\x01" * 65
    packed = canonical_encode(user_operation, for_signature=False)
    decoded_user_operation = unpack_user_operation(packed)

    assert canonical_encode(decoded_user_operation, False) == packed
    assert get_user_operation_hash(
        decoded_user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID
    ) == get_user_operation_hash(
        user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID)


@pytest.mark.parametrize(
    "field_name,value",
    [
        ("sender_address", "0x" + "22" * 20),
        ("nonce", 8),
        ("init_code", b"\x01"),
        ("call_data", b"\x02"),
        ("call_gas_limit", 100_001),
        ("verification_gas_limit", 200_001),
        ("pre_verification_gas", 50_001),
        ("max_fee_per_gas", 3_000_000_001),
        ("max_priority_fee_per_gas", 1_000_000_001),
        ("paymaster_and_data", b"\x03"),
    ],
)
def test_hash_changes_with_every_signed_field(
    user_operation, field_name, value
):
    original_hash = get_user_operation_hash_bytes(
        user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID)
    changed_user_operation = user_operation.copy()
    setattr(changed_user_operation, field_name, value)

    assert get_user_operation_hash_bytes(
        changed_user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID
    ) != original_hash


def test_hash_ignores_signature(user_operation):
    signed_user_operation = user_operation.copy()
    signed_user_operation.signature = b"\xff" * 65

    assert get_user_operation_hash_bytes(
        signed_user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID
    ) == get_user_operation_hash_bytes(
        user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID)


def test_hash_is_bound_to_chain_and_entrypoint(user_operation):
    user_op_hash = get_user_operation_hash_bytes(
        user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID)

    assert get_user_operation_hash_bytes(
        user_operation, DEFAULT_ENTRYPOINT_ADDRESS, CHAIN_ID + 1
    ) != user_op_hash
    assert get_user_operation_hash_bytes(
        user_operation, "0x" + "ee" * 20, CHAIN_ID) != user_op_hash
    assert is_user_operation_hash("0x" + user_op_hash.hex())


def test_from_json_parses_the_rpc_form(user_operation):
    user_operation.signature = b"\x01" * 65
    parsed_user_operation = UserOperation.from_json(
        user_operation.get_user_operation_json())

    assert parsed_user_operation == user_operation


def test_from_json_rejects_missing_and_malformed_fields(user_operation):
    user_operation_json = user_operation.get_user_operation_json()
    del user_operation_json["signature"]
    with pytest.raises(InvalidFieldError) as excinfo:
        UserOperation.from_json(user_operation_json)
    assert excinfo.value.field == "signature"

    user_operation_json = user_operation.get_user_operation_json()
    user_operation_json["nonce"] = "7"
    with pytest.raises(InvalidFieldError) as excinfo:
        UserOperation.from_json(user_operation_json)
    assert excinfo.value.field == "nonce"

    user_operation_json = user_operation.get_user_operation_json()
    user_operation_json["sender"] = "0x1234"
    with pytest.raises(InvalidFieldError):
        UserOperation.from_json(user_operation_json)


def test_copy_is_independent(user_operation):
    copied_user_operation = user_operation.copy()
    copied_user_operation.nonce = 100

    assert user_operation.nonce == 7


def test_paymaster_and_factory_addresses(user_operation):
    assert user_operation.get_paymaster_address() is None
    assert user_operation.get_factory_address() is None

    user_operation.paymaster_and_data = bytes.fromhex("cc" * 20 + "01")
    user_operation.init_code = bytes.fromhex("dd" * 20 + "02")

    assert user_operation.get_paymaster_address().lower() == "0x" + "cc" * 20
    assert user_operation.get_factory_address().lower() == "0x" + "dd" * 20
