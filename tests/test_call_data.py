import pytest
from eth_abi import encode
from eth_utils import function_signature_to_4byte_selector

from smart_account.account.models import Transaction
from smart_account.exceptions import CallDataDecodeError, EmptyBatchError
from smart_account.utils.decode import \
    decode_call_data, decode_erc20_transfer, is_batch_call_data, to_int
from smart_account.utils.encode import \
    EXECUTE_BATCH_SIGNATURE, encode_transfer

from conftest import TARGET_ADDRESS

OTHER_TARGET_ADDRESS = "0x" + "bb" * 20


def test_single_call_encodes_as_execute(smart_account):
    call_data = smart_account.get_call_data(
        [Transaction(TARGET_ADDRESS, 10, b"\x12\x34")], False)

    assert not is_batch_call_data(call_data)
    to_list, value_list, data_list = decode_call_data(call_data)
    assert [to.lower() for to in to_list] == [TARGET_ADDRESS]
    assert value_list == [10]
    assert data_list == [b"\x12\x34"]


def test_several_calls_encode_as_execute_batch(smart_account):
    transactions = [
        Transaction(TARGET_ADDRESS, 1, b"\x01"),
        Transaction(OTHER_TARGET_ADDRESS, 0, b""),
    ]
    call_data = smart_account.get_call_data(transactions, False)

    assert is_batch_call_data(call_data)
    to_list, value_list, data_list = decode_call_data(call_data)
    assert [to.lower() for to in to_list] == \
        [TARGET_ADDRESS, OTHER_TARGET_ADDRESS]
    assert value_list == [1, 0]
    assert data_list == [b"\x01", b""]


def test_forced_batch_encoding_of_a_single_call(smart_account):
    call_data = smart_account.get_call_data(
        [Transaction(TARGET_ADDRESS, 10, b"")], True)

    assert is_batch_call_data(call_data)
    assert decode_call_data(call_data)[1] == [10]


def test_empty_batch_is_rejected(smart_account):
    with pytest.raises(EmptyBatchError):
        smart_account.get_call_data([], False)


def test_batch_without_values_decodes_to_zero_values():
    call_data = function_signature_to_4byte_selector(
        EXECUTE_BATCH_SIGNATURE
    ) + encode(
        ["address[]", "uint256[]", "bytes[]"],
        [[TARGET_ADDRESS, OTHER_TARGET_ADDRESS], [], [b"", b""]],
    )

    assert decode_call_data(call_data)[1] == [0, 0]


def test_unknown_or_malformed_call_data_is_rejected():
    with pytest.raises(CallDataDecodeError):
        decode_call_data(b"\xde\xad\xbe\xef")

    with pytest.raises(CallDataDecodeError):
        decode_call_data(
            function_signature_to_4byte_selector(EXECUTE_BATCH_SIGNATURE)
            + b"\x00" * 5
        )


def test_decode_erc20_transfer():
    transfer_data = encode_transfer(OTHER_TARGET_ADDRESS, 500)

    recipient, amount = decode_erc20_transfer(transfer_data)
    assert recipient.lower() == OTHER_TARGET_ADDRESS
    assert amount == 500
    assert decode_erc20_transfer(b"\x00\x00\x00\x00") is None


def test_to_int():
    assert to_int("0x10") == 16
    assert to_int("10") == 10
    assert to_int(5) == 5
    assert to_int(None) is None
