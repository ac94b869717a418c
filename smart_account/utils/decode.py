from eth_abi import decode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from smart_account.exceptions import CallDataDecodeError
from smart_account.typing import Address
from smart_account.utils.encode import \
    EXECUTE_SIGNATURE, EXECUTE_BATCH_SIGNATURE, TRANSFER_SIGNATURE

SINGLE_CALL_SELECTORS = {
    function_signature_to_4byte_selector(EXECUTE_SIGNATURE),
    function_signature_to_4byte_selector("execute(address,uint256,bytes)"),
}
BATCH_CALL_SELECTORS = {
    function_signature_to_4byte_selector(EXECUTE_BATCH_SIGNATURE),
    function_signature_to_4byte_selector(
        "executeBatch(address[],uint256[],bytes[])"),
}
TRANSFER_SELECTOR = function_signature_to_4byte_selector(TRANSFER_SIGNATURE)


def is_batch_call_data(call_data: bytes) -> bool:
    return call_data[:4] in BATCH_CALL_SELECTORS


def decode_call_data(
    call_data: bytes,
) -> tuple[list[Address], list[int], list[bytes]]:
    """Splits account call data back into parallel (to, value, data) lists."""
    selector = call_data[:4]
    try:
        if selector in SINGLE_CALL_SELECTORS:
            to, value, data = decode(
                ["address", "uint256", "bytes"], call_data[4:])
            return [to_checksum_address(to)], [value], [data]
        elif selector in BATCH_CALL_SELECTORS:
            to_list, value_list, data_list = decode(
                ["address[]", "uint256[]", "bytes[]"], call_data[4:])
        else:
            raise CallDataDecodeError(
                f"Unknown call data selector : 0x{selector.hex()}",
                call_data,
            )
    except DecodingError as excp:
        raise CallDataDecodeError(
            f"Malformed account call data : {excp}", call_data)

    if len(value_list) == 0:
        # batch with no native value transfers
        value_list = [0] * len(to_list)
    if len(to_list) != len(value_list) or len(to_list) != len(data_list):
        raise CallDataDecodeError(
            "Batch call data arrays have different lengths", call_data)

    return (
        [to_checksum_address(to) for to in to_list],
        list(value_list),
        list(data_list),
    )


def decode_erc20_transfer(data: bytes) -> tuple[Address, int] | None:
    if data[:4] != TRANSFER_SELECTOR:
        return None
    try:
        recipient, amount = decode(["address", "uint256"], data[4:])
    except DecodingError:
        return None
    return to_checksum_address(recipient), amount


def to_int(value: str | int | None) -> int | None:
    """Parses the hex or decimal quantities remote services return."""
    if value is None:
        return None
    if isinstance(value, int):
        return value
    if value[:2] == "0x":
        return int(value, 16)
    return int(value)
