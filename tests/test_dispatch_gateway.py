from unittest.mock import AsyncMock, patch

import pytest

from smart_account.bundler.bundler_client import BundlerClient
from smart_account.bundler.dispatch_gateway import DispatchGateway
from smart_account.bundler.models import ReceiptInfo, UserOpReceipt
from smart_account.constants import DEFAULT_ENTRYPOINT_ADDRESS
from smart_account.exceptions import \
    BundlerError, ChainQueryError, IncompleteOperationError
from smart_account.utils.eth_client_utils import EthClient

from conftest import USER_OP_HASH

JSON_RECEIPT = {
    "userOpHash": USER_OP_HASH,
    "sender": "0x" + "11" * 20,
    "nonce": "0x7",
    "success": True,
    "actualGasCost": "0x3e8",
    "actualGasUsed": 1000,
    "paymaster": "0x" + "00" * 20,
    "receipt": {
        "transactionHash": "0x" + "ee" * 32,
        "blockNumber": "0x10",
        "blockHash": "0x" + "bb" * 32,
        "gasUsed": "0x5208",
        "status": "0x1",
    },
}


def get_receipt():
    return UserOpReceipt.from_json(JSON_RECEIPT)


def signed(user_operation):
    user_operation.signature = b"\x01" * 65
    return user_operation


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "field_name",
    ["sender_address", "nonce", "call_gas_limit", "pre_verification_gas"],
)
async def test_submit_rejects_missing_fields(
    bundler_client, user_operation, field_name
):
    setattr(signed(user_operation), field_name, None)

    with pytest.raises(IncompleteOperationError) as excinfo:
        await DispatchGateway(bundler_client).submit(user_operation)

    assert excinfo.value.field == field_name
    bundler_client.send_user_operation.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_rejects_empty_call_data_and_signature(
    bundler_client, user_operation
):
    dispatch_gateway = DispatchGateway(bundler_client)

    with pytest.raises(IncompleteOperationError) as excinfo:
        await dispatch_gateway.submit(user_operation)
    assert excinfo.value.field == "signature"

    signed(user_operation).call_data = b""
    with pytest.raises(IncompleteOperationError) as excinfo:
        await dispatch_gateway.submit(user_operation)
    assert excinfo.value.field == "call_data"

    bundler_client.send_user_operation.assert_not_awaited()


@pytest.mark.asyncio
async def test_submit_sends_a_copy(bundler_client, user_operation):
    """
    Test the bundler gets an equal but distinct user operation
    """
    signed(user_operation)

    user_op_response = await DispatchGateway(bundler_client).submit(
        user_operation)

    assert user_op_response.user_op_hash == USER_OP_HASH
    sent_user_operation = \
        bundler_client.send_user_operation.await_args.args[0]
    assert sent_user_operation == user_operation
    assert sent_user_operation is not user_operation


@pytest.mark.asyncio
async def test_await_inclusion_returns_the_receipt(bundler_client):
    bundler_client.get_user_operation_receipt.side_effect = \
        [None, get_receipt()]

    receipt = await DispatchGateway(bundler_client).await_inclusion(
        USER_OP_HASH, timeout=1, poll_interval=0.01)

    assert receipt.success
    assert receipt.receipt.transaction_hash == "0x" + "ee" * 32
    assert bundler_client.get_user_operation_receipt.await_count == 2


@pytest.mark.asyncio
async def test_await_inclusion_times_out(bundler_client):
    receipt = await DispatchGateway(bundler_client).await_inclusion(
        USER_OP_HASH, timeout=0.05, poll_interval=0.01)

    assert receipt is None
    assert bundler_client.get_user_operation_receipt.await_count >= 2


@pytest.mark.asyncio
async def test_user_op_response_wait(bundler_client, user_operation):
    bundler_client.get_user_operation_receipt.return_value = get_receipt()

    user_op_response = await DispatchGateway(bundler_client).submit(
        signed(user_operation))

    receipt = await user_op_response.wait(timeout=1, poll_interval=0.01)
    assert receipt.nonce == 7
    bundler_client.get_user_operation_receipt.assert_awaited_with(
        USER_OP_HASH)


def test_receipt_parsing():
    receipt = get_receipt()

    assert receipt.actual_gas_cost == 1000
    assert receipt.actual_gas_used == 1000
    assert receipt.receipt == ReceiptInfo(
        transaction_hash="0x" + "ee" * 32,
        block_number=16,
        block_hash="0x" + "bb" * 32,
        gas_used=21000,
        status=1,
    )


@pytest.mark.asyncio
async def test_bundler_client_error(user_operation):
    send_rpc_request = AsyncMock(
        return_value={
            "jsonrpc": "2.0",
            "id": 1,
            "error": {
                "code": -32500,
                "message": "AA21 didn't pay prefund",
                "data": "0x",
            },
        }
    )
    with patch(
        "smart_account.bundler.bundler_client.send_rpc_request",
        send_rpc_request,
    ):
        with pytest.raises(BundlerError) as excinfo:
            await BundlerClient("http://bundler").send_user_operation(
                user_operation)

    assert excinfo.value.rpc_code == -32500
    assert excinfo.value.method == "eth_sendUserOperation"
    assert "AA21" in excinfo.value.message


@pytest.mark.asyncio
async def test_bundler_client_estimate_leaves_unset_fields_out(
    user_operation
):
    send_rpc_request = AsyncMock(
        return_value={
            "jsonrpc": "2.0",
            "id": 1,
            "result": {
                "callGasLimit": "0x1",
                "verificationGasLimit": "0x2",
                "preVerificationGas": "0x3",
            },
        }
    )
    user_operation.call_gas_limit = None
    user_operation.max_fee_per_gas = None
    with patch(
        "smart_account.bundler.bundler_client.send_rpc_request",
        send_rpc_request,
    ):
        gas_estimate = await BundlerClient(
            "http://bundler").estimate_user_operation_gas(user_operation)

    assert gas_estimate.call_gas_limit == 1
    assert gas_estimate.max_fee_per_gas is None
    url, method, params = send_rpc_request.await_args.args
    assert url == "http://bundler"
    assert method == "eth_estimateUserOperationGas"
    assert "callGasLimit" not in params[0]
    assert "maxFeePerGas" not in params[0]
    assert params[0]["nonce"] == "0x7"
    assert params[1] == DEFAULT_ENTRYPOINT_ADDRESS


@pytest.mark.asyncio
async def test_bundler_client_receipt_and_gas_price():
    send_rpc_request = AsyncMock(
        side_effect=[
            {"jsonrpc": "2.0", "id": 1, "result": None},
            {"jsonrpc": "2.0", "id": 1, "result": JSON_RECEIPT},
            {
                "jsonrpc": "2.0",
                "id": 1,
                "result": {
                    "slow": {
                        "maxFeePerGas": "0x1",
                        "maxPriorityFeePerGas": "0x1",
                    },
                    "standard": {
                        "maxFeePerGas": "0x3b9aca00",
                        "maxPriorityFeePerGas": "0x2",
                    },
                },
            },
        ]
    )
    bundler_client = BundlerClient("http://bundler")
    with patch(
        "smart_account.bundler.bundler_client.send_rpc_request",
        send_rpc_request,
    ):
        assert await bundler_client.get_user_operation_receipt(
            USER_OP_HASH) is None
        assert await bundler_client.get_user_operation_receipt(
            USER_OP_HASH) == get_receipt()
        assert await bundler_client.get_gas_fee_values() == \
            (1_000_000_000, 2)


@pytest.mark.asyncio
async def test_eth_client_queries():
    send_rpc_request = AsyncMock(
        side_effect=[
            {"jsonrpc": "2.0", "id": 1, "result": "0x6080"},
            {"jsonrpc": "2.0", "id": 1, "result": "0x"},
            {
                "jsonrpc": "2.0",
                "id": 1,
                "error": {"code": -32000, "message": "execution reverted"},
            },
        ]
    )
    eth_client = EthClient("http://node")
    with patch(
        "smart_account.utils.eth_client_utils.send_rpc_request",
        send_rpc_request,
    ):
        assert await eth_client.is_contract("0x" + "11" * 20)
        assert not await eth_client.is_contract("0x" + "11" * 20)
        with pytest.raises(ChainQueryError) as excinfo:
            await eth_client.call("0x" + "11" * 20, b"\x01")

    assert excinfo.value.method == "eth_call"
    assert excinfo.value.rpc_code == -32000


@pytest.mark.asyncio
async def test_eth_client_fee_data():
    async def send_rpc_request(url, method, params=None):
        results = {
            "eth_gasPrice": "0x64",
            "eth_getBlockByNumber": {"baseFeePerGas": "0xa"},
            "eth_maxPriorityFeePerGas": "0x2",
        }
        return {"jsonrpc": "2.0", "id": 1, "result": results[method]}

    with patch(
        "smart_account.utils.eth_client_utils.send_rpc_request",
        send_rpc_request,
    ):
        assert await EthClient("http://node").get_fee_data() == (22, 2)
