from unittest.mock import AsyncMock, patch

import pytest

from smart_account.cli_manager import \
    initialize_argument_parser, parse_args
from smart_account.constants import \
    DEFAULT_ENTRYPOINT_ADDRESS, DEFAULT_FACTORY_ADDRESS
from smart_account.main import build_smart_account

from conftest import CHAIN_ID, OWNER_SECRET, TARGET_ADDRESS

FACTORY_ADDRESS = "0x" + "fa" * 20


def chain_id_response(chain_id=CHAIN_ID):
    return AsyncMock(
        return_value={"jsonrpc": "2.0", "id": 1, "result": hex(chain_id)})


def test_parser_defaults(monkeypatch):
    monkeypatch.delenv("SMART_ACCOUNT_INDEX", raising=False)
    monkeypatch.delenv("SMART_ACCOUNT_FACTORY", raising=False)

    args = initialize_argument_parser().parse_args([])

    assert args.ethereum_node_url == "http://0.0.0.0:8545"
    assert args.entrypoint == DEFAULT_ENTRYPOINT_ADDRESS
    assert args.factory == DEFAULT_FACTORY_ADDRESS
    assert args.index == 0
    assert args.value == 0
    assert args.data == b""
    assert args.to is None


def test_parser_reads_environment(monkeypatch):
    monkeypatch.setenv("SMART_ACCOUNT_CHAIN_ID", str(CHAIN_ID))
    monkeypatch.setenv("SMART_ACCOUNT_FACTORY", FACTORY_ADDRESS)
    monkeypatch.setenv("SMART_ACCOUNT_INDEX", "4")
    monkeypatch.setenv("SMART_ACCOUNT_STRICT_SPONSORSHIP_MODE", "True")

    args = initialize_argument_parser().parse_args(["--index", "5"])

    assert args.chain_id == CHAIN_ID
    assert args.factory == FACTORY_ADDRESS
    assert args.index == 5
    assert args.strict_sponsorship_mode is True


@pytest.mark.parametrize(
    "cmd_args",
    [
        ["--to", "0x1234"],
        ["--factory", "not an address"],
        ["--index", "-1"],
        ["--data", "0xzz"],
    ],
)
def test_parser_rejects_malformed_values(cmd_args):
    with pytest.raises(SystemExit):
        initialize_argument_parser().parse_args(cmd_args)


@pytest.mark.asyncio
async def test_parse_args(monkeypatch):
    monkeypatch.delenv("SMART_ACCOUNT_PAYMASTER_URL", raising=False)
    send_rpc_request = chain_id_response()
    with patch("smart_account.cli_manager.send_rpc_request", send_rpc_request):
        init_data = await parse_args(
            [
                "--owner_secret", OWNER_SECRET,
                "--chain_id", str(CHAIN_ID),
                "--bundler_url", "http://bundler",
                "--to", TARGET_ADDRESS,
                "--value", "10",
                "--data", "0x1234",
            ]
        )

    assert init_data.chain_id == CHAIN_ID
    assert init_data.owner.key.hex().removeprefix("0x") == OWNER_SECRET[2:]
    assert init_data.to == TARGET_ADDRESS
    assert init_data.value == 10
    assert init_data.data == b"\x12\x34"
    assert init_data.paymaster_url is None
    send_rpc_request.assert_awaited_once_with(
        "http://0.0.0.0:8545", "eth_chainId", [])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "cmd_args",
    [
        ["--chain_id", str(CHAIN_ID)],
        ["--owner_secret", OWNER_SECRET],
        [
            "--owner_secret", OWNER_SECRET,
            "--chain_id", str(CHAIN_ID),
            "--to", TARGET_ADDRESS,
        ],
    ],
)
async def test_parse_args_requires_owner_chain_and_bundler(
    monkeypatch, cmd_args
):
    monkeypatch.delenv("SMART_ACCOUNT_OWNER_SECRET", raising=False)
    monkeypatch.delenv("SMART_ACCOUNT_CHAIN_ID", raising=False)
    monkeypatch.delenv("SMART_ACCOUNT_BUNDLER_URL", raising=False)
    send_rpc_request = chain_id_response()
    with patch("smart_account.cli_manager.send_rpc_request", send_rpc_request):
        with pytest.raises(SystemExit):
            await parse_args(cmd_args)

    send_rpc_request.assert_not_awaited()


@pytest.mark.asyncio
async def test_parse_args_rejects_chain_id_mismatch():
    with patch(
        "smart_account.cli_manager.send_rpc_request", chain_id_response(1)
    ):
        with pytest.raises(SystemExit):
            await parse_args(
                ["--owner_secret", OWNER_SECRET, "--chain_id", str(CHAIN_ID)])


@pytest.mark.asyncio
async def test_build_smart_account(owner):
    send_rpc_request = chain_id_response()
    with patch("smart_account.cli_manager.send_rpc_request", send_rpc_request):
        init_data = await parse_args(
            [
                "--owner_secret", OWNER_SECRET,
                "--chain_id", str(CHAIN_ID),
                "--factory", FACTORY_ADDRESS,
                "--index", "2",
                "--paymaster_url", "http://paymaster",
                "--strict_sponsorship_mode",
            ]
        )

    smart_account = build_smart_account(init_data)

    assert smart_account.config.chain_id == CHAIN_ID
    assert smart_account.config.factory_address == FACTORY_ADDRESS
    assert smart_account.config.index == 2
    assert smart_account.config.strict_sponsorship_mode
    assert smart_account.eth_client.ethereum_node_url == \
        "http://0.0.0.0:8545"
    assert smart_account.dispatch_gateway is None
    assert smart_account.paymaster_integrator is not None
    assert smart_account.get_default_validation_module().signer.address == \
        owner.address
