import os
import logging
import re
import sys
from argparse import ArgumentParser, Namespace, ArgumentTypeError
from dataclasses import dataclass
from importlib.metadata import version

import aiohttp
from eth_account import Account
from eth_account.signers.local import LocalAccount

from smart_account.account.models import SmartAccountConfig
from smart_account.constants import \
    DEFAULT_ENTRYPOINT_ADDRESS, DEFAULT_FACTORY_ADDRESS
from smart_account.utils.eth_client_utils import send_rpc_request

from .typing import Address

SMART_ACCOUNT_HEADER = "\n".join(
    (
        r"  ____                       _      _                            _   ",
        r" / ___| _ __ ___   __ _ _ __| |_   / \   ___ ___ ___  _   _ _ __ | |_ ",
        r" \___ \| '_ ` _ \ / _` | '__| __| / _ \ / __/ __/ _ \| | | | '_ \| __|",
        r"  ___) | | | | | | (_| | |  | |_ / ___ \ (_| (_| (_) | |_| | | | | |_ ",
        r" |____/|_| |_| |_|\__,_|_|   \__/_/   \_\___\___\___/ \__,_|_| |_|\__|",
    )
)
__version__ = version("smart_account")


@dataclass()
class InitData:
    ethereum_node_url: str
    bundler_url: str | None
    paymaster_url: str | None
    chain_id: int
    entrypoint: Address
    factory: Address
    owner: LocalAccount
    index: int
    strict_sponsorship_mode: bool
    to: Address | None
    value: int
    data: bytes

    def to_smart_account_config(self) -> SmartAccountConfig:
        return SmartAccountConfig(
            chain_id=self.chain_id,
            entrypoint_address=self.entrypoint,
            factory_address=self.factory,
            index=self.index,
            strict_sponsorship_mode=self.strict_sponsorship_mode,
        )


def address(ep: str):
    address_pattern = "^0x[0-9,a-f,A-F]{40}$"
    if not isinstance(ep, str) or re.match(address_pattern, ep) is None:
        raise ArgumentTypeError(f"Wrong address format : {ep}")
    return ep


def unsigned_int(value):
    ivalue = int(value)
    if ivalue < 0:
        raise ArgumentTypeError(
                "%s is an invalid unsigned int value" % value)
    return ivalue


def hex_bytes(value: str) -> bytes:
    try:
        return bytes.fromhex(value.removeprefix("0x"))
    except ValueError:
        raise ArgumentTypeError(f"Wrong hex format : {value}")


def _get_env_or_default(env_var, default, value_type):
    """
    Helper function to get the value from an environment variable or return
    the default value.
    """
    value = os.getenv(env_var, None)
    if value is not None:
        return value_type(value)
    return default


def initialize_argument_parser() -> ArgumentParser:
    parser = ArgumentParser(
        prog="SmartAccount",
        description="EIP-4337 v0.6 python smart account client",
    )

    parser.add_argument(
        "--owner_secret",
        type=str,
        help="Private key of the account owner",
        nargs="?",
        default=_get_env_or_default("SMART_ACCOUNT_OWNER_SECRET", None, str),
    )

    parser.add_argument(
        "--ethereum_node_url",
        type=str,
        help="Eth Client Http Url - defaults to http://0.0.0.0:8545",
        nargs="?",
        const="http://0.0.0.0:8545",
        default=_get_env_or_default(
            "SMART_ACCOUNT_ETHEREUM_NODE_URL", "http://0.0.0.0:8545", str),
    )

    parser.add_argument(
        "--bundler_url",
        type=str,
        help="Bundler Http Url - required to send transactions",
        nargs="?",
        default=_get_env_or_default("SMART_ACCOUNT_BUNDLER_URL", None, str),
    )

    parser.add_argument(
        "--paymaster_url",
        type=str,
        help="Paymaster Http Url - enables sponsored transactions",
        nargs="?",
        default=_get_env_or_default("SMART_ACCOUNT_PAYMASTER_URL", None, str),
    )

    parser.add_argument(
        "--chain_id",
        type=unsigned_int,
        help="chain id, has to match the chain id of the eth node",
        nargs="?",
        default=_get_env_or_default(
            "SMART_ACCOUNT_CHAIN_ID", None, unsigned_int),
    )

    parser.add_argument(
        "--entrypoint",
        type=address,
        help=f"EntryPoint v0.6 address - defaults to {DEFAULT_ENTRYPOINT_ADDRESS}",
        nargs="?",
        const=DEFAULT_ENTRYPOINT_ADDRESS,
        default=_get_env_or_default(
            "SMART_ACCOUNT_ENTRYPOINT", DEFAULT_ENTRYPOINT_ADDRESS, address),
    )

    parser.add_argument(
        "--factory",
        type=address,
        help=f"Account factory address - defaults to {DEFAULT_FACTORY_ADDRESS}",
        nargs="?",
        const=DEFAULT_FACTORY_ADDRESS,
        default=_get_env_or_default(
            "SMART_ACCOUNT_FACTORY", DEFAULT_FACTORY_ADDRESS, address),
    )

    parser.add_argument(
        "--index",
        type=unsigned_int,
        help="Account index of the owner - defaults to 0",
        nargs="?",
        const=0,
        default=_get_env_or_default("SMART_ACCOUNT_INDEX", 0, unsigned_int),
    )

    parser.add_argument(
        "--strict_sponsorship_mode",
        help="fail instead of sending self funded when the paymaster fails",
        nargs="?",
        const=True,
        default=_get_env_or_default(
            "SMART_ACCOUNT_STRICT_SPONSORSHIP_MODE", False,
            lambda v: v.lower() == "true"),
    )

    parser.add_argument(
        "--to",
        type=address,
        help="target of the transaction to send, only the address is shown "
        "when not set",
        nargs="?",
        default=None,
    )

    parser.add_argument(
        "--value",
        type=unsigned_int,
        help="wei value of the transaction to send - defaults to 0",
        nargs="?",
        const=0,
        default=0,
    )

    parser.add_argument(
        "--data",
        type=hex_bytes,
        help="hex call data of the transaction to send - defaults to 0x",
        nargs="?",
        const=b"",
        default=b"",
    )

    parser.add_argument(
        "--verbose",
        help="show debug log",
        nargs="?",
        const=True,
        default=_get_env_or_default(
            "SMART_ACCOUNT_VERBOSE", False, lambda v: v.lower() == "true"),
    )

    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s " + "version " + __version__,
    )

    return parser


async def parse_args(cmd_args: list[str]) -> InitData:
    argument_parser: ArgumentParser = initialize_argument_parser()
    args = argument_parser.parse_args(cmd_args)
    if not args.owner_secret:
        argument_parser.error(
            "You must specify --owner_secret or set the "
            "SMART_ACCOUNT_OWNER_SECRET environment variable.")
    if args.chain_id is None:
        argument_parser.error(
            "You must specify --chain_id or set the SMART_ACCOUNT_CHAIN_ID "
            "environment variable.")
    if args.to is not None and args.bundler_url is None:
        argument_parser.error(
            "--bundler_url is required to send a transaction")
    init_data = await get_init_data(args)
    return init_data


def init_logging(args: Namespace):
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s.%(msecs)03d %(levelname)s %(message)s",
        datefmt="%b %d %H:%M:%S",
    )

    logging.getLogger("SmartAccount")


def init_owner(args: Namespace) -> LocalAccount:
    try:
        return Account.from_key(args.owner_secret)
    except ValueError:
        logging.critical("Invalid owner secret")
        sys.exit(1)


async def check_valid_ethereum_rpc_and_get_chain_id(ethereum_node_url) -> str:
    try:
        chain_id_hex = await send_rpc_request(
            ethereum_node_url,
            "eth_chainId",
            [],
        )
    except aiohttp.client_exceptions.ClientConnectorError:
        logging.critical(
            f"Connection refused for Eth node {ethereum_node_url}")
        sys.exit(1)
    except (aiohttp.ClientError, ValueError):
        logging.critical(
            f"Error when connecting to Eth node {ethereum_node_url}")
        sys.exit(1)
    if "result" not in chain_id_hex:
        logging.critical(f"Invalid Eth node {ethereum_node_url}")
        sys.exit(1)
    return chain_id_hex["result"]


async def get_init_data(args: Namespace) -> InitData:
    init_logging(args)

    ethereum_node_chain_id_hex = \
        await check_valid_ethereum_rpc_and_get_chain_id(args.ethereum_node_url)

    if hex(args.chain_id) != ethereum_node_chain_id_hex.lower():
        logging.critical(
            f"Invalid chain id {args.chain_id} with Eth node "
            f"{args.ethereum_node_url}"
        )
        sys.exit(1)

    owner = init_owner(args)

    ret = InitData(
        args.ethereum_node_url,
        args.bundler_url,
        args.paymaster_url,
        args.chain_id,
        Address(args.entrypoint),
        Address(args.factory),
        owner,
        args.index,
        bool(args.strict_sponsorship_mode),
        args.to,
        args.value,
        args.data,
    )

    if args.verbose:
        print(SMART_ACCOUNT_HEADER)
        print("version : " + __version__)

    logging.info(f"Smart account owner {owner.address}")

    return ret
