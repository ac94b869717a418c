import asyncio
import logging
import sys

import uvloop

from smart_account.account.models import BuildUserOpOptions, Transaction
from smart_account.account.smart_account import SmartAccount
from smart_account.bundler.bundler_client import BundlerClient
from smart_account.modules.ecdsa_ownership_validation_module import \
    ECDSAOwnershipValidationModule
from smart_account.paymaster.models import \
    PaymasterMode, PaymasterServiceData
from smart_account.paymaster.paymaster_client import PaymasterClient
from smart_account.utils.eth_client_utils import EthClient

from .cli_manager import InitData, parse_args


def build_smart_account(init_data: InitData) -> SmartAccount:
    config = init_data.to_smart_account_config()
    ecdsa_module = ECDSAOwnershipValidationModule(
        init_data.owner, entrypoint_address=config.entrypoint_address)

    bundler_client = None
    if init_data.bundler_url is not None:
        bundler_client = BundlerClient(
            init_data.bundler_url, config.entrypoint_address)

    paymaster_client = None
    if init_data.paymaster_url is not None:
        paymaster_client = PaymasterClient(init_data.paymaster_url)

    return SmartAccount(
        config,
        ecdsa_module,
        eth_client=EthClient(init_data.ethereum_node_url),
        bundler_client=bundler_client,
        paymaster_client=paymaster_client,
    )


async def main(cmd_args=sys.argv[1:]) -> None:
    init_data = await parse_args(cmd_args)
    smart_account = build_smart_account(init_data)

    account_address = await smart_account.get_account_address()
    is_deployed = await smart_account.is_account_deployed()
    print(f"account : {account_address}")
    print(f"deployed : {is_deployed}")

    if init_data.to is None:
        return

    options = BuildUserOpOptions()
    if init_data.paymaster_url is not None:
        options.paymaster_service_data = PaymasterServiceData(
            mode=PaymasterMode.SPONSORED)

    user_op_response = await smart_account.send_transaction(
        [Transaction(init_data.to, init_data.value, init_data.data)],
        options,
    )
    print(f"user operation hash : {user_op_response.user_op_hash}")

    receipt = await user_op_response.wait()
    if receipt is None:
        logging.warning("user operation not included yet")
        return
    print(f"transaction hash : {receipt.receipt.transaction_hash}")
    print(f"success : {receipt.success}")


def run() -> None:
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    asyncio.run(main())


if __name__ == "__main__":
    run()
