#!/user/bin/python3

from unittest.mock import AsyncMock

import pytest
from eth_abi import encode
from eth_account import Account

from smart_account.account.models import SmartAccountConfig
from smart_account.account.smart_account import SmartAccount
from smart_account.bundler.bundler_client import BundlerClient
from smart_account.bundler.models import UserOpGasEstimate
from smart_account.modules.ecdsa_ownership_validation_module import \
    ECDSAOwnershipValidationModule
from smart_account.paymaster.models import SponsorUserOperationResponse
from smart_account.paymaster.paymaster_client import PaymasterClient
from smart_account.typing import Address, UserOperationHash
from smart_account.user_operation.user_operation import UserOperation
from smart_account.utils.encode import encode_execute
from smart_account.utils.eth_client_utils import EthClient

CHAIN_ID = 1337
OWNER_SECRET = \
    "0x897368deaa9f3797c02570ef7d3fa4df179b0fc7ad8d8fc2547d04701604eb72"
SESSION_SECRET = \
    "0x4c0883a69102937d6231471b5dbb6204fe5129617082792ae468d01a3f362318"
TARGET_ADDRESS = Address("0x" + "aa" * 20)
USER_OP_HASH = UserOperationHash("0x" + "ab" * 32)

BUNDLER_GAS_ESTIMATE = UserOpGasEstimate(
    call_gas_limit=70_000,
    verification_gas_limit=150_000,
    pre_verification_gas=1,
    max_fee_per_gas=3_000_000_000,
    max_priority_fee_per_gas=1_500_000_000,
)
CHAIN_FEE_DATA = (2_000_000_000, 1_000_000_000)
CHAIN_CALL_GAS = 50_000
SPONSOR_PAYMASTER_AND_DATA = bytes.fromhex("cc" * 20 + "0102")


@pytest.fixture
def owner():
    return Account.from_key(OWNER_SECRET)


@pytest.fixture
def session_signer():
    return Account.from_key(SESSION_SECRET)


@pytest.fixture
def ecdsa_module(owner):
    return ECDSAOwnershipValidationModule(owner)


@pytest.fixture
def eth_client():
    """
    Chain with an undeployed account
    """
    client = AsyncMock(spec=EthClient)
    client.is_contract.return_value = False
    client.call.return_value = encode(["uint256"], [0])
    client.get_fee_data.return_value = CHAIN_FEE_DATA
    client.estimate_gas.return_value = CHAIN_CALL_GAS
    return client


@pytest.fixture
def deployed_eth_client(eth_client):
    eth_client.is_contract.return_value = True
    eth_client.call.return_value = encode(["uint256"], [3])
    return eth_client


@pytest.fixture
def bundler_client():
    client = AsyncMock(spec=BundlerClient)
    client.estimate_user_operation_gas.return_value = BUNDLER_GAS_ESTIMATE
    client.get_gas_fee_values.return_value = (4_000_000_000, 2_000_000_000)
    client.send_user_operation.return_value = USER_OP_HASH
    client.get_user_operation_receipt.return_value = None
    return client


@pytest.fixture
def paymaster_client():
    client = AsyncMock(spec=PaymasterClient)
    client.sponsor_user_operation.return_value = SponsorUserOperationResponse(
        paymaster_and_data=SPONSOR_PAYMASTER_AND_DATA,
        call_gas_limit=90_000,
        verification_gas_limit=190_000,
        pre_verification_gas=2,
    )
    return client


@pytest.fixture
def smart_account_config():
    return SmartAccountConfig(chain_id=CHAIN_ID)


@pytest.fixture
def smart_account(
    smart_account_config, ecdsa_module, eth_client, bundler_client,
    paymaster_client
):
    return SmartAccount(
        smart_account_config,
        ecdsa_module,
        eth_client=eth_client,
        bundler_client=bundler_client,
        paymaster_client=paymaster_client,
    )


@pytest.fixture
def user_operation():
    """
    Fully populated unsigned user operation
    """
    return UserOperation(
        sender_address=Address("0x" + "11" * 20),
        nonce=7,
        init_code=b"",
        call_data=encode_execute(TARGET_ADDRESS, 10, b""),
        call_gas_limit=100_000,
        verification_gas_limit=200_000,
        pre_verification_gas=50_000,
        max_fee_per_gas=3_000_000_000,
        max_priority_fee_per_gas=1_000_000_000,
        paymaster_and_data=b"",
        signature=b"",
    )
