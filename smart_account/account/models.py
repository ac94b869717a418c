from dataclasses import dataclass, field

from smart_account.constants import \
    DEFAULT_ENTRYPOINT_ADDRESS, DEFAULT_FACTORY_ADDRESS, \
    DEFAULT_FALLBACK_HANDLER_ADDRESS, DEFAULT_IMPLEMENTATION_ADDRESS
from smart_account.modules.models import ModuleInfo
from smart_account.paymaster.models import PaymasterServiceData
from smart_account.typing import Address


@dataclass
class Transaction:
    to: Address
    value: int = 0
    data: bytes = b""


@dataclass
class GasOverrides:
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None
    max_fee_per_gas: int | None = None
    max_priority_fee_per_gas: int | None = None


@dataclass
class NonceOptions:
    nonce_key: int = 0
    nonce_override: int | None = None


@dataclass
class BuildUserOpOptions:
    overrides: GasOverrides = field(default_factory=GasOverrides)
    skip_bundler_gas_estimation: bool = False
    nonce_options: NonceOptions = field(default_factory=NonceOptions)
    force_encode_for_batch: bool = False
    params: ModuleInfo = field(default_factory=ModuleInfo)
    # sponsored mode takes the call and verification gas limits from the
    # paymaster
    paymaster_service_data: PaymasterServiceData | None = None


@dataclass
class SmartAccountConfig:
    chain_id: int
    entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS
    factory_address: Address = DEFAULT_FACTORY_ADDRESS
    implementation_address: Address = DEFAULT_IMPLEMENTATION_ADDRESS
    fallback_handler_address: Address = DEFAULT_FALLBACK_HANDLER_ADDRESS
    index: int = 0
    # skips the counterfactual address derivation when set
    account_address: Address | None = None
    strict_sponsorship_mode: bool = False
