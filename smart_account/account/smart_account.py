import asyncio
import logging

from aiohttp import ClientError
from eth_abi import decode
from eth_abi.exceptions import DecodingError

from smart_account.account.address_resolver import AddressResolver
from smart_account.account.deployment_cache import DeploymentCache
from smart_account.account.models import \
    BuildUserOpOptions, NonceOptions, SmartAccountConfig, Transaction
from smart_account.account.module_registry import ModuleRegistry
from smart_account.bundler.bundler_client import BundlerClient
from smart_account.bundler.dispatch_gateway import \
    DispatchGateway, UserOpResponse, validate_user_operation
from smart_account.bundler.models import UserOpByHash
from smart_account.exceptions import \
    ChainQueryError, EmptyBatchError, IncompleteOperationError, \
    ModuleNotConfiguredError
from smart_account.gas.gas_manager import \
    DEFAULT_GAS_OVERHEADS, GasManager, GasOverheads
from smart_account.modules.base_validation_module import BaseValidationModule
from smart_account.modules.models import ModuleInfo
from smart_account.modules.multichain_validation_module import \
    MultiChainUserOp, MultiChainValidationModule
from smart_account.paymaster.models import \
    FeeQuotesOrDataResponse, PaymasterMode, PaymasterServiceData, \
    TokenPaymasterRequest
from smart_account.paymaster.paymaster_client import PaymasterClient
from smart_account.paymaster.paymaster_integrator import PaymasterIntegrator
from smart_account.typing import Address, UserOperationHash
from smart_account.user_operation.user_operation import \
    UserOperation, get_user_operation_hash_bytes
from smart_account.utils.encode import \
    encode_disable_module, encode_enable_module, encode_execute, \
    encode_execute_batch, encode_get_nonce, encode_is_module_enabled, \
    encode_module_signature, encode_setup_and_enable_module
from smart_account.utils.eth_client_utils import EthClient


class SmartAccount:
    """Builds, signs and sends user operations for one smart account.

    The default module fixes the account address. The active module signs.
    Operations of one account that depend on each other's nonce have to be
    sent one after another by the caller.
    """
    config: SmartAccountConfig
    eth_client: EthClient | None
    address_resolver: AddressResolver
    module_registry: ModuleRegistry
    deployment_cache: DeploymentCache | None
    gas_manager: GasManager
    paymaster_integrator: PaymasterIntegrator | None
    dispatch_gateway: DispatchGateway | None
    account_address: Address | None

    def __init__(
        self,
        config: SmartAccountConfig,
        default_module: BaseValidationModule,
        eth_client: EthClient | None = None,
        bundler_client: BundlerClient | None = None,
        paymaster_client: PaymasterClient | None = None,
        active_module: BaseValidationModule | None = None,
        gas_overheads: GasOverheads = DEFAULT_GAS_OVERHEADS,
    ):
        self.config = config
        self.eth_client = eth_client
        self.address_resolver = AddressResolver(
            config.factory_address,
            config.implementation_address,
            config.fallback_handler_address,
            eth_client,
        )
        self.module_registry = ModuleRegistry(default_module, active_module)

        if eth_client is not None:
            self.deployment_cache = DeploymentCache(eth_client)
        else:
            self.deployment_cache = None

        self.gas_manager = GasManager(
            eth_client,
            bundler_client,
            paymaster_client,
            config.entrypoint_address,
            gas_overheads,
            strict_sponsorship_mode=config.strict_sponsorship_mode,
        )

        if paymaster_client is not None:
            self.paymaster_integrator = PaymasterIntegrator(
                paymaster_client,
                self.gas_manager,
                config.strict_sponsorship_mode,
            )
        else:
            self.paymaster_integrator = None

        if bundler_client is not None:
            self.dispatch_gateway = DispatchGateway(bundler_client)
        else:
            self.dispatch_gateway = None

        self.account_address = config.account_address

    # modules

    def get_default_validation_module(self) -> BaseValidationModule:
        return self.module_registry.get_default()

    def get_active_validation_module(self) -> BaseValidationModule:
        return self.module_registry.get_active()

    def set_active_validation_module(
        self, module: BaseValidationModule
    ) -> None:
        self.module_registry.set_active(module)

    # deployment identity

    async def _get_default_module_setup(self) -> tuple[Address, bytes]:
        default_module = self.module_registry.get_default()
        return default_module.get_address(), await default_module.get_init_data()

    async def get_account_address(self) -> Address:
        if self.account_address is None:
            module_address, module_setup_data = \
                await self._get_default_module_setup()
            self.account_address = self.address_resolver.resolve_address(
                module_address, module_setup_data, self.config.index)
            logging.debug(
                f"counterfactual address of account index {self.config.index}"
                f" is {self.account_address}"
            )
        return self.account_address

    async def get_init_code(self) -> bytes:
        module_address, module_setup_data = \
            await self._get_default_module_setup()
        return self.address_resolver.get_init_code(
            module_address, module_setup_data, self.config.index)

    async def is_account_deployed(self) -> bool:
        if self.deployment_cache is None:
            logging.debug(
                "No ethereum node to check deployment, assuming undeployed")
            return False
        return await self.deployment_cache.is_deployed(
            await self.get_account_address())

    async def get_nonce(
        self, nonce_key: int = 0, is_deployed: bool | None = None
    ) -> int:
        """Nonce of the account for nonce_key.

        An undeployed account has never sent an operation, so its nonce is
        zero without asking the entrypoint.
        """
        undeployed_nonce = nonce_key << 64
        if is_deployed is None:
            is_deployed = await self.is_account_deployed()
        if not is_deployed:
            return undeployed_nonce

        account_address = await self.get_account_address()
        try:
            result = await self.eth_client.call(
                self.config.entrypoint_address,
                encode_get_nonce(account_address, nonce_key),
            )
            (nonce,) = decode(["uint256"], result)
        except (
            ChainQueryError, ClientError, DecodingError, ValueError
        ) as excp:
            logging.warning(
                f"Failed to get nonce of {account_address}, "
                f"falling back to {undeployed_nonce}. {excp}"
            )
            return undeployed_nonce
        return nonce

    # building

    def encode_execute(self, transaction: Transaction) -> bytes:
        return encode_execute(
            transaction.to, transaction.value, transaction.data)

    def encode_execute_batch(self, transactions: list[Transaction]) -> bytes:
        return encode_execute_batch(
            [transaction.to for transaction in transactions],
            [transaction.value for transaction in transactions],
            [transaction.data for transaction in transactions],
        )

    def get_call_data(
        self, transactions: list[Transaction], force_encode_for_batch: bool
    ) -> bytes:
        if len(transactions) == 0:
            raise EmptyBatchError()
        if len(transactions) > 1 or force_encode_for_batch:
            return self.encode_execute_batch(transactions)
        return self.encode_execute(transactions[0])

    async def get_dummy_signature(self, params: ModuleInfo | None = None) -> bytes:
        active_module = self.module_registry.get_active()
        return encode_module_signature(
            await active_module.get_dummy_signature(params),
            active_module.get_address(),
        )

    async def _resolve_nonce(
        self, nonce_options: NonceOptions, is_deployed: bool
    ) -> int:
        if nonce_options.nonce_override is not None:
            return nonce_options.nonce_override
        return await self.get_nonce(nonce_options.nonce_key, is_deployed)

    async def prepare_user_op(
        self,
        transactions: list[Transaction],
        options: BuildUserOpOptions | None = None,
    ) -> UserOperation:
        """Everything of build_user_op except gas estimation."""
        if options is None:
            options = BuildUserOpOptions()
        call_data = self.get_call_data(
            transactions, options.force_encode_for_batch)

        account_address = await self.get_account_address()
        is_deployed = await self.is_account_deployed()

        init_code = b"" if is_deployed else await self.get_init_code()
        nonce, dummy_signature = await asyncio.gather(
            self._resolve_nonce(options.nonce_options, is_deployed),
            self.get_dummy_signature(options.params),
        )

        return UserOperation(
            sender_address=account_address,
            nonce=nonce,
            init_code=init_code,
            call_data=call_data,
            paymaster_and_data=b"",
            signature=dummy_signature,
        )

    async def build_user_op(
        self,
        transactions: list[Transaction],
        options: BuildUserOpOptions | None = None,
    ) -> UserOperation:
        if options is None:
            options = BuildUserOpOptions()
        user_operation = await self.prepare_user_op(transactions, options)
        return await self.gas_manager.estimate(
            user_operation,
            options.overrides,
            options.skip_bundler_gas_estimation,
            options.paymaster_service_data,
        )

    # paymaster

    def _get_paymaster_integrator(self) -> PaymasterIntegrator:
        if self.paymaster_integrator is None:
            raise ValueError("No paymaster configured for the account")
        return self.paymaster_integrator

    async def attach_paymaster(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData | None = None,
    ) -> UserOperation:
        return await self._get_paymaster_integrator().attach(
            user_operation, paymaster_service_data)

    async def get_token_fees(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData,
    ) -> FeeQuotesOrDataResponse:
        return await self._get_paymaster_integrator().get_fee_quotes_or_data(
            user_operation, paymaster_service_data)

    async def build_token_paymaster_user_op(
        self,
        user_operation: UserOperation,
        token_paymaster_request: TokenPaymasterRequest,
    ) -> UserOperation:
        return await self._get_paymaster_integrator().build_token_user_op(
            user_operation, token_paymaster_request)

    # signing

    def get_user_op_hash(self, user_operation: UserOperation) -> bytes:
        return get_user_operation_hash_bytes(
            user_operation,
            self.config.entrypoint_address,
            self.config.chain_id,
        )

    async def sign_user_op_hash(
        self, user_op_hash: bytes, params: ModuleInfo | None = None
    ) -> bytes:
        active_module = self.module_registry.get_active()
        module_signature = await active_module.sign_user_op_hash(
            user_op_hash, params)
        return encode_module_signature(
            module_signature, active_module.get_address())

    async def sign_user_op(
        self, user_operation: UserOperation, params: ModuleInfo | None = None
    ) -> UserOperation:
        validate_user_operation(user_operation)
        active_module = self.module_registry.get_active()
        await active_module.validate_user_operation(user_operation, params)

        signed_user_operation = user_operation.copy()
        user_op_hash = self.get_user_op_hash(signed_user_operation)
        signed_user_operation.signature = await self.sign_user_op_hash(
            user_op_hash, params)
        logging.debug(
            f"signed user operation 0x{user_op_hash.hex()} with module "
            f"{active_module.get_address()}"
        )
        return signed_user_operation

    async def sign_batch(
        self, multi_chain_user_ops: list[MultiChainUserOp]
    ) -> list[UserOperation]:
        """One owner signature for operations on several chains. Every
        operation gets the same merkle root signature with its own proof."""
        active_module = self.module_registry.get_active()
        if not isinstance(active_module, MultiChainValidationModule):
            raise ModuleNotConfiguredError(
                "Batch signing needs a multichain validation module as the "
                "active module",
                "active",
            )
        for multi_chain_user_op in multi_chain_user_ops:
            validate_user_operation(multi_chain_user_op.user_operation)
        senders = {
            multi_chain_user_op.user_operation.sender_address.lower()
            for multi_chain_user_op in multi_chain_user_ops
        }
        if len(senders) > 1:
            raise IncompleteOperationError(
                "All user operations of a batch must have the same sender "
                f"but got {', '.join(sorted(senders))}",
                "sender_address",
            )

        module_signatures = await active_module.sign_user_ops(
            multi_chain_user_ops, self.config.entrypoint_address)

        signed_user_operations = []
        for multi_chain_user_op, module_signature in zip(
            multi_chain_user_ops, module_signatures
        ):
            signed_user_operation = multi_chain_user_op.user_operation.copy()
            signed_user_operation.signature = encode_module_signature(
                module_signature, active_module.get_address())
            signed_user_operations.append(signed_user_operation)
        return signed_user_operations

    async def sign_message(self, message: bytes | str) -> bytes:
        return await self.module_registry.get_active().sign_message(message)

    # sending

    def _get_dispatch_gateway(self) -> DispatchGateway:
        if self.dispatch_gateway is None:
            raise ValueError("No bundler configured for the account")
        return self.dispatch_gateway

    async def send_signed_user_op(
        self, user_operation: UserOperation
    ) -> UserOpResponse:
        return await self._get_dispatch_gateway().submit(user_operation)

    async def send_user_op(
        self, user_operation: UserOperation, params: ModuleInfo | None = None
    ) -> UserOpResponse:
        signed_user_operation = await self.sign_user_op(user_operation, params)
        return await self.send_signed_user_op(signed_user_operation)

    async def send_transaction(
        self,
        transactions: list[Transaction],
        options: BuildUserOpOptions | None = None,
    ) -> UserOpResponse:
        if options is None:
            options = BuildUserOpOptions()
        user_operation = await self.build_user_op(transactions, options)
        paymaster_service_data = options.paymaster_service_data
        if (
            paymaster_service_data is not None and
            paymaster_service_data.mode == PaymasterMode.SPONSORED
        ):
            user_operation = await self.attach_paymaster(
                user_operation, paymaster_service_data)
        return await self.send_user_op(user_operation, options.params)

    # account module management

    async def get_enable_module_data(
        self, module_address: Address
    ) -> Transaction:
        return Transaction(
            to=await self.get_account_address(),
            value=0,
            data=encode_enable_module(module_address),
        )

    async def get_setup_and_enable_module_data(
        self, module_address: Address, module_setup_data: bytes
    ) -> Transaction:
        return Transaction(
            to=await self.get_account_address(),
            value=0,
            data=encode_setup_and_enable_module(
                module_address, module_setup_data),
        )

    async def get_disable_module_data(
        self, prev_module_address: Address, module_address: Address
    ) -> Transaction:
        return Transaction(
            to=await self.get_account_address(),
            value=0,
            data=encode_disable_module(prev_module_address, module_address),
        )

    async def enable_module(self, module_address: Address) -> UserOpResponse:
        return await self.send_transaction(
            [await self.get_enable_module_data(module_address)])

    async def disable_module(
        self, prev_module_address: Address, module_address: Address
    ) -> UserOpResponse:
        return await self.send_transaction(
            [
                await self.get_disable_module_data(
                    prev_module_address, module_address)
            ]
        )

    async def is_module_enabled(self, module_address: Address) -> bool:
        if self.eth_client is None:
            raise ValueError("No ethereum node configured for the account")
        result = await self.eth_client.call(
            await self.get_account_address(),
            encode_is_module_enabled(module_address),
        )
        (is_enabled,) = decode(["bool"], result)
        return is_enabled

    async def get_user_op_by_hash(
        self, user_op_hash: UserOperationHash
    ) -> UserOpByHash | None:
        return await self._get_dispatch_gateway() \
            .bundler_client.get_user_operation_by_hash(user_op_hash)
