from dataclasses import dataclass
import logging
import math
from typing import cast

from aiohttp import ClientError

from smart_account.account.models import GasOverrides
from smart_account.bundler.bundler_client import BundlerClient
from smart_account.bundler.models import UserOpGasEstimate
from smart_account.constants import \
    DEFAULT_ENTRYPOINT_ADDRESS, DEFAULT_GAS_LIMITS, \
    DUMMY_PAYMASTER_AND_DATA_LENGTH
from smart_account.exceptions import \
    BundlerError, ChainQueryError, GasEstimationError, SponsorshipError
from smart_account.paymaster.models import \
    PaymasterMode, PaymasterServiceData, SponsorUserOperationResponse
from smart_account.paymaster.paymaster_client import PaymasterClient
from smart_account.typing import Address
from smart_account.user_operation.user_operation import \
    UserOperation, pack_user_operation
from smart_account.utils.eth_client_utils import EthClient

GAS_FIELDS = [
    "call_gas_limit",
    "verification_gas_limit",
    "pre_verification_gas",
    "max_fee_per_gas",
    "max_priority_fee_per_gas",
]
# pre_verification_gas is never taken from a remote source
REMOTE_GAS_FIELDS = [
    "call_gas_limit",
    "verification_gas_limit",
    "max_fee_per_gas",
    "max_priority_fee_per_gas",
]
FEE_FIELDS = ["max_fee_per_gas", "max_priority_fee_per_gas"]


@dataclass
class GasOverheads:
    fixed: int = 21000
    per_user_op: int = 18300
    per_user_op_word: int = 4
    zero_byte: int = 4
    non_zero_byte: int = 16
    bundle_size: int = 1
    sig_size: int = 65


DEFAULT_GAS_OVERHEADS = GasOverheads()


def calc_preverification_gas(
    user_operation: UserOperation,
    gas_overheads: GasOverheads = DEFAULT_GAS_OVERHEADS,
) -> int:
    user_operation_list = user_operation.to_list()

    user_operation_list[6] = gas_overheads.fixed

    # set a dummy signature only if the user didn't supply any
    if len(cast(bytes, user_operation_list[10])) < gas_overheads.sig_size:
        user_operation_list[10] = b"\x01" * gas_overheads.sig_size

    packed = pack_user_operation(user_operation_list, False)
    packed_length = len(packed)
    zero_byte_count = packed.count(b"\x00")
    non_zero_byte_count = packed_length - zero_byte_count
    call_data_cost = (
        zero_byte_count * gas_overheads.zero_byte
        + non_zero_byte_count * gas_overheads.non_zero_byte
    )

    length_in_words = math.ceil((packed_length + 31) / 32)

    pre_verification_gas = (
        call_data_cost
        + (gas_overheads.fixed / gas_overheads.bundle_size)
        + gas_overheads.per_user_op
        + gas_overheads.per_user_op_word * length_in_words
    )

    return math.ceil(pre_verification_gas)


class GasManager:
    """Fills the gas fields of a user operation.

    Every field is resolved on its own, first source wins: caller
    overrides, the sponsoring paymaster, the bundler estimate and finally
    direct chain queries. Pre verification gas is always computed locally
    from the populated operation.
    """
    eth_client: EthClient | None
    bundler_client: BundlerClient | None
    paymaster_client: PaymasterClient | None
    entrypoint_address: Address
    gas_overheads: GasOverheads
    default_gas_limits: dict[str, int]
    strict_sponsorship_mode: bool

    def __init__(
        self,
        eth_client: EthClient | None = None,
        bundler_client: BundlerClient | None = None,
        paymaster_client: PaymasterClient | None = None,
        entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS,
        gas_overheads: GasOverheads = DEFAULT_GAS_OVERHEADS,
        default_gas_limits: dict[str, int] | None = None,
        strict_sponsorship_mode: bool = False,
    ):
        self.eth_client = eth_client
        self.bundler_client = bundler_client
        self.paymaster_client = paymaster_client
        self.entrypoint_address = entrypoint_address
        self.gas_overheads = gas_overheads
        if default_gas_limits is None:
            default_gas_limits = DEFAULT_GAS_LIMITS
        self.default_gas_limits = default_gas_limits
        self.strict_sponsorship_mode = strict_sponsorship_mode

    async def estimate(
        self,
        user_operation: UserOperation,
        overrides: GasOverrides | None = None,
        skip_bundler_gas_estimation: bool = False,
        paymaster_service_data: PaymasterServiceData | None = None,
    ) -> UserOperation:
        estimated_user_operation = user_operation.copy()
        gas_values: dict[str, int | None] = {
            gas_field: None for gas_field in GAS_FIELDS}

        if overrides is not None:
            for gas_field in GAS_FIELDS:
                gas_values[gas_field] = getattr(overrides, gas_field)

        sponsor_response = None
        if self._is_missing(gas_values, REMOTE_GAS_FIELDS):
            sponsor_response = await self._fill_from_sponsor(
                estimated_user_operation, gas_values, paymaster_service_data)

        if (
            self._is_missing(gas_values, REMOTE_GAS_FIELDS) and
            not skip_bundler_gas_estimation
        ):
            await self._fill_from_bundler(estimated_user_operation, gas_values)

        if self._is_missing(gas_values, REMOTE_GAS_FIELDS):
            await self._fill_from_chain(estimated_user_operation, gas_values)

        for gas_field in REMOTE_GAS_FIELDS:
            setattr(estimated_user_operation, gas_field, gas_values[gas_field])

        if gas_values["pre_verification_gas"] is not None:
            estimated_user_operation.pre_verification_gas = \
                gas_values["pre_verification_gas"]
        else:
            estimated_user_operation.pre_verification_gas = \
                self.get_preverification_gas(
                    estimated_user_operation,
                    paymaster_service_data,
                    sponsor_response,
                )

        estimated_gas = {
            gas_field: getattr(estimated_user_operation, gas_field)
            for gas_field in GAS_FIELDS
        }
        logging.debug(
            "estimated gas for user operation of "
            f"{estimated_user_operation.sender_address}: {estimated_gas}"
        )
        return estimated_user_operation

    @staticmethod
    def _is_missing(
        gas_values: dict[str, int | None], gas_fields: list[str]
    ) -> bool:
        return any(gas_values[gas_field] is None for gas_field in gas_fields)

    @staticmethod
    def _fill_missing(
        gas_values: dict[str, int | None],
        source: UserOpGasEstimate,
        gas_fields: list[str],
    ) -> None:
        for gas_field in gas_fields:
            if gas_values[gas_field] is None:
                gas_values[gas_field] = getattr(source, gas_field)

    async def _fill_from_sponsor(
        self,
        user_operation: UserOperation,
        gas_values: dict[str, int | None],
        paymaster_service_data: PaymasterServiceData | None,
    ) -> SponsorUserOperationResponse | None:
        if (
            paymaster_service_data is None or
            paymaster_service_data.mode != PaymasterMode.SPONSORED or
            not paymaster_service_data.calculate_gas_limits or
            self.paymaster_client is None
        ):
            return None
        try:
            sponsor_response = await self.paymaster_client.sponsor_user_operation(
                user_operation, paymaster_service_data)
        except SponsorshipError as excp:
            if self.strict_sponsorship_mode:
                raise
            logging.warning(
                f"Paymaster gas estimation failed, falling back. {excp.message}")
            return None
        for gas_field in ["call_gas_limit", "verification_gas_limit"]:
            if gas_values[gas_field] is None:
                gas_values[gas_field] = getattr(sponsor_response, gas_field)
        return sponsor_response

    def get_preverification_gas(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData | None = None,
        sponsor_response: SponsorUserOperationResponse | None = None,
    ) -> int:
        """paymasterAndData is attached after estimation, so a sponsored
        operation is priced with a placeholder of the paymaster's length."""
        if (
            paymaster_service_data is None or
            paymaster_service_data.mode != PaymasterMode.SPONSORED or
            len(user_operation.paymaster_and_data) > 0
        ):
            return calc_preverification_gas(
                user_operation, self.gas_overheads)

        paymaster_and_data_length = DUMMY_PAYMASTER_AND_DATA_LENGTH
        if sponsor_response is not None:
            paymaster_and_data_length = max(
                paymaster_and_data_length,
                len(sponsor_response.paymaster_and_data),
            )
        priced_user_operation = user_operation.copy()
        priced_user_operation.paymaster_and_data = \
            b"\x01" * paymaster_and_data_length
        return calc_preverification_gas(
            priced_user_operation, self.gas_overheads)

    async def _fill_from_bundler(
        self,
        user_operation: UserOperation,
        gas_values: dict[str, int | None],
    ) -> None:
        if self.bundler_client is None:
            return
        try:
            bundler_estimate = \
                await self.bundler_client.estimate_user_operation_gas(
                    user_operation)
        except (BundlerError, ClientError, ValueError) as excp:
            logging.warning(
                f"Bundler gas estimation failed, falling back. {excp}")
            return
        self._fill_missing(gas_values, bundler_estimate, REMOTE_GAS_FIELDS)

        if self._is_missing(gas_values, FEE_FIELDS):
            try:
                max_fee_per_gas, max_priority_fee_per_gas = \
                    await self.bundler_client.get_gas_fee_values()
            except (BundlerError, ClientError, ValueError, KeyError) as excp:
                logging.debug(f"Bundler gas price lookup failed. {excp}")
                return
            self._fill_missing(
                gas_values,
                UserOpGasEstimate(
                    max_fee_per_gas=max_fee_per_gas,
                    max_priority_fee_per_gas=max_priority_fee_per_gas,
                ),
                FEE_FIELDS,
            )

    async def _fill_from_chain(
        self,
        user_operation: UserOperation,
        gas_values: dict[str, int | None],
    ) -> None:
        missing_fields = [
            gas_field for gas_field in REMOTE_GAS_FIELDS
            if gas_values[gas_field] is None
        ]
        if self.eth_client is None:
            raise GasEstimationError(
                f"No gas source left for {', '.join(missing_fields)}. "
                "Configure an ethereum node or a bundler.",
                "ethereum_node",
            )
        logging.info(
            f"Estimating {', '.join(missing_fields)} from the ethereum node")
        try:
            if self._is_missing(gas_values, FEE_FIELDS):
                max_fee_per_gas, max_priority_fee_per_gas = \
                    await self.eth_client.get_fee_data()
                self._fill_missing(
                    gas_values,
                    UserOpGasEstimate(
                        max_fee_per_gas=max_fee_per_gas,
                        max_priority_fee_per_gas=max_priority_fee_per_gas,
                    ),
                    FEE_FIELDS,
                )
            if gas_values["verification_gas_limit"] is None:
                gas_values["verification_gas_limit"] = \
                    await self.get_verification_gas_limit(user_operation)
            if gas_values["call_gas_limit"] is None:
                gas_values["call_gas_limit"] = \
                    await self.eth_client.estimate_gas(
                        user_operation.sender_address,
                        user_operation.call_data,
                        self.entrypoint_address,
                    )
        except (ChainQueryError, ClientError, ValueError) as excp:
            raise GasEstimationError(
                f"Local gas estimation failed : {excp}", "ethereum_node")

    async def estimate_creation_gas(self, init_code: bytes) -> int:
        if len(init_code) == 0:
            return 0
        factory_address = Address("0x" + init_code[:20].hex())
        return await self.eth_client.estimate_gas(
            factory_address, init_code[20:])

    async def get_verification_gas_limit(
        self, user_operation: UserOperation
    ) -> int:
        """max(creation + validateUserOp + validatePaymasterUserOp +
        signature bytes overhead, postOp)"""
        init_gas = await self.estimate_creation_gas(user_operation.init_code)
        signature_overhead = \
            len(user_operation.signature) * self.gas_overheads.non_zero_byte
        verification_gas_limit = (
            init_gas
            + self.default_gas_limits["validate_user_op_gas"]
            + self.default_gas_limits["validate_paymaster_user_op_gas"]
            + signature_overhead
        )
        return max(
            verification_gas_limit, self.default_gas_limits["post_op_gas"])
