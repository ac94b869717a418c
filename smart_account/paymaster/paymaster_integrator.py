from dataclasses import replace
import logging

from smart_account.account.models import GasOverrides
from smart_account.constants import ADDRESS_ZERO, NATIVE_TOKEN_ALIAS
from smart_account.exceptions import \
    CallDataDecodeError, InvalidFieldError, SponsorshipError
from smart_account.gas.gas_manager import GasManager
from smart_account.paymaster.models import \
    FeeQuotesOrDataResponse, PaymasterServiceData, TokenPaymasterRequest
from smart_account.paymaster.paymaster_client import \
    PaymasterClient, build_token_approval_transaction
from smart_account.user_operation.user_operation import UserOperation
from smart_account.utils.decode import decode_call_data
from smart_account.utils.encode import encode_execute_batch


class PaymasterIntegrator:
    """Attaches paymaster data to built user operations.

    With strict_sponsorship_mode a failed paymaster call raises
    SponsorshipError, otherwise the operation goes on self funded with an
    empty paymasterAndData.
    """
    paymaster_client: PaymasterClient
    gas_manager: GasManager
    strict_sponsorship_mode: bool

    def __init__(
        self,
        paymaster_client: PaymasterClient,
        gas_manager: GasManager,
        strict_sponsorship_mode: bool = False,
    ):
        self.paymaster_client = paymaster_client
        self.gas_manager = gas_manager
        self.strict_sponsorship_mode = strict_sponsorship_mode

    async def attach(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData | None = None,
    ) -> UserOperation:
        if paymaster_service_data is None:
            paymaster_service_data = PaymasterServiceData()
        # gas is final here, the paymaster signs over the fields as sent
        paymaster_service_data = replace(
            paymaster_service_data, calculate_gas_limits=False)
        sponsored_user_operation = user_operation.copy()
        try:
            sponsor_response = await self.paymaster_client.sponsor_user_operation(
                user_operation, paymaster_service_data)
        except SponsorshipError as excp:
            if self.strict_sponsorship_mode:
                logging.error(
                    f"Error in verifying gas sponsorship. {excp.message}")
                raise
            logging.warning(
                "Sending paymasterAndData 0x. "
                f"Reason: {excp.message}"
            )
            sponsored_user_operation.paymaster_and_data = b""
            return sponsored_user_operation

        sponsored_user_operation.paymaster_and_data = \
            sponsor_response.paymaster_and_data
        return sponsored_user_operation

    async def get_fee_quotes_or_data(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData,
    ) -> FeeQuotesOrDataResponse:
        try:
            return await self.paymaster_client.get_fee_quotes_or_data(
                user_operation, paymaster_service_data)
        except SponsorshipError as excp:
            if self.strict_sponsorship_mode:
                raise
            logging.warning(f"Can't query fee quotes. {excp.message}")
            return FeeQuotesOrDataResponse()

    async def build_token_user_op(
        self,
        user_operation: UserOperation,
        token_paymaster_request: TokenPaymasterRequest,
        overrides: GasOverrides | None = None,
    ) -> UserOperation:
        """Prepends the fee token approval to the operation's calls and
        re-estimates gas for the new call data."""
        fee_token_address = token_paymaster_request.fee_quote.token_address
        if fee_token_address.lower() == NATIVE_TOKEN_ALIAS.lower():
            logging.debug("Native fee token needs no approval")
            return user_operation
        if fee_token_address.lower() == ADDRESS_ZERO:
            raise InvalidFieldError(
                "Fee token can not be the zero address", "token_address")
        if token_paymaster_request.spender.lower() == ADDRESS_ZERO:
            raise InvalidFieldError(
                "Approval spender can not be the zero address", "spender")

        try:
            to_list, value_list, data_list = \
                decode_call_data(user_operation.call_data)
        except CallDataDecodeError as excp:
            logging.error(
                "Failed to update call data with the token approval. "
                f"{excp.message}"
            )
            return user_operation

        approval_transaction = \
            build_token_approval_transaction(token_paymaster_request)
        token_user_operation = user_operation.copy()
        token_user_operation.call_data = encode_execute_batch(
            [approval_transaction.to] + to_list,
            [approval_transaction.value] + value_list,
            [approval_transaction.data] + data_list,
        )
        return await self.gas_manager.estimate(token_user_operation, overrides)
