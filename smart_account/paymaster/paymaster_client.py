import logging
import math
from typing import Any

from aiohttp import ClientError

from smart_account.account.models import Transaction
from smart_account.constants import MAX_UINT256
from smart_account.exceptions import SponsorshipError
from smart_account.paymaster.models import \
    FeeQuotesOrDataResponse, PaymasterFeeQuote, PaymasterMode, \
    PaymasterServiceData, SponsorUserOperationResponse, TokenPaymasterRequest
from smart_account.typing import Address
from smart_account.user_operation.user_operation import UserOperation
from smart_account.utils.decode import to_int
from smart_account.utils.encode import encode_approve
from smart_account.utils.eth_client_utils import \
    get_rpc_error, send_rpc_request


def get_paymaster_request_json(
    user_operation: UserOperation
) -> dict[str, str | None]:
    user_operation_json = user_operation.get_user_operation_json()
    user_operation_json["paymasterAndData"] = "0x"
    user_operation_json["signature"] = "0x"
    return user_operation_json


def get_token_approval_amount(
    token_paymaster_request: TokenPaymasterRequest
) -> int:
    if token_paymaster_request.max_approval:
        return MAX_UINT256
    fee_quote = token_paymaster_request.fee_quote
    return math.floor(fee_quote.max_gas_fee * 10**fee_quote.decimal)


def build_token_approval_transaction(
    token_paymaster_request: TokenPaymasterRequest
) -> Transaction:
    fee_token_address = token_paymaster_request.fee_quote.token_address
    required_approval = get_token_approval_amount(token_paymaster_request)
    logging.debug(
        f"required approval of {required_approval} for erc20 token "
        f"{fee_token_address}"
    )
    return Transaction(
        to=fee_token_address,
        value=0,
        data=encode_approve(
            token_paymaster_request.spender, required_approval),
    )


class PaymasterClient:
    paymaster_url: str

    def __init__(self, paymaster_url: str):
        self.paymaster_url = paymaster_url

    async def _request(self, method: str, params: list) -> Any:
        try:
            json_result = await send_rpc_request(
                self.paymaster_url, method, params)
        except (ValueError, ClientError) as excp:
            raise SponsorshipError(
                f"Paymaster request {method} failed : {excp}")
        if "error" in json_result:
            code, message, _ = get_rpc_error(json_result)
            raise SponsorshipError(
                f"Error in {method}. code: {code} reason: {message}")
        if json_result.get("result") is None:
            raise SponsorshipError(f"Missing result in response to {method}")
        return json_result["result"]

    async def sponsor_user_operation(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData,
    ) -> SponsorUserOperationResponse:
        result = await self._request(
            "pm_sponsorUserOperation",
            [
                get_paymaster_request_json(user_operation),
                paymaster_service_data.get_sponsor_json(),
            ],
        )
        if not isinstance(result, dict) or "paymasterAndData" not in result:
            raise SponsorshipError(
                "pm_sponsorUserOperation returned no paymasterAndData")
        try:
            return SponsorUserOperationResponse.from_json(result)
        except (KeyError, ValueError, TypeError) as excp:
            raise SponsorshipError(
                f"Malformed pm_sponsorUserOperation result : {excp}")

    async def get_fee_quotes_or_data(
        self,
        user_operation: UserOperation,
        paymaster_service_data: PaymasterServiceData,
    ) -> FeeQuotesOrDataResponse:
        result = await self._request(
            "pm_getFeeQuoteOrData",
            [
                get_paymaster_request_json(user_operation),
                paymaster_service_data.get_fee_quote_json(),
            ],
        )
        if not isinstance(result, dict):
            raise SponsorshipError(
                f"Malformed pm_getFeeQuoteOrData result : {result}")
        mode = result.get("mode")
        try:
            if mode == PaymasterMode.ERC20.value:
                return FeeQuotesOrDataResponse(
                    fee_quotes=[
                        PaymasterFeeQuote.from_json(fee_quote)
                        for fee_quote in result.get("feeQuotes", [])
                    ],
                    token_paymaster_address=Address(
                        result["paymasterAddress"]),
                )
            elif mode == PaymasterMode.SPONSORED.value:
                return FeeQuotesOrDataResponse(
                    paymaster_and_data=bytes.fromhex(
                        result["paymasterAndData"][2:]),
                    call_gas_limit=to_int(result.get("callGasLimit")),
                    verification_gas_limit=to_int(
                        result.get("verificationGasLimit")),
                    pre_verification_gas=to_int(
                        result.get("preVerificationGas")),
                )
        except (KeyError, ValueError, TypeError) as excp:
            raise SponsorshipError(
                f"Malformed pm_getFeeQuoteOrData result : {excp}")
        raise SponsorshipError(
            f"Unknown paymaster mode in pm_getFeeQuoteOrData : {mode}")
