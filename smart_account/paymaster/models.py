from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from smart_account.typing import Address
from smart_account.utils.decode import to_int


class PaymasterMode(Enum):
    SPONSORED = "SPONSORED"
    ERC20 = "ERC20"


@dataclass
class SmartAccountInfo:
    name: str = "BICONOMY"
    version: str = "2.0.0"


@dataclass
class PaymasterServiceData:
    mode: PaymasterMode = PaymasterMode.SPONSORED
    # ERC20 mode
    fee_token_address: Address | None = None
    preferred_token: Address | None = None
    token_list: list[Address] = field(default_factory=list)
    # sponsored mode
    webhook_data: dict[str, Any] | None = None
    smart_account_info: SmartAccountInfo = field(
        default_factory=SmartAccountInfo)
    calculate_gas_limits: bool = True
    expiry_duration: int | None = None

    def get_sponsor_json(self) -> dict[str, Any]:
        json_data: dict[str, Any] = {
            "mode": self.mode.value,
            "calculateGasLimits": self.calculate_gas_limits,
            "sponsorshipInfo": self._get_sponsorship_info_json(),
        }
        if self.fee_token_address is not None:
            json_data["tokenInfo"] = {
                "feeTokenAddress": self.fee_token_address}
        if self.expiry_duration is not None:
            json_data["expiryDuration"] = self.expiry_duration
        return json_data

    def get_fee_quote_json(self) -> dict[str, Any]:
        token_info: dict[str, Any] = {"tokenList": self.token_list}
        if self.preferred_token is not None:
            token_info["preferredToken"] = self.preferred_token
        return {
            "mode": self.mode.value,
            "calculateGasLimits": self.calculate_gas_limits,
            "tokenInfo": token_info,
            "sponsorshipInfo": self._get_sponsorship_info_json(),
        }

    def _get_sponsorship_info_json(self) -> dict[str, Any]:
        sponsorship_info: dict[str, Any] = {
            "smartAccountInfo": {
                "name": self.smart_account_info.name,
                "version": self.smart_account_info.version,
            }
        }
        if self.webhook_data is not None:
            sponsorship_info["webhookData"] = self.webhook_data
        return sponsorship_info


@dataclass
class PaymasterFeeQuote:
    symbol: str
    token_address: Address
    decimal: int
    max_gas_fee: float
    max_gas_fee_usd: float | None = None
    exchange_rate: int | None = None
    logo_url: str | None = None
    premium_percentage: float | None = None
    validity_until_block: int | None = None

    @classmethod
    def from_json(cls, json_quote: dict[str, Any]) -> "PaymasterFeeQuote":
        return cls(
            symbol=json_quote["symbol"],
            token_address=Address(json_quote["tokenAddress"]),
            decimal=int(json_quote["decimal"]),
            max_gas_fee=float(json_quote["maxGasFee"]),
            max_gas_fee_usd=json_quote.get("maxGasFeeUSD"),
            exchange_rate=to_int(json_quote.get("exchangeRate")),
            logo_url=json_quote.get("logoUrl"),
            premium_percentage=json_quote.get("premiumPercentage"),
            validity_until_block=to_int(json_quote.get("validUntil")),
        )


@dataclass
class FeeQuotesOrDataResponse:
    fee_quotes: list[PaymasterFeeQuote] = field(default_factory=list)
    token_paymaster_address: Address | None = None
    paymaster_and_data: bytes = b""
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None


@dataclass
class SponsorUserOperationResponse:
    paymaster_and_data: bytes
    call_gas_limit: int | None = None
    verification_gas_limit: int | None = None
    pre_verification_gas: int | None = None

    @classmethod
    def from_json(
        cls, json_result: dict[str, Any]
    ) -> "SponsorUserOperationResponse":
        return cls(
            paymaster_and_data=bytes.fromhex(
                json_result["paymasterAndData"][2:]),
            call_gas_limit=to_int(json_result.get("callGasLimit")),
            verification_gas_limit=to_int(
                json_result.get("verificationGasLimit")),
            pre_verification_gas=to_int(json_result.get("preVerificationGas")),
        )


@dataclass
class TokenPaymasterRequest:
    fee_quote: PaymasterFeeQuote
    spender: Address
    max_approval: bool = False
