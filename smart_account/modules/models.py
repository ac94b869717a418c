from dataclasses import dataclass, field
from enum import Enum

from eth_account.signers.local import LocalAccount

from smart_account.typing import Address


class SessionStatus(Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"


@dataclass
class SessionParams:
    session_id: str | None = None
    session_signer: LocalAccount | None = None
    session_validation_module: Address | None = None
    additional_session_data: bytes = b""


@dataclass
class ModuleInfo:
    """Per-operation inputs for modules that need more than the hash."""
    session_id: str | None = None
    session_signer: LocalAccount | None = None
    session_validation_module: Address | None = None
    additional_session_data: bytes = b""
    batch_session_params: list[SessionParams] = field(default_factory=list)


@dataclass
class SessionLeafNode:
    valid_until: int
    valid_after: int
    session_validation_module: Address
    session_key_data: bytes
    session_public_key: Address
    session_id: str
    status: SessionStatus = SessionStatus.PENDING

    def to_json(self) -> dict:
        return {
            "validUntil": self.valid_until,
            "validAfter": self.valid_after,
            "sessionValidationModule": self.session_validation_module,
            "sessionKeyData": "0x" + self.session_key_data.hex(),
            "sessionPublicKey": self.session_public_key,
            "sessionID": self.session_id,
            "status": self.status.value,
        }

    @classmethod
    def from_json(cls, json_leaf: dict) -> "SessionLeafNode":
        return cls(
            valid_until=json_leaf["validUntil"],
            valid_after=json_leaf["validAfter"],
            session_validation_module=Address(
                json_leaf["sessionValidationModule"]),
            session_key_data=bytes.fromhex(json_leaf["sessionKeyData"][2:]),
            session_public_key=Address(json_leaf["sessionPublicKey"]),
            session_id=json_leaf["sessionID"],
            status=SessionStatus(json_leaf["status"]),
        )


@dataclass
class SessionSearchParam:
    session_id: str | None = None
    session_public_key: Address | None = None
    session_validation_module: Address | None = None
    status: SessionStatus | None = None


@dataclass
class CreateSessionDataParams:
    valid_until: int
    valid_after: int
    session_validation_module: Address
    session_public_key: Address
    session_key_data: bytes
    # stable ids let callers find a session again after a restart
    preferred_session_id: str | None = None


@dataclass
class CreateSessionDataResponse:
    data: bytes
    session_ids: list[str]
