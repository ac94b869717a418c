from dataclasses import dataclass
from enum import Enum


class SmartAccountErrorCode(Enum):
    Resolution = -33001
    GasEstimation = -33002
    CallDataDecode = -33003
    ModuleNotConfigured = -33004
    EmptyBatch = -33005
    IncompleteOperation = -33006
    Sponsorship = -33007
    Bundler = -33008
    Session = -33009
    InvalidField = -33010
    ChainQuery = -33011


@dataclass
class ResolutionError(Exception):
    message: str
    field: str = "factory"
    exception_code: SmartAccountErrorCode = SmartAccountErrorCode.Resolution


@dataclass
class GasEstimationError(Exception):
    message: str
    collaborator: str | None = None
    exception_code: SmartAccountErrorCode = (
        SmartAccountErrorCode.GasEstimation)


@dataclass
class CallDataDecodeError(Exception):
    message: str
    call_data: bytes = b""
    exception_code: SmartAccountErrorCode = (
        SmartAccountErrorCode.CallDataDecode)


@dataclass
class ModuleNotConfiguredError(Exception):
    message: str
    slot: str = "active"
    exception_code: SmartAccountErrorCode = (
        SmartAccountErrorCode.ModuleNotConfigured)


@dataclass
class EmptyBatchError(Exception):
    message: str = "Transactions array cannot be empty"
    exception_code: SmartAccountErrorCode = SmartAccountErrorCode.EmptyBatch


@dataclass
class IncompleteOperationError(Exception):
    message: str
    field: str
    exception_code: SmartAccountErrorCode = (
        SmartAccountErrorCode.IncompleteOperation)


@dataclass
class SponsorshipError(Exception):
    message: str
    collaborator: str = "paymaster"
    exception_code: SmartAccountErrorCode = SmartAccountErrorCode.Sponsorship


@dataclass
class BundlerError(Exception):
    message: str
    method: str
    rpc_code: int | None = None
    data: str | None = None
    exception_code: SmartAccountErrorCode = SmartAccountErrorCode.Bundler


@dataclass
class SessionError(Exception):
    message: str
    session_id: str | None = None
    exception_code: SmartAccountErrorCode = SmartAccountErrorCode.Session


@dataclass
class InvalidFieldError(Exception):
    message: str
    field: str
    exception_code: SmartAccountErrorCode = (
        SmartAccountErrorCode.InvalidField)


@dataclass
class ChainQueryError(Exception):
    message: str
    method: str
    rpc_code: int | None = None
    exception_code: SmartAccountErrorCode = SmartAccountErrorCode.ChainQuery
