from abc import ABC, abstractmethod

from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount

from smart_account.constants import DEFAULT_ENTRYPOINT_ADDRESS
from smart_account.modules.models import ModuleInfo
from smart_account.typing import Address
from smart_account.user_operation.user_operation import UserOperation


def normalize_signature_v(signature: bytes) -> bytes:
    """Shifts a 0/1 recovery id to the 27/28 form the contracts expect."""
    if len(signature) == 0:
        return signature
    v = signature[-1]
    if v in (0, 1):
        return signature[:-1] + bytes([v + 27])
    return signature


def sign_eip191(signer: LocalAccount, message: bytes | str) -> bytes:
    if isinstance(message, str):
        if message[:2] == "0x":
            signable_message = encode_defunct(hexstr=message)
        else:
            signable_message = encode_defunct(text=message)
    else:
        signable_message = encode_defunct(primitive=message)
    signed_message = signer.sign_message(signable_message)
    return normalize_signature_v(bytes(signed_message.signature))


class BaseValidationModule(ABC):
    """A validation module an account delegates signature checks to.

    Signatures returned here are the raw module signatures. The account
    wraps them with the module address before they reach the entrypoint.
    """
    entrypoint_address: Address

    def __init__(self, entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS):
        self.entrypoint_address = entrypoint_address

    @abstractmethod
    def get_address(self) -> Address:
        pass

    @abstractmethod
    async def get_init_data(self) -> bytes:
        pass

    @abstractmethod
    async def get_dummy_signature(self, params: ModuleInfo | None = None) -> bytes:
        pass

    @abstractmethod
    async def sign_user_op_hash(
        self, user_op_hash: bytes, params: ModuleInfo | None = None
    ) -> bytes:
        pass

    @abstractmethod
    async def sign_message(self, message: bytes | str) -> bytes:
        pass

    async def validate_user_operation(
        self, user_operation: UserOperation, params: ModuleInfo | None = None
    ) -> None:
        """Called before signing. Modules that restrict what may be signed
        raise here."""
        return None
