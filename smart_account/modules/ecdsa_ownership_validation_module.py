from eth_account.signers.local import LocalAccount

from smart_account.constants import \
    DEFAULT_ECDSA_OWNERSHIP_MODULE, DEFAULT_ENTRYPOINT_ADDRESS, \
    DUMMY_ECDSA_SIGNATURE
from smart_account.modules.base_validation_module import \
    BaseValidationModule, sign_eip191
from smart_account.modules.models import ModuleInfo
from smart_account.typing import Address
from smart_account.utils.encode import encode_init_for_smart_account


class ECDSAOwnershipValidationModule(BaseValidationModule):
    signer: LocalAccount
    module_address: Address

    def __init__(
        self,
        signer: LocalAccount,
        module_address: Address = DEFAULT_ECDSA_OWNERSHIP_MODULE,
        entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS,
    ):
        super().__init__(entrypoint_address)
        self.signer = signer
        self.module_address = module_address

    def get_address(self) -> Address:
        return self.module_address

    async def get_signer_address(self) -> Address:
        return Address(self.signer.address)

    async def get_init_data(self) -> bytes:
        return encode_init_for_smart_account(self.signer.address)

    async def get_dummy_signature(self, params: ModuleInfo | None = None) -> bytes:
        return DUMMY_ECDSA_SIGNATURE

    async def sign_user_op_hash(
        self, user_op_hash: bytes, params: ModuleInfo | None = None
    ) -> bytes:
        return sign_eip191(self.signer, user_op_hash)

    async def sign_message(self, message: bytes | str) -> bytes:
        return sign_eip191(self.signer, message)
