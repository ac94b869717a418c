from dataclasses import dataclass
import logging

from eth_abi import encode
from eth_abi.packed import encode_packed
from eth_account.signers.local import LocalAccount
from eth_utils import keccak

from smart_account.constants import \
    DEFAULT_ENTRYPOINT_ADDRESS, DEFAULT_MULTICHAIN_MODULE, \
    DUMMY_ECDSA_SIGNATURE
from smart_account.modules.base_validation_module import \
    BaseValidationModule, sign_eip191
from smart_account.modules.models import ModuleInfo
from smart_account.typing import Address
from smart_account.user_operation.user_operation import \
    UserOperation, get_user_operation_hash_bytes
from smart_account.utils.encode import encode_init_for_smart_account
from smart_account.utils.merkle import MerkleTree


@dataclass
class MultiChainUserOp:
    user_operation: UserOperation
    chain_id: int
    valid_until: int = 0
    valid_after: int = 0


def get_multichain_leaf(
    user_op_hash: bytes, valid_until: int = 0, valid_after: int = 0
) -> bytes:
    return keccak(
        encode_packed(
            ["uint48", "uint48", "bytes32"],
            [valid_until, valid_after, user_op_hash],
        )
    )


class MultiChainValidationModule(BaseValidationModule):
    """Owner based module that can also authorize several user operations,
    possibly on different chains, with one signature over a merkle root."""
    signer: LocalAccount
    module_address: Address

    def __init__(
        self,
        signer: LocalAccount,
        module_address: Address = DEFAULT_MULTICHAIN_MODULE,
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

    # a plain 65 bytes signature is validated by the module as ecdsa ownership
    async def sign_user_op_hash(
        self, user_op_hash: bytes, params: ModuleInfo | None = None
    ) -> bytes:
        return sign_eip191(self.signer, user_op_hash)

    async def sign_message(self, message: bytes | str) -> bytes:
        return sign_eip191(self.signer, message)

    async def sign_user_ops(
        self,
        multi_chain_user_ops: list[MultiChainUserOp],
        entrypoint_address: Address | None = None,
    ) -> list[bytes]:
        """Returns one module signature per operation, in input order."""
        if len(multi_chain_user_ops) == 0:
            raise ValueError("No user operations to sign")
        if entrypoint_address is None:
            entrypoint_address = self.entrypoint_address

        leaves = [
            get_multichain_leaf(
                get_user_operation_hash_bytes(
                    multi_chain_user_op.user_operation,
                    entrypoint_address,
                    multi_chain_user_op.chain_id,
                ),
                multi_chain_user_op.valid_until,
                multi_chain_user_op.valid_after,
            )
            for multi_chain_user_op in multi_chain_user_ops
        ]
        merkle_tree = MerkleTree(leaves)
        merkle_root = merkle_tree.get_root()
        multichain_signature = sign_eip191(self.signer, merkle_root)
        logging.debug(
            f"signed merkle root 0x{merkle_root.hex()} "
            f"for {len(leaves)} user operations"
        )

        module_signatures = []
        for multi_chain_user_op, leaf in zip(multi_chain_user_ops, leaves):
            module_signatures.append(
                encode(
                    ["uint48", "uint48", "bytes32", "bytes32[]", "bytes"],
                    [
                        multi_chain_user_op.valid_until,
                        multi_chain_user_op.valid_after,
                        merkle_root,
                        merkle_tree.get_proof(leaf),
                        multichain_signature,
                    ],
                )
            )
        return module_signatures
