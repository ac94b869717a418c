import logging
import secrets
import time

from eth_abi import encode
from eth_abi.packed import encode_packed
from eth_account.signers.local import LocalAccount
from eth_utils import keccak, to_checksum_address

from smart_account.constants import \
    DEFAULT_ENTRYPOINT_ADDRESS, DEFAULT_SESSION_KEY_MANAGER_MODULE, \
    DUMMY_ECDSA_SIGNATURE
from smart_account.exceptions import SessionError
from smart_account.modules.base_validation_module import \
    BaseValidationModule, sign_eip191
from smart_account.modules.erc20_session_validation_module import \
    SessionValidationModule
from smart_account.modules.models import \
    CreateSessionDataParams, CreateSessionDataResponse, ModuleInfo, \
    SessionLeafNode, SessionParams, SessionSearchParam, SessionStatus
from smart_account.modules.session_storage import \
    SessionMemoryStorage, SessionStorage
from smart_account.typing import Address
from smart_account.user_operation.user_operation import UserOperation
from smart_account.utils.decode import decode_call_data
from smart_account.utils.encode import encode_set_merkle_root
from smart_account.utils.merkle import MerkleTree

SESSION_DATA_TUPLE_TYPES = \
    ["uint48", "uint48", "address", "bytes", "bytes32[]", "bytes"]


def get_session_leaf(
    valid_until: int,
    valid_after: int,
    session_validation_module: Address,
    session_key_data: bytes,
) -> bytes:
    return keccak(
        encode_packed(
            ["uint48", "uint48", "address", "bytes"],
            [
                valid_until,
                valid_after,
                to_checksum_address(session_validation_module),
                session_key_data,
            ],
        )
    )


def generate_session_id() -> str:
    return secrets.token_hex(6)


class SessionKeyManagerModule(BaseValidationModule):
    """Lets session keys sign for the account within the scope of a session
    leaf. The account commits to all its sessions through a merkle root."""
    module_address: Address
    smart_account_address: Address
    session_storage: SessionStorage
    session_validation_modules: dict[str, SessionValidationModule]

    def __init__(
        self,
        smart_account_address: Address,
        module_address: Address = DEFAULT_SESSION_KEY_MANAGER_MODULE,
        session_storage: SessionStorage | None = None,
        session_validation_modules: list[SessionValidationModule] | None = None,
        entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS,
    ):
        super().__init__(entrypoint_address)
        self.module_address = module_address
        self.smart_account_address = smart_account_address
        if session_storage is None:
            session_storage = SessionMemoryStorage(smart_account_address)
        self.session_storage = session_storage
        self.session_validation_modules = {}
        for session_validation_module in session_validation_modules or []:
            self.register_session_validation_module(session_validation_module)

    def register_session_validation_module(
        self, session_validation_module: SessionValidationModule
    ) -> None:
        self.session_validation_modules[
            session_validation_module.get_address().lower()
        ] = session_validation_module

    def get_address(self) -> Address:
        return self.module_address

    async def get_init_data(self) -> bytes:
        raise NotImplementedError(
            "Session key manager can not be used as a default module")

    def get_merkle_tree(self) -> MerkleTree | None:
        leaves = [
            get_session_leaf(
                session.valid_until,
                session.valid_after,
                session.session_validation_module,
                session.session_key_data,
            )
            for session in self.session_storage.get_all_session_data()
        ]
        if len(leaves) == 0:
            return None
        return MerkleTree(leaves)

    def create_session_data(
        self, leaves_data: list[CreateSessionDataParams]
    ) -> CreateSessionDataResponse:
        """Stores the sessions as pending and returns the setMerkleRoot
        call data that activates them once executed by the account."""
        session_ids = []
        for leaf_data in leaves_data:
            if leaf_data.preferred_session_id is not None:
                session_id = leaf_data.preferred_session_id
            else:
                session_id = generate_session_id()
            self.session_storage.add_session_data(
                SessionLeafNode(
                    valid_until=leaf_data.valid_until,
                    valid_after=leaf_data.valid_after,
                    session_validation_module=leaf_data.session_validation_module,
                    session_key_data=leaf_data.session_key_data,
                    session_public_key=leaf_data.session_public_key,
                    session_id=session_id,
                    status=SessionStatus.PENDING,
                )
            )
            session_ids.append(session_id)

        merkle_tree = self.get_merkle_tree()
        merkle_root = merkle_tree.get_root()
        self.session_storage.set_merkle_root("0x" + merkle_root.hex())
        logging.info(
            f"Created {len(session_ids)} sessions, "
            f"new merkle root: 0x{merkle_root.hex()}"
        )
        return CreateSessionDataResponse(
            data=encode_set_merkle_root(merkle_root),
            session_ids=session_ids,
        )

    def update_session_status(
        self, param: SessionSearchParam, status: SessionStatus
    ) -> None:
        self.session_storage.update_session_status(param, status)

    def clear_pending_sessions(self) -> None:
        self.session_storage.clear_pending_sessions()

    def get_leaf_info(
        self,
        session_signer: LocalAccount | None,
        session_id: str | None,
        session_validation_module: Address | None,
    ) -> SessionLeafNode:
        if session_signer is None:
            raise SessionError("Session signer is not provided.", session_id)
        if session_id is not None:
            return self.session_storage.get_session_data(
                SessionSearchParam(session_id=session_id))
        elif session_validation_module is not None:
            return self.session_storage.get_session_data(
                SessionSearchParam(
                    session_public_key=session_signer.address,
                    session_validation_module=session_validation_module,
                )
            )
        else:
            raise SessionError(
                "session_id or session_validation_module should be provided.")

    @staticmethod
    def verify_session_window(session: SessionLeafNode) -> None:
        now = int(time.time())
        if session.valid_after > now:
            raise SessionError(
                f"Session is not valid before {session.valid_after}",
                session.session_id,
            )
        # valid_until of zero means the session never expires
        if session.valid_until != 0 and session.valid_until < now:
            raise SessionError(
                f"Session expired at {session.valid_until}",
                session.session_id,
            )

    def get_session_proof(self, session: SessionLeafNode) -> list[bytes]:
        merkle_tree = self.get_merkle_tree()
        leaf = get_session_leaf(
            session.valid_until,
            session.valid_after,
            session.session_validation_module,
            session.session_key_data,
        )
        if merkle_tree is None or leaf not in merkle_tree.leaves:
            raise SessionError(
                "Session leaf is not part of the merkle tree",
                session.session_id,
            )
        return merkle_tree.get_proof(leaf)

    def get_session_data_tuple(
        self, session: SessionLeafNode, signature: bytes
    ) -> list:
        return [
            session.valid_until,
            session.valid_after,
            to_checksum_address(session.session_validation_module),
            session.session_key_data,
            self.get_session_proof(session),
            signature,
        ]

    def validate_session_call(
        self, session: SessionLeafNode, to: Address, value: int, data: bytes
    ) -> None:
        session_validation_module = self.session_validation_modules.get(
            session.session_validation_module.lower())
        if session_validation_module is None:
            logging.debug(
                "No local checks registered for session validation module "
                f"{session.session_validation_module}"
            )
            return
        session_validation_module.validate_session_call(
            to, value, data, session.session_key_data)

    async def validate_user_operation(
        self, user_operation: UserOperation, params: ModuleInfo | None = None
    ) -> None:
        if params is None:
            raise SessionError("Session parameters are not provided")
        session = self.get_leaf_info(
            params.session_signer,
            params.session_id,
            params.session_validation_module,
        )
        self.verify_session_window(session)
        to_list, value_list, data_list = decode_call_data(
            user_operation.call_data)
        if len(to_list) != 1:
            raise SessionError(
                "Session key manager signs single call operations only",
                session.session_id,
            )
        self.validate_session_call(
            session, to_list[0], value_list[0], data_list[0])

    async def get_dummy_signature(self, params: ModuleInfo | None = None) -> bytes:
        if params is None:
            raise SessionError("Session parameters are not provided")
        session = self.get_leaf_info(
            params.session_signer,
            params.session_id,
            params.session_validation_module,
        )
        padded_signature = encode(
            SESSION_DATA_TUPLE_TYPES,
            self.get_session_data_tuple(session, DUMMY_ECDSA_SIGNATURE),
        )
        return padded_signature + params.additional_session_data

    async def sign_user_op_hash(
        self, user_op_hash: bytes, params: ModuleInfo | None = None
    ) -> bytes:
        if params is None:
            raise SessionError("Session parameters are not provided")
        session = self.get_leaf_info(
            params.session_signer,
            params.session_id,
            params.session_validation_module,
        )
        self.verify_session_window(session)
        signature = sign_eip191(params.session_signer, user_op_hash)
        padded_signature = encode(
            SESSION_DATA_TUPLE_TYPES,
            self.get_session_data_tuple(session, signature),
        )
        return padded_signature + params.additional_session_data

    async def sign_message(self, message: bytes | str) -> bytes:
        raise NotImplementedError(
            "Session key manager can not sign messages for the account")

    def get_session_for_params(
        self, session_params: SessionParams
    ) -> SessionLeafNode:
        return self.get_leaf_info(
            session_params.session_signer,
            session_params.session_id,
            session_params.session_validation_module,
        )
