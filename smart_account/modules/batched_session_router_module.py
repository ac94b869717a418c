from eth_abi import encode
from eth_utils import to_checksum_address

from smart_account.constants import \
    DEFAULT_BATCHED_SESSION_ROUTER_MODULE, DEFAULT_ENTRYPOINT_ADDRESS, \
    DUMMY_ECDSA_SIGNATURE
from smart_account.exceptions import SessionError
from smart_account.modules.base_validation_module import \
    BaseValidationModule, sign_eip191
from smart_account.modules.models import \
    ModuleInfo, SessionLeafNode, SessionSearchParam, SessionStatus
from smart_account.modules.session_key_manager_module import \
    SessionKeyManagerModule
from smart_account.typing import Address
from smart_account.user_operation.user_operation import UserOperation
from smart_account.utils.decode import decode_call_data

BATCHED_SESSION_SIGNATURE_TYPES = [
    "address",
    "(uint48,uint48,address,bytes,bytes32[],bytes)[]",
    "bytes",
]


class BatchedSessionRouterModule(BaseValidationModule):
    """Routes each call of a batch to its own session, all signed by one
    session key."""
    module_address: Address
    session_key_manager_module: SessionKeyManagerModule

    def __init__(
        self,
        session_key_manager_module: SessionKeyManagerModule,
        module_address: Address = DEFAULT_BATCHED_SESSION_ROUTER_MODULE,
        entrypoint_address: Address = DEFAULT_ENTRYPOINT_ADDRESS,
    ):
        super().__init__(entrypoint_address)
        self.module_address = module_address
        self.session_key_manager_module = session_key_manager_module

    def get_address(self) -> Address:
        return self.module_address

    def get_session_key_manager_address(self) -> Address:
        return self.session_key_manager_module.get_address()

    async def get_init_data(self) -> bytes:
        raise NotImplementedError(
            "Batched session router can not be used as a default module")

    def _get_sessions(self, params: ModuleInfo | None) -> list[SessionLeafNode]:
        if params is None or len(params.batch_session_params) == 0:
            raise SessionError("Session parameters are not provided")

        session_signer = params.batch_session_params[0].session_signer
        sessions = []
        for session_params in params.batch_session_params:
            if session_params.session_signer is None:
                raise SessionError(
                    "Session signer is not provided.",
                    session_params.session_id,
                )
            if session_params.session_signer.address != session_signer.address:
                raise SessionError(
                    "All batched sessions must share one session signer",
                    session_params.session_id,
                )
            sessions.append(
                self.session_key_manager_module.get_session_for_params(
                    session_params)
            )
        return sessions

    def _encode_signature(
        self,
        sessions: list[SessionLeafNode],
        params: ModuleInfo,
        signature: bytes,
    ) -> bytes:
        session_data_tuples = []
        for session, session_params in zip(
            sessions, params.batch_session_params
        ):
            session_data_tuples.append(
                (
                    session.valid_until,
                    session.valid_after,
                    to_checksum_address(session.session_validation_module),
                    session.session_key_data,
                    self.session_key_manager_module.get_session_proof(session),
                    session_params.additional_session_data,
                )
            )
        return encode(
            BATCHED_SESSION_SIGNATURE_TYPES,
            [
                to_checksum_address(self.get_session_key_manager_address()),
                session_data_tuples,
                signature,
            ],
        )

    async def validate_user_operation(
        self, user_operation: UserOperation, params: ModuleInfo | None = None
    ) -> None:
        sessions = self._get_sessions(params)
        to_list, value_list, data_list = decode_call_data(
            user_operation.call_data)
        if len(to_list) != len(sessions):
            raise SessionError(
                f"Batch has {len(to_list)} calls but {len(sessions)} sessions")
        for session, to, value, data in zip(
            sessions, to_list, value_list, data_list
        ):
            self.session_key_manager_module.verify_session_window(session)
            self.session_key_manager_module.validate_session_call(
                session, to, value, data)

    async def get_dummy_signature(self, params: ModuleInfo | None = None) -> bytes:
        sessions = self._get_sessions(params)
        return self._encode_signature(sessions, params, DUMMY_ECDSA_SIGNATURE)

    async def sign_user_op_hash(
        self, user_op_hash: bytes, params: ModuleInfo | None = None
    ) -> bytes:
        sessions = self._get_sessions(params)
        for session in sessions:
            self.session_key_manager_module.verify_session_window(session)
        session_signer = params.batch_session_params[0].session_signer
        signature = sign_eip191(session_signer, user_op_hash)
        return self._encode_signature(sessions, params, signature)

    async def sign_message(self, message: bytes | str) -> bytes:
        raise NotImplementedError(
            "Batched session router can not sign messages for the account")

    def update_session_status(
        self, param: SessionSearchParam, status: SessionStatus
    ) -> None:
        self.session_key_manager_module.update_session_status(param, status)

    def clear_pending_sessions(self) -> None:
        self.session_key_manager_module.clear_pending_sessions()
