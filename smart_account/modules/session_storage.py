from abc import ABC, abstractmethod
import json
import logging
import os
from typing import Any

from eth_account import Account
from eth_account.signers.local import LocalAccount

from smart_account.exceptions import SessionError
from smart_account.modules.models import \
    SessionLeafNode, SessionSearchParam, SessionStatus
from smart_account.typing import Address


class SessionStorage(ABC):
    """Session leaves, the merkle root committed on chain and the session
    signers of one smart account."""
    smart_account_address: str

    def __init__(self, smart_account_address: Address):
        self.smart_account_address = smart_account_address.lower()

    @abstractmethod
    def _read_store(self, store_type: str) -> Any | None:
        pass

    @abstractmethod
    def _write_store(self, store_type: str, data: Any) -> None:
        pass

    def _get_session_store(self) -> dict:
        data = self._read_store("sessions")
        if data is None:
            return {"merkleRoot": "", "leafNodes": []}
        return data

    def _get_signer_store(self) -> dict[str, str]:
        data = self._read_store("signers")
        if data is None:
            return {}
        return data

    @staticmethod
    def _validate_search_param(param: SessionSearchParam) -> None:
        if param.session_id is not None:
            return
        if (
            param.session_public_key is not None and
            param.session_validation_module is not None
        ):
            return
        raise SessionError(
            "Either pass session_id or a combination of session_public_key"
            " and session_validation_module address."
        )

    @staticmethod
    def _matches(
        leaf: dict, param: SessionSearchParam, check_status: bool = True
    ) -> bool:
        if check_status and param.status is not None:
            if leaf["status"] != param.status.value:
                return False
        if param.session_id is not None:
            return leaf["sessionID"] == param.session_id
        return (
            leaf["sessionPublicKey"] == param.session_public_key.lower() and
            leaf["sessionValidationModule"] ==
            param.session_validation_module.lower()
        )

    def add_session_data(self, leaf: SessionLeafNode) -> None:
        data = self._get_session_store()
        json_leaf = leaf.to_json()
        json_leaf["sessionValidationModule"] = \
            json_leaf["sessionValidationModule"].lower()
        json_leaf["sessionPublicKey"] = json_leaf["sessionPublicKey"].lower()
        data["leafNodes"].append(json_leaf)
        self._write_store("sessions", data)

    def get_session_data(self, param: SessionSearchParam) -> SessionLeafNode:
        self._validate_search_param(param)
        for json_leaf in self._get_session_store()["leafNodes"]:
            if self._matches(json_leaf, param):
                return SessionLeafNode.from_json(json_leaf)
        raise SessionError("Session not found.", param.session_id)

    def get_all_session_data(
        self, param: SessionSearchParam | None = None
    ) -> list[SessionLeafNode]:
        leaves = self._get_session_store()["leafNodes"]
        if param is not None and param.status is not None:
            leaves = [
                leaf for leaf in leaves if leaf["status"] == param.status.value
            ]
        return [SessionLeafNode.from_json(leaf) for leaf in leaves]

    def update_session_status(
        self, param: SessionSearchParam, status: SessionStatus
    ) -> None:
        self._validate_search_param(param)
        data = self._get_session_store()
        for json_leaf in data["leafNodes"]:
            if self._matches(json_leaf, param, check_status=False):
                json_leaf["status"] = status.value
                self._write_store("sessions", data)
                return
        raise SessionError("Session not found.", param.session_id)

    def clear_pending_sessions(self) -> None:
        data = self._get_session_store()
        data["leafNodes"] = [
            leaf for leaf in data["leafNodes"]
            if leaf["status"] != SessionStatus.PENDING.value
        ]
        self._write_store("sessions", data)

    def get_merkle_root(self) -> str:
        return self._get_session_store()["merkleRoot"]

    def set_merkle_root(self, merkle_root: str) -> None:
        data = self._get_session_store()
        data["merkleRoot"] = merkle_root
        self._write_store("sessions", data)

    def add_signer(self, private_key: str | None = None) -> LocalAccount:
        if private_key is None:
            signer = Account.create()
        else:
            signer = Account.from_key(private_key)
        signers = self._get_signer_store()
        signers[signer.address.lower()] = "0x" + bytes(signer.key).hex()
        self._write_store("signers", signers)
        return signer

    def get_signer_by_key(self, session_public_key: Address) -> LocalAccount:
        signers = self._get_signer_store()
        private_key = signers.get(session_public_key.lower())
        if private_key is None:
            raise SessionError(f"Signer not found for {session_public_key}.")
        return Account.from_key(private_key)

    def get_signer_by_session(
        self, param: SessionSearchParam
    ) -> LocalAccount:
        session = self.get_session_data(param)
        return self.get_signer_by_key(session.session_public_key)


class SessionMemoryStorage(SessionStorage):
    def __init__(self, smart_account_address: Address):
        super().__init__(smart_account_address)
        self._store: dict[str, str] = {}

    def _storage_key(self, store_type: str) -> str:
        return f"{self.smart_account_address}_{store_type}"

    def _read_store(self, store_type: str) -> Any | None:
        data = self._store.get(self._storage_key(store_type))
        if data is None:
            return None
        return json.loads(data)

    def _write_store(self, store_type: str, data: Any) -> None:
        self._store[self._storage_key(store_type)] = json.dumps(data)


class SessionFileStorage(SessionStorage):
    storage_dir: str

    def __init__(
        self, smart_account_address: Address, storage_dir: str
    ):
        super().__init__(smart_account_address)
        self.storage_dir = storage_dir

    def _storage_file_path(self, store_type: str) -> str:
        return os.path.join(
            self.storage_dir,
            f"{self.smart_account_address}_{store_type}.json"
        )

    def _read_store(self, store_type: str) -> Any | None:
        file_path = self._storage_file_path(store_type)
        if not os.path.exists(file_path):
            return None
        with open(file_path, "r", encoding="utf8") as storage_file:
            content = storage_file.read()
        if not content:
            return None
        return json.loads(content)

    def _write_store(self, store_type: str, data: Any) -> None:
        os.makedirs(self.storage_dir, exist_ok=True)
        file_path = self._storage_file_path(store_type)
        with open(file_path, "w", encoding="utf8") as storage_file:
            json.dump(data, storage_file)
        logging.debug(f"session {store_type} written to {file_path}")
