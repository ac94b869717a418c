import pytest

from smart_account.exceptions import SessionError
from smart_account.modules.models import \
    SessionLeafNode, SessionSearchParam, SessionStatus
from smart_account.modules.session_storage import \
    SessionFileStorage, SessionMemoryStorage

from conftest import SESSION_SECRET

ACCOUNT_ADDRESS = "0x" + "1A" * 20
SESSION_PUBLIC_KEY = "0x" + "2B" * 20
SESSION_VALIDATION_MODULE = "0x" + "3C" * 20


@pytest.fixture(params=["memory", "file"])
def session_storage(request, tmp_path):
    if request.param == "memory":
        return SessionMemoryStorage(ACCOUNT_ADDRESS)
    return SessionFileStorage(ACCOUNT_ADDRESS, str(tmp_path))


def get_leaf(session_id, session_validation_module=SESSION_VALIDATION_MODULE):
    return SessionLeafNode(
        valid_until=0,
        valid_after=0,
        session_validation_module=session_validation_module,
        session_key_data=b"\x01\x02",
        session_public_key=SESSION_PUBLIC_KEY,
        session_id=session_id,
    )


def test_get_session_by_id(session_storage):
    session_storage.add_session_data(get_leaf("first"))
    session_storage.add_session_data(get_leaf("second"))

    session = session_storage.get_session_data(
        SessionSearchParam(session_id="second"))

    assert session.session_id == "second"
    assert session.session_key_data == b"\x01\x02"
    assert session.status == SessionStatus.PENDING


def test_get_session_by_key_and_module_ignores_case(session_storage):
    session_storage.add_session_data(get_leaf("first"))

    session = session_storage.get_session_data(
        SessionSearchParam(
            session_public_key=SESSION_PUBLIC_KEY.upper().replace("0X", "0x"),
            session_validation_module=SESSION_VALIDATION_MODULE.lower(),
        )
    )

    assert session.session_id == "first"


def test_missing_session_raises(session_storage):
    session_storage.add_session_data(get_leaf("first"))

    with pytest.raises(SessionError):
        session_storage.get_session_data(
            SessionSearchParam(session_id="unknown"))
    with pytest.raises(SessionError):
        session_storage.get_session_data(
            SessionSearchParam(session_public_key=SESSION_PUBLIC_KEY))
    with pytest.raises(SessionError):
        session_storage.get_session_data(
            SessionSearchParam(
                session_id="first", status=SessionStatus.ACTIVE))


def test_update_status_and_clear_pending(session_storage):
    session_storage.add_session_data(get_leaf("first"))
    session_storage.add_session_data(get_leaf("second"))

    session_storage.update_session_status(
        SessionSearchParam(session_id="first"), SessionStatus.ACTIVE)
    active_sessions = session_storage.get_all_session_data(
        SessionSearchParam(status=SessionStatus.ACTIVE))
    assert [session.session_id for session in active_sessions] == ["first"]

    session_storage.clear_pending_sessions()
    assert [
        session.session_id
        for session in session_storage.get_all_session_data()
    ] == ["first"]

    with pytest.raises(SessionError):
        session_storage.update_session_status(
            SessionSearchParam(session_id="second"), SessionStatus.ACTIVE)


def test_merkle_root(session_storage):
    assert session_storage.get_merkle_root() == ""

    session_storage.set_merkle_root("0x" + "ab" * 32)

    assert session_storage.get_merkle_root() == "0x" + "ab" * 32


def test_signers(session_storage):
    created_signer = session_storage.add_signer()
    imported_signer = session_storage.add_signer(SESSION_SECRET)
    session_storage.add_session_data(
        SessionLeafNode(
            valid_until=0,
            valid_after=0,
            session_validation_module=SESSION_VALIDATION_MODULE,
            session_key_data=b"",
            session_public_key=imported_signer.address,
            session_id="signed",
        )
    )

    assert session_storage.get_signer_by_key(
        created_signer.address.lower()).address == created_signer.address
    assert session_storage.get_signer_by_session(
        SessionSearchParam(session_id="signed")
    ).address == imported_signer.address
    with pytest.raises(SessionError):
        session_storage.get_signer_by_key(SESSION_PUBLIC_KEY)


def test_file_storage_persists_across_instances(tmp_path):
    SessionFileStorage(ACCOUNT_ADDRESS, str(tmp_path)).add_session_data(
        get_leaf("persisted"))

    reopened_storage = SessionFileStorage(
        ACCOUNT_ADDRESS.lower(), str(tmp_path))

    assert reopened_storage.get_session_data(
        SessionSearchParam(session_id="persisted")
    ).session_id == "persisted"
    assert (tmp_path / f"{ACCOUNT_ADDRESS.lower()}_sessions.json").exists()


def test_storages_are_scoped_to_their_account(tmp_path):
    SessionFileStorage(ACCOUNT_ADDRESS, str(tmp_path)).add_session_data(
        get_leaf("first"))

    other_storage = SessionFileStorage("0x" + "4d" * 20, str(tmp_path))

    assert other_storage.get_all_session_data() == []
