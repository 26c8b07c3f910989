"""
Tests for the SQLite storage backend.
"""

from datetime import timedelta

import pytest

from careerpulse.database import SQLiteStorage
from careerpulse.errors import StorageError
from careerpulse.models import ApplicationStatus, CandidateRecord, Credential, SyncSummary, utcnow

from conftest import USER_ID


def _record(**overrides):
    values = dict(
        user_id=USER_ID,
        company="Acme, Inc.",
        title="Senior Engineer",
        location="Remote",
        status=ApplicationStatus.APPLIED,
        date_applied="2026-10-01",
        source_message_id="msg-1",
        confidence=90,
    )
    values.update(overrides)
    return CandidateRecord(**values)


def test_create_and_list_records(storage):
    record_id = storage.create_record(_record())

    records = storage.list_records(USER_ID)
    assert [r.id for r in records] == [record_id]
    assert records[0].company == "Acme, Inc."
    assert records[0].status == "Applied"
    assert storage.list_records("other") == []


def test_find_duplicate_candidate_uses_normalized_fields(storage):
    record_id = storage.create_record(_record())

    match = storage.find_duplicate_candidate(USER_ID, "acme", "senior engineer", "2026-10-01")

    assert match is not None and match.id == record_id
    assert storage.find_duplicate_candidate(USER_ID, "acme", "senior engineer", "2026-10-02") is None


def test_find_duplicate_candidate_prefers_original_record(storage):
    original = storage.create_record(_record())
    storage.create_record(_record(source_message_id="msg-2", is_duplicate_of=original))

    match = storage.find_duplicate_candidate(USER_ID, "Acme", "Senior Engineer", "2026-10-01")

    assert match.id == original


def test_find_recent_records_excludes_flagged_duplicates(storage):
    original = storage.create_record(_record())
    storage.create_record(_record(title="Staff Engineer", is_duplicate_of=original))

    recent = storage.find_recent_records(USER_ID, timedelta(days=90))

    assert [r.id for r in recent] == [original]


def test_find_recent_records_honours_limit(storage):
    for i in range(5):
        storage.create_record(_record(title=f"Engineer {i}"))

    assert len(storage.find_recent_records(USER_ID, timedelta(days=1), limit=3)) == 3


def test_status_check_constraint(storage):
    with pytest.raises(StorageError):
        storage._execute(
            """INSERT INTO applications
               (id, user_id, company, title, status, date_applied, normalized_company,
                normalized_title, created_at, updated_at)
               VALUES ('x', 'u', 'c', 't', 'Ghosted', '2026-10-01', 'c', 't', 'now', 'now')""",
            commit=True,
        )


def test_credential_round_trip_and_update(storage):
    expires = utcnow() + timedelta(hours=1)
    storage.save_credential(
        Credential(USER_ID, "access-1", "refresh-1", expires, email="me@example.com")
    )
    storage.save_credential(Credential(USER_ID, "access-2", "refresh-1", expires))

    credential = storage.get_credential(USER_ID)
    assert credential.access_token == "access-2"
    # Email is kept when a refresh does not supply one
    assert credential.email == "me@example.com"
    assert credential.expires_at.tzinfo is not None


def test_mark_disconnected_hides_credential(storage, connected_user):
    storage.mark_disconnected(USER_ID)

    assert storage.get_credential(USER_ID) is None


def test_reconnect_after_disconnect(storage, connected_user):
    storage.mark_disconnected(USER_ID)
    storage.save_credential(connected_user)

    assert storage.get_credential(USER_ID) is not None


def test_delete_credential(storage, connected_user):
    storage.delete_credential(USER_ID)

    assert storage.get_credential(USER_ID) is None


def test_sync_history(storage):
    assert storage.get_last_sync(USER_ID) is None

    storage.record_sync_run(USER_ID, SyncSummary(total_emails=3, job_emails=1))

    assert storage.get_last_sync(USER_ID) is not None


def test_ping_and_closed_connection(storage):
    storage.ping()

    closed = SQLiteStorage(":memory:")
    closed.close()
    with pytest.raises(StorageError):
        closed.ping()


def test_unopenable_database_raises_storage_error(tmp_path):
    with pytest.raises(StorageError):
        SQLiteStorage(tmp_path / "missing" / "careerpulse.db")


def test_file_database_uses_wal(tmp_path):
    store = SQLiteStorage(tmp_path / "careerpulse.db")
    store.init_db()
    try:
        mode = store._execute("PRAGMA journal_mode")[0][0]
        assert mode.lower() == "wal"
    finally:
        store.close()
