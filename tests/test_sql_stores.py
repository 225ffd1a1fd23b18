# tests/test_sql_stores.py

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from identity.contacts.reconciler import ContactReconciler
from identity.db.repositories import GroupRepository, UserRepository
from identity.db.session import db_session
from identity.db.stores import SqlCodeStore, SqlDirectory
from identity.errors import Conflict, DirectoryUnavailable, StoreUnavailable
from identity.models import ContactIdentity, VerificationCode
from identity.verification.code_manager import VerificationCodeManager
from identity.verification.throttle import StoreResendThrottle

NOW = datetime(2024, 5, 1, 12, 0, 0)


def _record(code="123456", issued_at=NOW, destination="a@x.com"):
    return VerificationCode(
        destination=destination,
        code=code,
        issued_at=issued_at,
        expires_at=issued_at + timedelta(minutes=5)
    )


@pytest.fixture
def sql_store(session_factory):
    return SqlCodeStore(session_factory)


@pytest.fixture
def sql_directory(session_factory):
    with db_session(session_factory) as db:
        UserRepository.create_user(db, {"name": "Ana", "email": "A@X.com"})
        UserRepository.create_user(db, {"name": "Bruno", "phone": "(11) 99999-0000"})
        UserRepository.create_user(db, {"name": "Carla", "email": "carla@x.com", "phone": "5521988887777"})
    return SqlDirectory(session_factory)


def test_insert_assigns_id(sql_store):
    stored = sql_store.insert(_record())
    assert stored.id is not None
    assert stored.used is False


def test_find_latest_active_returns_newest(sql_store):
    sql_store.insert(_record("111111", NOW))
    sql_store.insert(_record("222222", NOW + timedelta(seconds=30)))

    latest = sql_store.find_latest_active("a@x.com", NOW + timedelta(minutes=1))

    assert latest.code == "222222"


def test_find_latest_active_hides_superseded_after_use(sql_store):
    sql_store.insert(_record("111111", NOW))
    newest = sql_store.insert(_record("222222", NOW + timedelta(seconds=30)))
    sql_store.mark_used(newest.id)

    assert sql_store.find_latest_active("a@x.com", NOW + timedelta(minutes=1)) is None


def test_find_latest_active_ignores_expired(sql_store):
    sql_store.insert(_record())
    assert sql_store.find_latest_active("a@x.com", NOW + timedelta(minutes=5)) is None


def test_mark_used_is_compare_and_set(sql_store):
    stored = sql_store.insert(_record())
    sql_store.mark_used(stored.id)

    with pytest.raises(Conflict):
        sql_store.mark_used(stored.id)


def test_last_issued_at(sql_store):
    assert sql_store.last_issued_at("a@x.com") is None
    sql_store.insert(_record(issued_at=NOW))
    assert sql_store.last_issued_at("a@x.com") == NOW


def test_manager_over_sql_store(session_factory, clock):
    store = SqlCodeStore(session_factory)
    manager = VerificationCodeManager(store, throttle=StoreResendThrottle(store), clock=clock)

    record = manager.issue("a@x.com")

    assert manager.redeem("a@x.com", record.code).success is True
    assert manager.redeem("a@x.com", record.code).success is False


def test_store_errors_become_store_unavailable():
    factory = MagicMock()
    factory.return_value.add.side_effect = OperationalError("INSERT", {}, Exception("db down"))

    with pytest.raises(StoreUnavailable):
        SqlCodeStore(factory).insert(_record())


def test_directory_finds_by_email_or_phone(sql_directory):
    users = sql_directory.find_by_emails_or_phones({"a@x.com"}, {"11999990000"})
    assert sorted(u.name for u in users) == ["Ana", "Bruno"]


def test_directory_with_empty_sets(sql_directory):
    assert sql_directory.find_by_emails_or_phones(set(), set()) == []


def test_reconcile_against_sql_directory(sql_directory):
    contacts = [
        ContactIdentity(id="c1", emails=["a@x.com"]),
        ContactIdentity(id="c2", phone_numbers=["(11) 99999-0000"]),
        ContactIdentity(id="c3", display_name="Nobody"),
    ]
    results = ContactReconciler(sql_directory).reconcile(contacts)

    assert [r.matched_user_name for r in results] == ["Ana", "Bruno", None]


def test_insert_memberships_and_duplicate_conflict(session_factory, sql_directory):
    sql_directory.insert_memberships("g1", [1, 2])

    with db_session(session_factory) as db:
        assert GroupRepository.get_member_ids(db, "g1") == [1, 2]

    with pytest.raises(Conflict):
        sql_directory.insert_memberships("g1", [3, 2])

    # The failed batch left nothing behind
    with db_session(session_factory) as db:
        assert GroupRepository.get_member_ids(db, "g1") == [1, 2]


def test_directory_errors_become_directory_unavailable():
    factory = MagicMock()
    factory.return_value.query.side_effect = OperationalError("SELECT", {}, Exception("db down"))

    with pytest.raises(DirectoryUnavailable):
        SqlDirectory(factory).find_by_emails_or_phones({"a@x.com"}, set())
