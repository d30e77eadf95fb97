"""Shared test fixtures and configuration.

Sets up predictable environment variables before any package import and
provides temp-file repositories plus ready-wired services.
"""

import os

# Patch env vars BEFORE any meetup_ledger imports
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("PUBLIC_BASE_URL", "https://meetups.test")
os.environ.setdefault("CURRENCY", "KES")
os.environ.setdefault("NOTIFIER", "outbox")
os.environ.setdefault("LLM_API_KEY", "")

import uuid
from datetime import datetime

import pytest

CATALOG = ["drink", "snack", "smoke"]


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path shared by all repositories."""
    return str(tmp_path / "test_meetups.db")


@pytest.fixture
def user_db(tmp_db_path):
    from meetup_ledger.data.db import UserDB
    return UserDB(db_path=tmp_db_path)


@pytest.fixture
def group_db(tmp_db_path):
    from meetup_ledger.data.db import GroupDB
    return GroupDB(db_path=tmp_db_path)


@pytest.fixture
def event_db(tmp_db_path):
    from meetup_ledger.data.db import EventDB
    return EventDB(db_path=tmp_db_path)


@pytest.fixture
def notification_db(tmp_db_path):
    from meetup_ledger.data.db import NotificationDB
    return NotificationDB(db_path=tmp_db_path)


@pytest.fixture
def notifier(notification_db):
    """Outbox notifier writing to the test database."""
    from meetup_ledger.adapters.outbox_notifier import OutboxNotifier
    return OutboxNotifier(notification_db)


@pytest.fixture
def identity(user_db, group_db, notifier):
    from meetup_ledger.core.identity_service import IdentityService
    return IdentityService(user_db, group_db, notifier)


@pytest.fixture
def ledger(user_db, group_db, event_db, notifier):
    from meetup_ledger.core.ledger_service import LedgerService
    return LedgerService(user_db, group_db, event_db, notifier, catalog=CATALOG)


@pytest.fixture
def queries(group_db, event_db, notification_db):
    from meetup_ledger.core.query_service import QueryService
    return QueryService(group_db, event_db, notification_db)


@pytest.fixture
def make_user(user_db):
    """Factory inserting a verified user directly into the store."""
    from meetup_ledger.data.models import User

    def _make(username, phone="0712345678", email=None, verified=True):
        user = User(
            id=uuid.uuid4().hex,
            full_name=username.title(),
            username=username,
            email=email or f"{username}@example.com",
            phone=phone,
            hcode=f"HC-{username}",
            is_verified=verified,
            verification_code=None if verified else "123456",
            created_at=datetime.now().isoformat(),
        )
        return user_db.add_user(user)

    return _make


@pytest.fixture
def crew(identity, make_user):
    """Group G with creator A (admin) and members B and C."""
    a = make_user("alice", phone="0700000001")
    b = make_user("bob", phone="0700000002")
    c = make_user("carol", phone="0700000003")
    group = identity.create_group(a.id, "Friday Crew", "fridaycrew", "NRB-CBD")
    identity.join_group(b.id, "fridaycrew")
    identity.join_group(c.id, "fridaycrew")
    return {"a": a, "b": b, "c": c, "group": group}
