"""
Meetup Ledger — SQLite repositories.

One repository per entity family, all sharing a single database file.
Every public method runs inside one `with conn:` block, so multi-row writes
commit or roll back together. State transitions that must happen at most
once (paying an invite, closing an event) are compare-and-swap updates on
the status column: the caller learns from the rowcount whether it won.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import asdict
from pathlib import Path

from meetup_ledger.data.models import (
    Aop,
    BulkMessageLog,
    Event,
    EventInvite,
    EventReport,
    EventStatus,
    Group,
    GroupMember,
    MemberRole,
    NotificationRecord,
    PaymentStatus,
    User,
)

logger = logging.getLogger(__name__)

# Shared by NotificationDB and EventDB: bulk SMS records land in the outbox
# in the same transaction that flags the invites.
_NOTIFICATIONS_SCHEMA = """
    CREATE TABLE IF NOT EXISTS notifications (
        id         TEXT PRIMARY KEY,
        channel    TEXT NOT NULL DEFAULT 'email',
        recipient  TEXT NOT NULL,
        subject    TEXT NOT NULL,
        body       TEXT NOT NULL,
        timestamp  TEXT NOT NULL,
        read       INTEGER NOT NULL DEFAULT 0
    )
"""


def bulk_sms_recipient(event_id: str) -> str:
    """Outbox address of the bulk SMS sent to an event's paid members."""
    return f"event:{event_id}"


class _SQLiteStore(ABC):
    """Connection handling shared by every repository."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from meetup_ledger.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @abstractmethod
    def _init_db(self) -> None:
        """Create this repository's tables if they do not exist."""


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserDB(_SQLiteStore):
    """SQLite-backed storage for platform users."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id                TEXT PRIMARY KEY,
                    full_name         TEXT NOT NULL,
                    username          TEXT NOT NULL UNIQUE,
                    email             TEXT NOT NULL,
                    phone             TEXT NOT NULL,
                    hcode             TEXT NOT NULL,
                    is_verified       INTEGER NOT NULL DEFAULT 0,
                    verification_code TEXT,
                    created_at        TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_users_phone ON users (phone)")
        logger.debug("Users table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row["id"],
            full_name=row["full_name"],
            username=row["username"],
            email=row["email"],
            phone=row["phone"],
            hcode=row["hcode"],
            is_verified=bool(row["is_verified"]),
            verification_code=row["verification_code"],
            created_at=row["created_at"],
        )

    def add_user(self, user: User) -> User:
        """Insert a user. Raises sqlite3.IntegrityError on a taken username."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO users
                    (id, full_name, username, email, phone, hcode,
                     is_verified, verification_code, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id, user.full_name, user.username, user.email,
                    user.phone, user.hcode, int(user.is_verified),
                    user.verification_code, user.created_at,
                ),
            )
        logger.info("User registered: %s '%s'", user.id, user.username)
        return user

    def get_user(self, user_id: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get_users(self, user_ids: list[str]) -> list[User]:
        """Fetch several users at once, in the order of the ids given."""
        if not user_ids:
            return []
        placeholders = ", ".join("?" for _ in user_ids)
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM users WHERE id IN ({placeholders})", user_ids,
            ).fetchall()
        by_id = {r["id"]: self._row_to_user(r) for r in rows}
        return [by_id[uid] for uid in user_ids if uid in by_id]

    def find_by_username(self, username: str) -> User | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE username = ?", (username,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_by_phone(self, phone: str, verified_only: bool = False) -> list[User]:
        """All accounts linked to a phone number, oldest first."""
        query = "SELECT * FROM users WHERE phone = ?"
        if verified_only:
            query += " AND is_verified = 1"
        query += " ORDER BY created_at"
        with self._connect() as conn:
            rows = conn.execute(query, (phone,)).fetchall()
        return [self._row_to_user(r) for r in rows]

    def mark_verified(self, user_id: str) -> bool:
        """Activate the account and drop its one-time code."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE users SET is_verified = 1, verification_code = NULL "
                "WHERE id = ? AND is_verified = 0",
                (user_id,),
            )
        verified = cursor.rowcount > 0
        if verified:
            logger.info("User %s verified", user_id)
        return verified


# ---------------------------------------------------------------------------
# Groups & memberships
# ---------------------------------------------------------------------------


class GroupDB(_SQLiteStore):
    """SQLite-backed storage for groups and their membership rows."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS groups (
                    id          TEXT PRIMARY KEY,
                    name        TEXT NOT NULL,
                    username    TEXT NOT NULL UNIQUE,
                    unique_id   TEXT NOT NULL,
                    hcode       TEXT NOT NULL,
                    created_by  TEXT NOT NULL,
                    created_at  TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS group_members (
                    group_id   TEXT NOT NULL,
                    user_id    TEXT NOT NULL,
                    role       TEXT NOT NULL DEFAULT 'member',
                    joined_at  TEXT NOT NULL,
                    PRIMARY KEY (group_id, user_id)
                )
            """)
        logger.debug("Groups tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_group(row: sqlite3.Row) -> Group:
        return Group(
            id=row["id"],
            name=row["name"],
            username=row["username"],
            unique_id=row["unique_id"],
            hcode=row["hcode"],
            created_by=row["created_by"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_member(row: sqlite3.Row) -> GroupMember:
        return GroupMember(
            group_id=row["group_id"],
            user_id=row["user_id"],
            role=MemberRole(row["role"]),
            joined_at=row["joined_at"],
        )

    def create_group(self, group: Group) -> Group:
        """Insert the group and enroll its creator as admin in one transaction.

        Raises sqlite3.IntegrityError when the handle is taken.
        """
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO groups
                    (id, name, username, unique_id, hcode, created_by, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    group.id, group.name, group.username, group.unique_id,
                    group.hcode, group.created_by, group.created_at,
                ),
            )
            conn.execute(
                "INSERT INTO group_members (group_id, user_id, role, joined_at) "
                "VALUES (?, ?, ?, ?)",
                (group.id, group.created_by, MemberRole.ADMIN.value, group.created_at),
            )
        logger.info("Group created: %s '@%s' (%s)", group.id, group.username, group.unique_id)
        return group

    def get_group(self, group_id: str) -> Group | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM groups WHERE id = ?", (group_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_group(row)

    def find_by_username(self, username: str) -> Group | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM groups WHERE username = ?", (username,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_group(row)

    def add_member(
        self, group_id: str, user_id: str, role: MemberRole, joined_at: str,
    ) -> bool:
        """Add a membership row. Returns False if the user was already a member."""
        with self._connect() as conn:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO group_members (group_id, user_id, role, joined_at) "
                "VALUES (?, ?, ?, ?)",
                (group_id, user_id, role.value, joined_at),
            )
        added = cursor.rowcount > 0
        if added:
            logger.info("User %s joined group %s as %s", user_id, group_id, role.value)
        return added

    def get_member(self, group_id: str, user_id: str) -> GroupMember | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM group_members WHERE group_id = ? AND user_id = ?",
                (group_id, user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_member(row)

    def list_members(self, group_id: str) -> list[GroupMember]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM group_members WHERE group_id = ? ORDER BY joined_at",
                (group_id,),
            ).fetchall()
        return [self._row_to_member(r) for r in rows]

    def list_groups_for_user(self, user_id: str) -> list[Group]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT g.* FROM groups g
                JOIN group_members m ON m.group_id = g.id
                WHERE m.user_id = ?
                ORDER BY g.created_at
                """,
                (user_id,),
            ).fetchall()
        return [self._row_to_group(r) for r in rows]


# ---------------------------------------------------------------------------
# Events, invites, bulk messages
# ---------------------------------------------------------------------------


def _report_to_json(report: EventReport) -> str:
    return json.dumps(asdict(report), ensure_ascii=False)


def _report_from_json(raw: str | None) -> EventReport | None:
    if not raw:
        return None
    data = json.loads(raw)
    return EventReport(
        all_present=data["all_present"],
        absent_user_ids=list(data.get("absent_user_ids", [])),
        goods_counts={k: int(v) for k, v in data.get("goods_counts", {}).items()},
        aops=[Aop(name=a["name"], email=a["email"]) for a in data.get("aops", [])],
    )


class EventDB(_SQLiteStore):
    """SQLite-backed storage for meetup events and their invites."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id                TEXT PRIMARY KEY,
                    group_id          TEXT NOT NULL,
                    created_by        TEXT NOT NULL,
                    amount_per_member INTEGER NOT NULL,
                    meeting_hcode     TEXT NOT NULL,
                    meeting_datetime  TEXT NOT NULL,
                    title             TEXT NOT NULL,
                    status            TEXT NOT NULL DEFAULT 'active',
                    created_at        TEXT NOT NULL,
                    end_time          TEXT,
                    duration_minutes  INTEGER,
                    report_json       TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS event_invites (
                    id               TEXT PRIMARY KEY,
                    event_id         TEXT NOT NULL,
                    invited_user_id  TEXT NOT NULL,
                    payment_status   TEXT NOT NULL DEFAULT 'PENDING',
                    paid_amount      INTEGER NOT NULL DEFAULT 0,
                    paid_at          TEXT,
                    email_sent       INTEGER NOT NULL DEFAULT 0,
                    sms_sent         INTEGER NOT NULL DEFAULT 0,
                    UNIQUE (event_id, invited_user_id)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS bulk_messages (
                    id          TEXT PRIMARY KEY,
                    event_id    TEXT NOT NULL,
                    sent_by     TEXT NOT NULL,
                    message     TEXT NOT NULL,
                    total_sent  INTEGER NOT NULL,
                    created_at  TEXT NOT NULL
                )
            """)
            conn.execute(_NOTIFICATIONS_SCHEMA)
        logger.debug("Event tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        return Event(
            id=row["id"],
            group_id=row["group_id"],
            created_by=row["created_by"],
            amount_per_member=row["amount_per_member"],
            meeting_hcode=row["meeting_hcode"],
            meeting_datetime=row["meeting_datetime"],
            title=row["title"],
            status=EventStatus(row["status"]),
            created_at=row["created_at"],
            end_time=row["end_time"],
            duration_minutes=row["duration_minutes"],
            report=_report_from_json(row["report_json"]),
        )

    @staticmethod
    def _row_to_invite(row: sqlite3.Row) -> EventInvite:
        return EventInvite(
            id=row["id"],
            event_id=row["event_id"],
            invited_user_id=row["invited_user_id"],
            payment_status=PaymentStatus(row["payment_status"]),
            paid_amount=row["paid_amount"],
            paid_at=row["paid_at"],
            email_sent=bool(row["email_sent"]),
            sms_sent=bool(row["sms_sent"]),
        )

    @staticmethod
    def _row_to_bulk_message(row: sqlite3.Row) -> BulkMessageLog:
        return BulkMessageLog(
            id=row["id"],
            event_id=row["event_id"],
            sent_by=row["sent_by"],
            message=row["message"],
            total_sent=row["total_sent"],
            created_at=row["created_at"],
        )

    def create_event(self, event: Event, invites: list[EventInvite]) -> Event:
        """Insert an event together with all of its invites, atomically."""
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO events
                    (id, group_id, created_by, amount_per_member, meeting_hcode,
                     meeting_datetime, title, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    event.id, event.group_id, event.created_by,
                    event.amount_per_member, event.meeting_hcode,
                    event.meeting_datetime, event.title, event.status.value,
                    event.created_at,
                ),
            )
            conn.executemany(
                """
                INSERT INTO event_invites
                    (id, event_id, invited_user_id, payment_status,
                     paid_amount, paid_at, email_sent, sms_sent)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        inv.id, inv.event_id, inv.invited_user_id,
                        inv.payment_status.value, inv.paid_amount, inv.paid_at,
                        int(inv.email_sent), int(inv.sms_sent),
                    )
                    for inv in invites
                ],
            )
        logger.info(
            "Event created: %s '%s' in group %s with %d invites",
            event.id, event.title, event.group_id, len(invites),
        )
        return event

    def get_event(self, event_id: str) -> Event | None:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    def list_events(
        self,
        group_id: str | None = None,
        status: EventStatus | None = None,
        created_by: str | None = None,
    ) -> list[Event]:
        """List events, optionally filtered by group, status and/or creator."""
        conditions: list[str] = []
        params: list = []
        if group_id is not None:
            conditions.append("group_id = ?")
            params.append(group_id)
        if status is not None:
            conditions.append("status = ?")
            params.append(status.value)
        if created_by is not None:
            conditions.append("created_by = ?")
            params.append(created_by)

        query = "SELECT * FROM events"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY meeting_datetime"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_event(r) for r in rows]

    def close_event(
        self,
        event_id: str,
        end_time: str,
        duration_minutes: int,
        report: EventReport,
    ) -> bool:
        """Move an active event to closed. Returns False if it was not active."""
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE events
                SET status = ?, end_time = ?, duration_minutes = ?, report_json = ?
                WHERE id = ? AND status = ?
                """,
                (
                    EventStatus.CLOSED.value, end_time, duration_minutes,
                    _report_to_json(report), event_id, EventStatus.ACTIVE.value,
                ),
            )
        closed = cursor.rowcount > 0
        if closed:
            logger.info("Event %s closed after %d minutes", event_id, duration_minutes)
        return closed

    def get_invite(self, invite_id: str) -> EventInvite | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM event_invites WHERE id = ?", (invite_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_invite(row)

    def list_invites(
        self,
        event_id: str | None = None,
        user_id: str | None = None,
        status: PaymentStatus | None = None,
    ) -> list[EventInvite]:
        """List invites, optionally filtered by event, invitee and/or status."""
        conditions: list[str] = []
        params: list = []
        if event_id is not None:
            conditions.append("event_id = ?")
            params.append(event_id)
        if user_id is not None:
            conditions.append("invited_user_id = ?")
            params.append(user_id)
        if status is not None:
            conditions.append("payment_status = ?")
            params.append(status.value)

        query = "SELECT * FROM event_invites"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY rowid"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_invite(r) for r in rows]

    def mark_paid(self, invite_id: str, amount: int, paid_at: str) -> bool:
        """PENDING -> PAID, only while the owning event is still active.

        Returns False when the invite was not pending or the event is closed.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                """
                UPDATE event_invites
                SET payment_status = ?, paid_amount = ?, paid_at = ?
                WHERE id = ? AND payment_status = ?
                  AND event_id IN (SELECT id FROM events WHERE status = ?)
                """,
                (
                    PaymentStatus.PAID.value, amount, paid_at, invite_id,
                    PaymentStatus.PENDING.value, EventStatus.ACTIVE.value,
                ),
            )
        paid = cursor.rowcount > 0
        if paid:
            logger.info("Invite %s paid: %d", invite_id, amount)
        return paid

    def mark_failed(self, invite_id: str) -> bool:
        """PENDING -> FAILED. Returns False when the invite was not pending."""
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE event_invites SET payment_status = ? "
                "WHERE id = ? AND payment_status = ?",
                (PaymentStatus.FAILED.value, invite_id, PaymentStatus.PENDING.value),
            )
        failed = cursor.rowcount > 0
        if failed:
            logger.info("Invite %s payment failed", invite_id)
        return failed

    def record_bulk_message(self, log: BulkMessageLog) -> BulkMessageLog | None:
        """Flag every paid invite of the event and append the log entry.

        total_sent on the stored log is the number of invites flagged in the
        same transaction. The message also goes to the outbox as one "sms"
        record addressed to `bulk_sms_recipient(event_id)`. Returns None (and
        writes nothing) if none are paid.
        """
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE event_invites SET sms_sent = 1 "
                "WHERE event_id = ? AND payment_status = ?",
                (log.event_id, PaymentStatus.PAID.value),
            )
            if cursor.rowcount == 0:
                return None
            log.total_sent = cursor.rowcount
            conn.execute(
                """
                INSERT INTO bulk_messages
                    (id, event_id, sent_by, message, total_sent, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    log.id, log.event_id, log.sent_by, log.message,
                    log.total_sent, log.created_at,
                ),
            )
            conn.execute(
                """
                INSERT INTO notifications
                    (id, channel, recipient, subject, body, timestamp)
                VALUES (?, 'sms', ?, ?, ?, ?)
                """,
                (
                    log.id, bulk_sms_recipient(log.event_id),
                    f"Bulk SMS to {log.total_sent} paid members",
                    log.message, log.created_at,
                ),
            )
        logger.info(
            "Bulk message %s for event %s sent to %d paid members",
            log.id, log.event_id, log.total_sent,
        )
        return log

    def list_bulk_messages(self, event_id: str) -> list[BulkMessageLog]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM bulk_messages WHERE event_id = ? ORDER BY created_at",
                (event_id,),
            ).fetchall()
        return [self._row_to_bulk_message(r) for r in rows]


# ---------------------------------------------------------------------------
# Notification outbox
# ---------------------------------------------------------------------------


class NotificationDB(_SQLiteStore):
    """Append-only outbox of every message handed to the notification port."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(_NOTIFICATIONS_SCHEMA)
        logger.debug("Notifications table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> NotificationRecord:
        return NotificationRecord(
            id=row["id"],
            channel=row["channel"],
            to=row["recipient"],
            subject=row["subject"],
            body=row["body"],
            timestamp=row["timestamp"],
            read=bool(row["read"]),
        )

    def append(self, record: NotificationRecord) -> NotificationRecord:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO notifications
                    (id, channel, recipient, subject, body, timestamp, read)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id, record.channel, record.to, record.subject,
                    record.body, record.timestamp, int(record.read),
                ),
            )
        logger.info("Notification queued: %s -> %s '%s'", record.id, record.to, record.subject)
        return record

    def list_for(self, recipient: str) -> list[NotificationRecord]:
        """Inbox view for one address, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM notifications WHERE recipient = ? "
                "ORDER BY timestamp DESC, rowid DESC",
                (recipient,),
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def list_all(self) -> list[NotificationRecord]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM notifications ORDER BY rowid",
            ).fetchall()
        return [self._row_to_record(r) for r in rows]

    def mark_read(self, record_id: str) -> bool:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE notifications SET read = 1 WHERE id = ? AND read = 0",
                (record_id,),
            )
        return cursor.rowcount > 0
