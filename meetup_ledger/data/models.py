"""
Meetup Ledger — Data Models.

Plain records for everything the ledger persists: identities, groups,
memberships, meetup events with their invites, and the append-only
notification outbox.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class MemberRole(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"


class EventStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


@dataclass
class User:
    """A registered platform user.

    verification_code is only present until the account is verified.
    """

    id: str
    full_name: str
    username: str
    email: str
    phone: str
    hcode: str                             # personal location/identity code
    is_verified: bool = False
    verification_code: str | None = None
    created_at: str = ""


@dataclass
class Group:
    """A community group. `username` is the public handle used in join links."""

    id: str
    name: str
    username: str
    unique_id: str                         # short display id, e.g. "AL-4821"
    hcode: str
    created_by: str
    created_at: str = ""


@dataclass
class GroupMember:
    group_id: str
    user_id: str
    role: MemberRole = MemberRole.MEMBER
    joined_at: str = ""


@dataclass
class Aop:
    """Any-other-partner: a walk-in guest who is not on the platform."""

    name: str
    email: str


@dataclass
class EventReport:
    """Attendance and consumption facts frozen at closure."""

    all_present: bool
    absent_user_ids: list[str] = field(default_factory=list)
    goods_counts: dict[str, int] = field(default_factory=dict)
    aops: list[Aop] = field(default_factory=list)


@dataclass
class Event:
    """A paid meetup initiated inside a group."""

    id: str
    group_id: str
    created_by: str
    amount_per_member: int
    meeting_hcode: str
    meeting_datetime: str                  # ISO datetime
    title: str
    status: EventStatus = EventStatus.ACTIVE
    created_at: str = ""
    end_time: str | None = None            # set at closure
    duration_minutes: int | None = None    # set at closure
    report: EventReport | None = None      # set at closure


@dataclass
class EventInvite:
    """Per-user payment record for one event."""

    id: str
    event_id: str
    invited_user_id: str
    payment_status: PaymentStatus = PaymentStatus.PENDING
    paid_amount: int = 0
    paid_at: str | None = None
    email_sent: bool = False
    sms_sent: bool = False


@dataclass
class NotificationRecord:
    """One outgoing message. Append-only; only the read flag ever changes."""

    id: str
    to: str
    subject: str
    body: str
    channel: str = "email"
    timestamp: str = ""
    read: bool = False


@dataclass
class BulkMessageLog:
    """One bulk message sent to the paid members of an event.

    total_sent is the recipient count at send time, not a live count.
    """

    id: str
    event_id: str
    sent_by: str
    message: str
    total_sent: int
    created_at: str = ""
