"""Read-side views consumed by the presentation layer."""

from __future__ import annotations

from typing import TYPE_CHECKING

from meetup_ledger.config import settings
from meetup_ledger.core import messages
from meetup_ledger.core.errors import NotFoundError
from meetup_ledger.core.projections import (
    AttendanceStats,
    EventStats,
    attendance_stats,
    event_stats,
)
from meetup_ledger.data.models import (
    BulkMessageLog,
    Event,
    EventInvite,
    EventStatus,
    Group,
    GroupMember,
    NotificationRecord,
)

if TYPE_CHECKING:
    from meetup_ledger.data.db import EventDB, GroupDB, NotificationDB


class QueryService:
    """Projections over the stores. Never writes, except inbox read flags."""

    def __init__(
        self,
        group_db: GroupDB,
        event_db: EventDB,
        notification_db: NotificationDB,
    ) -> None:
        self._groups = group_db
        self._events = event_db
        self._notifications = notification_db

    def get_event_stats(self, event_id: str) -> EventStats:
        if self._events.get_event(event_id) is None:
            raise NotFoundError("Event not found.")
        return event_stats(self._events.list_invites(event_id=event_id))

    def get_user_attendance(self, user_id: str) -> AttendanceStats:
        return attendance_stats(
            user_id,
            self._events.list_events(status=EventStatus.CLOSED),
            self._events.list_invites(user_id=user_id),
        )

    def list_user_groups(self, user_id: str) -> list[Group]:
        return self._groups.list_groups_for_user(user_id)

    def list_group_members(self, group_id: str) -> list[GroupMember]:
        return self._groups.list_members(group_id)

    def list_group_events(
        self, group_id: str, status: EventStatus | None = None,
    ) -> list[Event]:
        return self._events.list_events(group_id=group_id, status=status)

    def list_initiated_events(self, user_id: str) -> list[Event]:
        return self._events.list_events(created_by=user_id)

    def list_event_invites(self, event_id: str) -> list[EventInvite]:
        return self._events.list_invites(event_id=event_id)

    def list_user_invites(self, user_id: str) -> list[EventInvite]:
        return self._events.list_invites(user_id=user_id)

    def list_bulk_messages(self, event_id: str) -> list[BulkMessageLog]:
        return self._events.list_bulk_messages(event_id)

    def get_inbox(self, address: str) -> list[NotificationRecord]:
        return self._notifications.list_for(address)

    def mark_read(self, record_id: str) -> bool:
        return self._notifications.mark_read(record_id)

    def join_link(self, group: Group) -> str:
        return messages.join_link(settings.PUBLIC_BASE_URL, group.username)
