"""Derived statistics — pure business logic.

Recomputed from raw invites and events on every read; nothing here is
stored.

No I/O: this module only transforms data.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from meetup_ledger.data.models import Event, EventInvite, EventStatus, PaymentStatus


@dataclass
class EventStats:
    """Per-event payment totals."""

    total_invited: int = 0
    paid: int = 0
    pending: int = 0
    failed: int = 0
    total_collected: int = 0


@dataclass
class AttendanceStats:
    """Per-user record across closed events."""

    attended: int = 0
    missed: int = 0


def event_stats(invites: Iterable[EventInvite]) -> EventStats:
    stats = EventStats()
    for invite in invites:
        stats.total_invited += 1
        stats.total_collected += invite.paid_amount
        if invite.payment_status is PaymentStatus.PAID:
            stats.paid += 1
        elif invite.payment_status is PaymentStatus.PENDING:
            stats.pending += 1
        elif invite.payment_status is PaymentStatus.FAILED:
            stats.failed += 1
    return stats


def attendance_stats(
    user_id: str,
    events: Iterable[Event],
    invites: Iterable[EventInvite],
) -> AttendanceStats:
    """Count attended and missed meetups for one user.

    attended: closed events where the user paid and was not marked absent.
    missed:   closed events where the user paid but was absent, or never
              paid at all (invite still PENDING at closure).
    """
    status_by_event = {
        inv.event_id: inv.payment_status
        for inv in invites
        if inv.invited_user_id == user_id
    }

    stats = AttendanceStats()
    for event in events:
        if event.status is not EventStatus.CLOSED:
            continue
        status = status_by_event.get(event.id)
        absent = event.report is not None and user_id in event.report.absent_user_ids
        if status is PaymentStatus.PAID:
            if absent:
                stats.missed += 1
            else:
                stats.attended += 1
        elif status is PaymentStatus.PENDING:
            stats.missed += 1
    return stats
