"""Tests for meetup_ledger.core.projections — derived statistics."""

from meetup_ledger.core.projections import attendance_stats, event_stats
from meetup_ledger.data.models import (
    Event,
    EventInvite,
    EventReport,
    EventStatus,
    PaymentStatus,
)


def _invite(event_id, user_id, status=PaymentStatus.PENDING, amount=0):
    return EventInvite(
        id=f"{event_id}-{user_id}", event_id=event_id, invited_user_id=user_id,
        payment_status=status, paid_amount=amount,
    )


def _event(eid, status=EventStatus.CLOSED, absent=()):
    report = None
    if status is EventStatus.CLOSED:
        report = EventReport(all_present=not absent, absent_user_ids=list(absent))
    return Event(
        id=eid, group_id="g1", created_by="host", amount_per_member=100,
        meeting_hcode="KYZ", meeting_datetime="2026-05-01T18:00:00", title=eid,
        status=status, report=report,
    )


class TestEventStats:
    def test_counts_and_total(self):
        invites = [
            _invite("e1", "a", PaymentStatus.PAID, 100),
            _invite("e1", "b", PaymentStatus.PAID, 100),
            _invite("e1", "c"),
            _invite("e1", "d", PaymentStatus.FAILED),
        ]
        stats = event_stats(invites)
        assert stats.total_invited == 4
        assert stats.paid == 2
        assert stats.pending == 1
        assert stats.failed == 1
        assert stats.total_collected == 200

    def test_empty(self):
        stats = event_stats([])
        assert stats.total_invited == 0
        assert stats.total_collected == 0


class TestAttendanceStats:
    def test_paid_and_present_counts_as_attended(self):
        stats = attendance_stats("u", [_event("e1")], [_invite("e1", "u", PaymentStatus.PAID)])
        assert (stats.attended, stats.missed) == (1, 0)

    def test_paid_and_absent_counts_as_missed(self):
        stats = attendance_stats(
            "u", [_event("e1", absent=["u"])], [_invite("e1", "u", PaymentStatus.PAID)],
        )
        assert (stats.attended, stats.missed) == (0, 1)

    def test_pending_at_closure_counts_as_missed(self):
        stats = attendance_stats("u", [_event("e1")], [_invite("e1", "u")])
        assert (stats.attended, stats.missed) == (0, 1)

    def test_failed_payment_counts_as_neither(self):
        stats = attendance_stats(
            "u", [_event("e1")], [_invite("e1", "u", PaymentStatus.FAILED)],
        )
        assert (stats.attended, stats.missed) == (0, 0)

    def test_active_events_ignored(self):
        stats = attendance_stats(
            "u",
            [_event("e1", status=EventStatus.ACTIVE)],
            [_invite("e1", "u", PaymentStatus.PAID)],
        )
        assert (stats.attended, stats.missed) == (0, 0)

    def test_not_invited_counts_as_neither(self):
        stats = attendance_stats("u", [_event("e1")], [_invite("e1", "other", PaymentStatus.PAID)])
        assert (stats.attended, stats.missed) == (0, 0)

    def test_mixed_history(self):
        events = [_event("e1"), _event("e2", absent=["u"]), _event("e3"), _event("e4")]
        invites = [
            _invite("e1", "u", PaymentStatus.PAID),
            _invite("e2", "u", PaymentStatus.PAID),
            _invite("e3", "u"),
            _invite("e4", "u", PaymentStatus.PAID),
        ]
        stats = attendance_stats("u", events, invites)
        assert (stats.attended, stats.missed) == (2, 2)
