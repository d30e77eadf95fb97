"""Tests for meetup_ledger.core.query_service — read-side views end to end."""

import pytest

from meetup_ledger.core.closure import ClosureDraft
from meetup_ledger.core.errors import NotFoundError
from meetup_ledger.data.models import EventStatus


async def _event_with_payment(ledger, crew, invited):
    event = await ledger.create_event(
        crew["a"].id, crew["group"].id, invited, 100, "KYZ-44", "Friday", "2026-05-01T18:00",
    )
    return event


class TestEventStatsView:
    @pytest.mark.asyncio
    async def test_stats_follow_payments(self, ledger, queries, crew):
        event = await _event_with_payment(ledger, crew, [crew["b"].id, crew["c"].id])
        invites = queries.list_event_invites(event.id)
        ledger.record_payment(invites[0].id)

        stats = queries.get_event_stats(event.id)
        assert stats.total_invited == 2
        assert stats.paid == 1
        assert stats.pending == 1
        assert stats.total_collected == 100

    def test_unknown_event(self, queries):
        with pytest.raises(NotFoundError):
            queries.get_event_stats("missing")


class TestAttendanceView:
    @pytest.mark.asyncio
    async def test_present_member_attended(self, ledger, queries, crew):
        event = await _event_with_payment(ledger, crew, [crew["b"].id])
        ledger.record_payment(queries.list_event_invites(event.id)[0].id)

        draft = ClosureDraft(ledger.paid_user_ids(event.id), ledger.catalog)
        draft.increment("drink", 2)
        closed = await ledger.close_event(event.id, crew["a"].id, draft.build())

        assert closed.report.all_present is True
        assert closed.report.goods_counts["drink"] == 2
        stats = queries.get_user_attendance(crew["b"].id)
        assert (stats.attended, stats.missed) == (1, 0)

    @pytest.mark.asyncio
    async def test_absent_member_missed(self, ledger, queries, crew):
        before = queries.get_user_attendance(crew["b"].id)
        event = await _event_with_payment(ledger, crew, [crew["b"].id])
        ledger.record_payment(queries.list_event_invites(event.id)[0].id)

        draft = ClosureDraft(ledger.paid_user_ids(event.id), ledger.catalog)
        draft.toggle_absent(crew["b"].id)
        await ledger.close_event(event.id, crew["a"].id, draft.build())

        after = queries.get_user_attendance(crew["b"].id)
        assert after.missed == before.missed + 1
        assert after.attended == before.attended

    @pytest.mark.asyncio
    async def test_open_events_do_not_count(self, ledger, queries, crew):
        event = await _event_with_payment(ledger, crew, [crew["b"].id])
        ledger.record_payment(queries.list_event_invites(event.id)[0].id)
        stats = queries.get_user_attendance(crew["b"].id)
        assert (stats.attended, stats.missed) == (0, 0)


class TestListings:
    @pytest.mark.asyncio
    async def test_group_and_user_listings(self, ledger, queries, crew):
        event = await _event_with_payment(ledger, crew, [crew["b"].id])
        group_id = crew["group"].id

        assert [g.id for g in queries.list_user_groups(crew["b"].id)] == [group_id]
        assert len(queries.list_group_members(group_id)) == 3
        assert [e.id for e in queries.list_group_events(group_id)] == [event.id]
        assert queries.list_group_events(group_id, status=EventStatus.CLOSED) == []
        assert [e.id for e in queries.list_initiated_events(crew["a"].id)] == [event.id]
        assert len(queries.list_user_invites(crew["b"].id)) == 1
        assert queries.list_user_invites(crew["c"].id) == []

    @pytest.mark.asyncio
    async def test_bulk_message_history(self, ledger, queries, crew):
        event = await _event_with_payment(ledger, crew, [crew["b"].id])
        ledger.record_payment(queries.list_event_invites(event.id)[0].id)
        ledger.send_bulk_notification(event.id, crew["a"].id, "Tonight!")
        history = queries.list_bulk_messages(event.id)
        assert [(m.message, m.total_sent) for m in history] == [("Tonight!", 1)]

    @pytest.mark.asyncio
    async def test_inbox_mark_read(self, ledger, queries, crew):
        await _event_with_payment(ledger, crew, [crew["b"].id])
        record = queries.get_inbox(crew["b"].email)[0]
        assert record.read is False
        assert queries.mark_read(record.id) is True
        assert queries.get_inbox(crew["b"].email)[0].read is True

    def test_join_link(self, queries, crew):
        assert queries.join_link(crew["group"]) == "https://meetups.test/#/join/@fridaycrew"
