"""Tests for meetup_ledger.core.closure — staging and validating reports."""

import pytest
from datetime import datetime, timedelta, timezone

from meetup_ledger.core.closure import (
    ClosureDraft,
    compute_duration_minutes,
    validate_report,
)
from meetup_ledger.core.errors import ValidationError
from meetup_ledger.data.models import Aop, EventReport

CATALOG = ["drink", "snack", "smoke"]


def _draft(paid=("u1", "u2")):
    return ClosureDraft(paid_user_ids=paid, catalog=CATALOG)


class TestAbsentees:
    def test_toggle_marks_and_unmarks(self):
        draft = _draft()
        assert draft.toggle_absent("u1") is True
        assert draft.absent_user_ids == ["u1"]
        assert draft.toggle_absent("u1") is False
        assert draft.absent_user_ids == []

    def test_unpaid_user_cannot_be_absent(self):
        draft = _draft()
        with pytest.raises(ValidationError, match="paid"):
            draft.toggle_absent("u9")


class TestConsumption:
    def test_counts_start_at_zero_for_whole_catalog(self):
        assert _draft().goods_counts == {"drink": 0, "snack": 0, "smoke": 0}

    def test_increment_and_reset(self):
        draft = _draft()
        draft.increment("drink")
        assert draft.increment("drink", 2) == 3
        draft.reset_counts()
        assert draft.goods_counts["drink"] == 0

    def test_set_count(self):
        draft = _draft()
        draft.set_count("snack", 5)
        assert draft.goods_counts["snack"] == 5

    def test_unknown_item_rejected(self):
        with pytest.raises(ValidationError):
            _draft().increment("caviar")

    def test_counts_never_negative(self):
        draft = _draft()
        with pytest.raises(ValidationError):
            draft.increment("drink", -1)
        with pytest.raises(ValidationError):
            draft.set_count("drink", -3)


class TestGuests:
    def test_add_and_remove_guest(self):
        draft = _draft()
        draft.add_guest(" Walk In ", "walkin@example.com")
        draft.add_guest("Other", "other@example.com")
        assert draft.guests[0] == Aop(name="Walk In", email="walkin@example.com")
        removed = draft.remove_guest(0)
        assert removed.name == "Walk In"
        assert [g.name for g in draft.guests] == ["Other"]

    def test_malformed_guest_rejected(self):
        draft = _draft()
        with pytest.raises(ValidationError):
            draft.add_guest("", "walkin@example.com")
        with pytest.raises(ValidationError):
            draft.add_guest("Walk In", "walkin")
        assert draft.guests == []

    def test_remove_missing_guest(self):
        with pytest.raises(ValidationError):
            _draft().remove_guest(3)


class TestBuild:
    def test_build_all_present(self):
        report = _draft().build()
        assert report.all_present is True
        assert report.absent_user_ids == []

    def test_build_with_absentee(self):
        draft = _draft()
        draft.toggle_absent("u2")
        draft.increment("drink", 2)
        report = draft.build()
        assert report.all_present is False
        assert report.absent_user_ids == ["u2"]
        assert report.goods_counts["drink"] == 2

    def test_built_report_is_a_snapshot(self):
        draft = _draft()
        report = draft.build()
        draft.increment("drink")
        assert report.goods_counts["drink"] == 0


class TestValidateReport:
    def test_normalizes_all_present_and_duplicates(self):
        report = EventReport(all_present=True, absent_user_ids=["u1", "u1"])
        final = validate_report(report, ["u1", "u2"], CATALOG)
        assert final.absent_user_ids == ["u1"]
        assert final.all_present is False

    def test_absentees_must_be_paid(self):
        report = EventReport(all_present=False, absent_user_ids=["u3"])
        with pytest.raises(ValidationError):
            validate_report(report, ["u1"], CATALOG)

    @pytest.mark.parametrize("counts", [{"drink": -1}, {"drink": 1.5}, {"drink": True}, {"x": 1}])
    def test_bad_counts_rejected(self, counts):
        with pytest.raises(ValidationError):
            validate_report(EventReport(all_present=True, goods_counts=counts), [], CATALOG)

    def test_partial_tally_accepted(self):
        final = validate_report(
            EventReport(all_present=True, goods_counts={"snack": 4}), [], CATALOG,
        )
        assert final.goods_counts == {"snack": 4}


class TestDuration:
    def test_whole_minutes_rounded_down(self):
        now = datetime(2026, 5, 1, 19, 0, 59)
        assert compute_duration_minutes("2026-05-01T18:00:00", now) == 60

    def test_clamped_at_zero(self):
        now = datetime(2026, 5, 1, 17, 0)
        assert compute_duration_minutes("2026-05-01T18:00:00", now) == 0

    def test_aware_meeting_time(self):
        now = datetime(2026, 5, 1, 16, 30, tzinfo=timezone.utc)
        assert compute_duration_minutes("2026-05-01T18:00:00+03:00", now) == 90

    def test_utc_z_suffix(self):
        now = datetime(2026, 5, 1, 15, 10, tzinfo=timezone.utc)
        assert compute_duration_minutes("2026-05-01T15:00:00Z", now) == 10

    def test_naive_meeting_aware_now(self):
        local_now = datetime.now().astimezone()
        start = (local_now - timedelta(minutes=45)).replace(tzinfo=None)
        assert compute_duration_minutes(start.isoformat(), local_now) == 45
