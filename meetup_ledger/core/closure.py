"""Closure Engine — staging and validating the one-time event report.

Closing a meetup is a three-step flow on the caller's side:

1. Absentees: pick who missed it, from the members who paid.
2. Consumption: tally consumable items from a fixed catalog.
3. Guests (AOPs): add walk-ins who are not on the platform.

`ClosureDraft` holds that staged input; `build()` produces the EventReport
handed to `LedgerService.close_event`. `validate_report` applies the same
rules to a report built any other way, so the ledger never trusts the
caller's staging.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Iterable

from meetup_ledger.core.errors import ValidationError
from meetup_ledger.core.validation import GuestForm, parse_datetime, parse_form
from meetup_ledger.data.models import Aop, EventReport


class ClosureDraft:
    """Mutable, caller-side staging of an event report."""

    def __init__(self, paid_user_ids: Iterable[str], catalog: Iterable[str]) -> None:
        self._paid = set(paid_user_ids)
        self._catalog = list(catalog)
        self._absent: list[str] = []
        self._counts: dict[str, int] = {item: 0 for item in self._catalog}
        self._guests: list[Aop] = []

    # Step 1: absentees

    @property
    def absent_user_ids(self) -> list[str]:
        return list(self._absent)

    def toggle_absent(self, user_id: str) -> bool:
        """Flip a paid member between present and absent. Returns True if now absent."""
        if user_id not in self._paid:
            raise ValidationError("Only paid members can be marked as absent.")
        if user_id in self._absent:
            self._absent.remove(user_id)
            return False
        self._absent.append(user_id)
        return True

    # Step 2: consumption tally

    @property
    def goods_counts(self) -> dict[str, int]:
        return dict(self._counts)

    def _check_item(self, item: str) -> None:
        if item not in self._counts:
            raise ValidationError(f"Unknown consumable item {item!r}.")

    def increment(self, item: str, by: int = 1) -> int:
        self._check_item(item)
        if self._counts[item] + by < 0:
            raise ValidationError("Counts cannot go below zero.")
        self._counts[item] += by
        return self._counts[item]

    def set_count(self, item: str, count: int) -> None:
        self._check_item(item)
        if count < 0:
            raise ValidationError("Counts cannot go below zero.")
        self._counts[item] = count

    def reset_counts(self) -> None:
        self._counts = {item: 0 for item in self._catalog}

    # Step 3: guests

    @property
    def guests(self) -> list[Aop]:
        return list(self._guests)

    def add_guest(self, name: str, email: str) -> Aop:
        form = parse_form(GuestForm, name=name, email=email)
        guest = Aop(name=form.name, email=form.email)
        self._guests.append(guest)
        return guest

    def remove_guest(self, index: int) -> Aop:
        try:
            return self._guests.pop(index)
        except IndexError:
            raise ValidationError(f"No guest at position {index}.") from None

    def build(self) -> EventReport:
        return EventReport(
            all_present=not self._absent,
            absent_user_ids=list(self._absent),
            goods_counts=dict(self._counts),
            aops=list(self._guests),
        )


def validate_report(
    report: EventReport,
    paid_user_ids: Iterable[str],
    catalog: Iterable[str],
) -> EventReport:
    """Check a submitted report and return the normalized copy to persist.

    all_present is always derived from the absentee set.
    """
    paid = set(paid_user_ids)
    absent = list(dict.fromkeys(report.absent_user_ids))
    not_paid = [uid for uid in absent if uid not in paid]
    if not_paid:
        raise ValidationError(
            f"Only paid members can be marked as absent: {', '.join(not_paid)}"
        )

    known = set(catalog)
    counts: dict[str, int] = {}
    for item, count in report.goods_counts.items():
        if item not in known:
            raise ValidationError(f"Unknown consumable item {item!r}.")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValidationError(f"Count for {item!r} must be a non-negative integer.")
        counts[item] = count

    guests = []
    for aop in report.aops:
        form = parse_form(GuestForm, name=aop.name, email=aop.email)
        guests.append(Aop(name=form.name, email=form.email))

    return EventReport(
        all_present=not absent,
        absent_user_ids=absent,
        goods_counts=counts,
        aops=guests,
    )


def compute_duration_minutes(meeting_datetime: str, now: datetime) -> int:
    """Whole minutes since the scheduled start, clamped at zero for early closes."""
    start = parse_datetime(meeting_datetime)
    # Naive values are local wall-clock time
    if start.tzinfo is None and now.tzinfo is not None:
        now = now.astimezone().replace(tzinfo=None)
    elif start.tzinfo is not None and now.tzinfo is None:
        now = now.astimezone(start.tzinfo)
    elapsed = (now - start).total_seconds()
    return max(0, math.floor(elapsed / 60))
