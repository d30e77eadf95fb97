"""
Meetup Ledger — Event Ledger Service.

Orchestrates the event lifecycle:
create event + invites -> record payments -> bulk message paid members ->
close with report.

Every state change is committed by the repositories before any
notification goes out. Notifications are best effort: each send is
attempted on its own, and a failed send is logged without touching the
ledger.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from meetup_ledger.config import settings
from meetup_ledger.core import messages
from meetup_ledger.core.closure import compute_duration_minutes, validate_report
from meetup_ledger.core.errors import (
    AlreadyClosedError,
    AlreadyPaidError,
    ForbiddenError,
    InvalidTransitionError,
    NoRecipientsError,
    NotFoundError,
    ValidationError,
)
from meetup_ledger.core.validation import EventForm, parse_form
from meetup_ledger.data.models import (
    BulkMessageLog,
    Event,
    EventInvite,
    EventReport,
    EventStatus,
    PaymentStatus,
)

if TYPE_CHECKING:
    from meetup_ledger.data.db import EventDB, GroupDB, UserDB
    from meetup_ledger.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


class LedgerService:
    """Event, invite and payment state transitions."""

    def __init__(
        self,
        user_db: UserDB,
        group_db: GroupDB,
        event_db: EventDB,
        notifier: NotificationPort,
        catalog: list[str] | None = None,
    ) -> None:
        self._users = user_db
        self._groups = group_db
        self._events = event_db
        self._notifier = notifier
        self._catalog = list(catalog) if catalog is not None else list(settings.CONSUMABLE_ITEMS)

    @property
    def catalog(self) -> list[str]:
        return list(self._catalog)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_event(self, event_id: str) -> Event:
        event = self._events.get_event(event_id)
        if event is None:
            raise NotFoundError("Event not found.")
        return event

    def get_invite(self, invite_id: str) -> EventInvite:
        invite = self._events.get_invite(invite_id)
        if invite is None:
            raise NotFoundError("Invite not found.")
        return invite

    def paid_user_ids(self, event_id: str) -> list[str]:
        return [
            inv.invited_user_id
            for inv in self._events.list_invites(event_id=event_id, status=PaymentStatus.PAID)
        ]

    async def _notify(self, to: str, subject: str, body: str) -> None:
        try:
            await self._notifier.send(to, subject, body)
        except Exception as exc:
            logger.error("Failed to send '%s' to %s: %s", subject, to, exc)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_event(
        self,
        creator_id: str,
        group_id: str,
        invited_user_ids: list[str],
        amount: int,
        location_code: str,
        title: str,
        meeting_datetime: str,
    ) -> Event:
        """Create an active event with one PENDING invite per invited user.

        Raises:
            NotFoundError: unknown group or invited user.
            ForbiddenError: the creator is not a member of the group.
            ValidationError: non-positive amount, blank title/location,
                no invitees or an unparsable meeting time.
        """
        form = parse_form(
            EventForm,
            title=title, amount=amount, location_code=location_code,
            meeting_datetime=meeting_datetime, invited_user_ids=invited_user_ids,
        )

        group = self._groups.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found.")
        if self._groups.get_member(group_id, creator_id) is None:
            raise ForbiddenError("Only group members can initiate a meetup.")

        invitees = self._users.get_users(form.invited_user_ids)
        missing = set(form.invited_user_ids) - {u.id for u in invitees}
        if missing:
            raise NotFoundError(f"Unknown invited users: {', '.join(sorted(missing))}")

        event = Event(
            id=uuid.uuid4().hex,
            group_id=group_id,
            created_by=creator_id,
            amount_per_member=form.amount,
            meeting_hcode=form.location_code,
            meeting_datetime=form.meeting_datetime,
            title=form.title,
            status=EventStatus.ACTIVE,
            created_at=datetime.now().isoformat(),
        )
        invites = [
            EventInvite(
                id=uuid.uuid4().hex,
                event_id=event.id,
                invited_user_id=user.id,
                payment_status=PaymentStatus.PENDING,
                paid_amount=0,
                email_sent=True,
            )
            for user in invitees
        ]
        self._events.create_event(event, invites)

        subject, body = messages.invitation_email(event, group, settings.CURRENCY)
        for user in invitees:
            await self._notify(user.email, subject, body)

        return event

    # ------------------------------------------------------------------
    # Payments
    # ------------------------------------------------------------------

    def record_payment(self, invite_id: str) -> EventInvite:
        """PENDING -> PAID for the event's per-member amount.

        A second payment is rejected with AlreadyPaidError; the stored
        amount never changes after the first one.
        """
        invite = self.get_invite(invite_id)
        event = self.get_event(invite.event_id)
        self._check_payable(invite, event)

        paid_at = datetime.now().isoformat()
        if not self._events.mark_paid(invite_id, event.amount_per_member, paid_at):
            # Lost a race: re-read to report what actually happened
            self._check_payable(self.get_invite(invite_id), self.get_event(event.id))
            raise InvalidTransitionError("Invite could not be marked as paid.")

        invite.payment_status = PaymentStatus.PAID
        invite.paid_amount = event.amount_per_member
        invite.paid_at = paid_at
        return invite

    def record_payment_failure(self, invite_id: str) -> EventInvite:
        """PENDING -> FAILED, e.g. when the payment provider declines."""
        invite = self.get_invite(invite_id)
        event = self.get_event(invite.event_id)
        self._check_payable(invite, event)

        if not self._events.mark_failed(invite_id):
            self._check_payable(self.get_invite(invite_id), event)
            raise InvalidTransitionError("Invite could not be marked as failed.")

        invite.payment_status = PaymentStatus.FAILED
        return invite

    @staticmethod
    def _check_payable(invite: EventInvite, event: Event) -> None:
        if invite.payment_status is PaymentStatus.PAID:
            raise AlreadyPaidError("This invite has already been paid.")
        if invite.payment_status is PaymentStatus.FAILED:
            raise InvalidTransitionError("This invite's payment has already failed.")
        if event.status is EventStatus.CLOSED:
            raise AlreadyClosedError("Meeting already closed.")

    # ------------------------------------------------------------------
    # Bulk message
    # ------------------------------------------------------------------

    def send_bulk_notification(
        self, event_id: str, sender_id: str, message: str,
    ) -> BulkMessageLog:
        """Flag every paid invite as messaged and log one bulk message.

        Raises NoRecipientsError, writing nothing, if nobody has paid.
        """
        event = self.get_event(event_id)
        if event.created_by != sender_id:
            raise ForbiddenError("Only the initiator can message members.")
        if not message.strip():
            raise ValidationError("Message must not be empty.")

        log = BulkMessageLog(
            id=uuid.uuid4().hex,
            event_id=event_id,
            sent_by=sender_id,
            message=message.strip(),
            total_sent=0,
            created_at=datetime.now().isoformat(),
        )
        recorded = self._events.record_bulk_message(log)
        if recorded is None:
            raise NoRecipientsError("No paid members to send SMS to.")
        return recorded

    # ------------------------------------------------------------------
    # Closure
    # ------------------------------------------------------------------

    async def close_event(
        self,
        event_id: str,
        initiator_id: str,
        report: EventReport,
        now: datetime | None = None,
    ) -> Event:
        """Freeze attendance and consumption into the event's report.

        Raises:
            NotFoundError: unknown event.
            ForbiddenError: the initiator did not create the event.
            AlreadyClosedError: the event is already closed.
            ValidationError: absentees who did not pay, unknown items,
                negative counts or malformed guests.
        """
        event = self.get_event(event_id)
        if event.created_by != initiator_id:
            raise ForbiddenError("Only initiator can close meeting.")
        if event.status is EventStatus.CLOSED:
            raise AlreadyClosedError("Meeting already closed.")

        final = validate_report(report, self.paid_user_ids(event_id), self._catalog)

        now = now or datetime.now()
        duration = compute_duration_minutes(event.meeting_datetime, now)
        end_time = now.isoformat()

        if not self._events.close_event(event_id, end_time, duration, final):
            raise AlreadyClosedError("Meeting already closed.")

        event.status = EventStatus.CLOSED
        event.end_time = end_time
        event.duration_minutes = duration
        event.report = final

        await self._notify_absentees(event, final)
        await self._notify_guests(event, final)
        return event

    async def _notify_absentees(self, event: Event, report: EventReport) -> None:
        for user in self._users.get_users(report.absent_user_ids):
            subject, body = messages.missed_meeting_email(
                user, event, event.duration_minutes or 0, report.goods_counts,
            )
            await self._notify(user.email, subject, body)

    async def _notify_guests(self, event: Event, report: EventReport) -> None:
        if not report.aops:
            return
        group = self._groups.get_group(event.group_id)
        if group is None:
            logger.warning("Group %s missing; skipping guest invitations", event.group_id)
            return
        link = messages.join_link(settings.PUBLIC_BASE_URL, group.username)
        for guest in report.aops:
            subject, body = messages.guest_invitation_email(guest.name, event, group, link)
            await self._notify(guest.email, subject, body)
