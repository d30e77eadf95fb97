"""
Meetup Ledger — Entry Point.

`python main.py` runs one full meetup lifecycle against the configured
database: register, verify, group, event, payment, bulk message, closure.
"""

import asyncio
import logging

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

from datetime import datetime, timedelta

from meetup_ledger.adapters.notifier_factory import create_notifier
from meetup_ledger.core.closure import ClosureDraft
from meetup_ledger.core.identity_service import IdentityService
from meetup_ledger.core.ledger_service import LedgerService
from meetup_ledger.core.message_drafter import draft_bulk_message
from meetup_ledger.core.query_service import QueryService
from meetup_ledger.data.db import EventDB, GroupDB, NotificationDB, UserDB

logger = logging.getLogger("meetup_ledger")


async def walkthrough(stamp: str | None = None) -> None:
    """Run the lifecycle once. `stamp` keeps usernames, emails and phones unique."""
    users, groups, events = UserDB(), GroupDB(), EventDB()
    notifier = create_notifier()
    identity = IdentityService(users, groups, notifier)
    ledger = LedgerService(users, groups, events, notifier)
    queries = QueryService(groups, events, NotificationDB())

    stamp = stamp or datetime.now().strftime("%m%d%H%M%S")
    host = await identity.register_user(
        "Amina Host", f"amina{stamp}", f"amina{stamp}@example.com", f"0712{stamp}", "NRB-01",
    )
    guest = await identity.register_user(
        "Brian Member", f"brian{stamp}", f"brian{stamp}@example.com", f"0723{stamp}", "NRB-02",
    )
    for user in (host, guest):
        identity.verify_user(user.id, user.verification_code)

    group = identity.create_group(host.id, "Friday Crew", f"friday{stamp}", "NRB-CBD")
    identity.join_group(guest.id, f"@{group.username}")

    event = await ledger.create_event(
        host.id, group.id, [guest.id], 100, "KYZ-44", "Friday Meetup",
        (datetime.now() - timedelta(hours=2)).isoformat(timespec="minutes"),
    )
    invite = queries.list_event_invites(event.id)[0]
    ledger.record_payment(invite.id)
    message = await draft_bulk_message(event)
    ledger.send_bulk_notification(event.id, host.id, message)

    draft = ClosureDraft(ledger.paid_user_ids(event.id), ledger.catalog)
    draft.increment(ledger.catalog[0], 2)
    draft.add_guest("Walk In", f"walkin{stamp}@example.com")
    closed = await ledger.close_event(event.id, host.id, draft.build())

    logger.info("Closed '%s' after %d minutes", closed.title, closed.duration_minutes)
    logger.info("Event stats: %s", queries.get_event_stats(event.id))
    logger.info("Attendance for %s: %s", guest.username, queries.get_user_attendance(guest.id))
    logger.info("Join link: %s", queries.join_link(group))


if __name__ == "__main__":
    asyncio.run(walkthrough())
