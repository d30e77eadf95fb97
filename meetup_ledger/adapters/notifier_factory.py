"""Notifier factory — creates the right NotificationPort based on config."""

from __future__ import annotations

from meetup_ledger.config import settings
from meetup_ledger.data.db import NotificationDB
from meetup_ledger.ports.notification_port import NotificationPort


def create_notifier(db_path: str | None = None) -> NotificationPort:
    """Return the notifier matching the NOTIFIER setting.

    Args:
        db_path: Database holding the outbox. Defaults to DATABASE_PATH.
    """
    from meetup_ledger.adapters.outbox_notifier import OutboxNotifier

    kind = settings.NOTIFIER.lower()
    outbox = OutboxNotifier(NotificationDB(db_path=db_path))

    if kind == "outbox":
        return outbox

    if kind == "webhook":
        from meetup_ledger.adapters.webhook_notifier import WebhookNotifier

        return WebhookNotifier(url=settings.NOTIFY_WEBHOOK_URL, outbox=outbox)

    raise ValueError(f"Unknown NOTIFIER: {kind!r}")
