"""Webhook notification adapter — implements NotificationPort.

Records the message in the outbox first, then relays it as JSON to an HTTP
endpoint (a mail/SMS bridge owned by someone else). The relay is best
effort: a failed POST is logged and the outbox record is still returned.
"""

from __future__ import annotations

import logging
from dataclasses import asdict

import httpx

from meetup_ledger.adapters.outbox_notifier import OutboxNotifier
from meetup_ledger.data.models import NotificationRecord

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 5


class WebhookNotifier:
    """Webhook implementation of NotificationPort."""

    def __init__(self, url: str, outbox: OutboxNotifier) -> None:
        self._url = url
        self._outbox = outbox

    async def send(self, to: str, subject: str, body: str) -> NotificationRecord:
        record = await self._outbox.send(to, subject, body)
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.post(self._url, json=asdict(record))
                resp.raise_for_status()
        except Exception as exc:
            logger.warning("Webhook relay failed for notification %s: %s", record.id, exc)
        return record
