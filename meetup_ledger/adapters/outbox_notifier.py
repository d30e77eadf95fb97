"""Outbox notification adapter — implements NotificationPort.

Appends every message to the notifications table. The table doubles as the
simulated inbox the UI reads from; nothing leaves the process.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from meetup_ledger.data.db import NotificationDB
from meetup_ledger.data.models import NotificationRecord

logger = logging.getLogger(__name__)


class OutboxNotifier:
    """Outbox implementation of NotificationPort."""

    def __init__(self, notification_db: NotificationDB) -> None:
        self._db = notification_db

    async def send(self, to: str, subject: str, body: str) -> NotificationRecord:
        record = NotificationRecord(
            id=uuid.uuid4().hex,
            to=to,
            subject=subject,
            body=body,
            timestamp=datetime.now().isoformat(),
        )
        return self._db.append(record)
