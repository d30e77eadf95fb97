"""Notification port — abstract interface for sending messages to people.

Core modules depend on this protocol, never on a specific delivery channel.
Sends are fire-and-forget from the core's point of view: the returned record
says what was queued, not whether it was delivered.
"""

from __future__ import annotations

from typing import Protocol

from meetup_ledger.data.models import NotificationRecord


class NotificationPort(Protocol):
    """Abstract notification interface used by core modules."""

    async def send(self, to: str, subject: str, body: str) -> NotificationRecord: ...
