"""Bulk message drafting.

Asks the LLM for a short meetup SMS the initiator can edit before sending.
Degrades to a fixed template when the LLM is unavailable or says nothing.
"""

from __future__ import annotations

import logging

from meetup_ledger.core.messages import format_meeting_time
from meetup_ledger.data.models import Event

logger = logging.getLogger(__name__)

_SYSTEM_PROMPT = (
    "You write short SMS messages for community meetups. "
    "Keep it under 300 characters, professional and inviting. "
    "Reply with the message text only."
)


def fallback_message(event: Event) -> str:
    return f"Meet for {event.title} at {event.meeting_hcode}. See you there!"


async def draft_bulk_message(event: Event) -> str:
    """Return a suggested bulk message for the paid members of `event`."""
    from meetup_ledger.core.llm import complete

    prompt = (
        f'Draft a short meeting SMS for the event "{event.title}" '
        f"at {format_meeting_time(event.meeting_datetime)}. "
        f"Location: {event.meeting_hcode}."
    )
    try:
        text = await complete(_SYSTEM_PROMPT, prompt, max_tokens=200)
    except Exception as exc:
        logger.warning("LLM draft failed for event %s: %s", event.id, exc)
        return fallback_message(event)

    text = (text or "").strip()
    return text or fallback_message(event)
