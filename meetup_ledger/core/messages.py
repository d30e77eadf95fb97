"""Notification texts.

Pure formatting: every function returns a (subject, body) pair.
"""

from __future__ import annotations

from meetup_ledger.data.models import Event, Group, User
from meetup_ledger.core.validation import parse_datetime


def format_meeting_time(iso: str) -> str:
    """'2026-05-01T18:00:00' -> 'Fri 01 May 2026, 18:00'."""
    try:
        return parse_datetime(iso).strftime("%a %d %b %Y, %H:%M")
    except ValueError:
        return iso


def format_goods(goods_counts: dict[str, int]) -> str:
    consumed = [f"{item} x{count}" for item, count in goods_counts.items() if count > 0]
    return ", ".join(consumed) if consumed else "nothing recorded"


def join_link(base_url: str, group_handle: str) -> str:
    return f"{base_url.rstrip('/')}/#/join/@{group_handle}"


def verification_email(user: User, code: str) -> tuple[str, str]:
    subject = "Verify your account"
    body = (
        f"Hello {user.full_name},\n\n"
        f"Welcome! Your verification code is: {code}\n\n"
        "Enter this code in the app to activate your account."
    )
    return subject, body


def invitation_email(
    event: Event, group: Group, currency: str,
) -> tuple[str, str]:
    subject = f"New Meetup Invite: {event.title}"
    body = (
        f"You have been invited to {event.title} by the {group.name} group.\n\n"
        f"Amount: {currency} {event.amount_per_member}\n"
        f"Location: {event.meeting_hcode}\n"
        f"Time: {format_meeting_time(event.meeting_datetime)}"
    )
    return subject, body


def missed_meeting_email(
    user: User, event: Event, duration_minutes: int, goods_counts: dict[str, int],
) -> tuple[str, str]:
    subject = "You missed the spot!"
    body = (
        f"Hello {user.full_name},\n\n"
        f"You missed the {event.title} meeting. We missed you!\n\n"
        "Summary of what happened:\n"
        f"Duration: {duration_minutes} mins\n"
        f"Goods missed: {format_goods(goods_counts)}"
    )
    return subject, body


def guest_invitation_email(
    guest_name: str, event: Event, group: Group, link: str,
) -> tuple[str, str]:
    subject = "You were invited as an AOP!"
    body = (
        f"Hello {guest_name},\n\n"
        f"You were tagged as a partner (AOP) at the {event.title} meeting.\n\n"
        f"Join the platform to be part of the community and join group "
        f"@{group.username} using this link:\n{link}"
    )
    return subject, body
