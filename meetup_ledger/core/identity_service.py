"""
Meetup Ledger — Identity & Membership Service.

Registration with one-time-code verification, group creation and joining
groups through their public handle.
"""

from __future__ import annotations

import logging
import secrets
import sqlite3
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from meetup_ledger.config import settings
from meetup_ledger.core import messages
from meetup_ledger.core.errors import (
    DuplicateIdentityError,
    InvalidCodeError,
    NotFoundError,
)
from meetup_ledger.core.validation import GroupForm, RegistrationForm, parse_form
from meetup_ledger.data.models import Group, MemberRole, User

if TYPE_CHECKING:
    from meetup_ledger.data.db import GroupDB, UserDB
    from meetup_ledger.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)


@dataclass
class GroupPreview:
    """What a join link shows before the visitor commits to joining."""

    group: Group
    member_count: int
    link: str


def _email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].strip().lower()


def _generate_code(digits: int) -> str:
    low = 10 ** (digits - 1)
    return str(low + secrets.randbelow(9 * low))


def _generate_group_unique_id() -> str:
    return f"AL-{1000 + secrets.randbelow(9000)}"


class IdentityService:
    """Users, groups and memberships."""

    def __init__(
        self,
        user_db: UserDB,
        group_db: GroupDB,
        notifier: NotificationPort,
    ) -> None:
        self._users = user_db
        self._groups = group_db
        self._notifier = notifier

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def register_user(
        self,
        full_name: str,
        username: str,
        email: str,
        phone: str,
        hcode: str,
    ) -> User:
        """Create an unverified account and email it a one-time code.

        Raises:
            ValidationError: malformed name, email or phone.
            DuplicateIdentityError: the username is taken, or the phone is
                already linked to a verified account on the same email
                provider domain.
        """
        form = parse_form(
            RegistrationForm,
            full_name=full_name, username=username, email=email,
            phone=phone, hcode=hcode,
        )

        domain = _email_domain(form.email)
        for existing in self._users.find_by_phone(form.phone, verified_only=True):
            if _email_domain(existing.email) == domain:
                raise DuplicateIdentityError(
                    f"This phone number already has a linked {domain} account."
                )

        user = User(
            id=uuid.uuid4().hex,
            full_name=form.full_name,
            username=form.username,
            email=form.email,
            phone=form.phone,
            hcode=form.hcode,
            is_verified=False,
            verification_code=_generate_code(settings.VERIFICATION_CODE_DIGITS),
            created_at=datetime.now().isoformat(),
        )
        try:
            self._users.add_user(user)
        except sqlite3.IntegrityError as exc:
            raise DuplicateIdentityError(
                f"Username {form.username!r} is already taken."
            ) from exc

        subject, body = messages.verification_email(user, user.verification_code)
        try:
            await self._notifier.send(user.email, subject, body)
        except Exception as exc:
            logger.error("Failed to send verification email to user %s: %s", user.id, exc)

        return user

    def verify_user(self, user_id: str, code: str) -> User:
        """Activate an account if `code` matches its one-time code."""
        user = self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        if user.verification_code is None or user.verification_code != code.strip():
            raise InvalidCodeError("Invalid verification code.")

        if not self._users.mark_verified(user_id):
            # Verified concurrently; the code is already spent
            raise InvalidCodeError("Invalid verification code.")
        user.is_verified = True
        user.verification_code = None
        return user

    def get_user(self, user_id: str) -> User:
        user = self._users.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return user

    def find_user_by_username(self, username: str) -> User | None:
        return self._users.find_by_username(username.strip())

    def find_user_by_phone(self, phone: str) -> User | None:
        """First account registered with this phone, if any."""
        matches = self._users.find_by_phone(phone.strip().replace(" ", ""))
        return matches[0] if matches else None

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    def create_group(
        self, creator_id: str, name: str, username: str, hcode: str,
    ) -> Group:
        """Create a group; its creator becomes the first admin."""
        form = parse_form(GroupForm, name=name, username=username, hcode=hcode)
        self.get_user(creator_id)

        group = Group(
            id=uuid.uuid4().hex,
            name=form.name,
            username=form.username,
            unique_id=_generate_group_unique_id(),
            hcode=form.hcode,
            created_by=creator_id,
            created_at=datetime.now().isoformat(),
        )
        try:
            return self._groups.create_group(group)
        except sqlite3.IntegrityError as exc:
            raise DuplicateIdentityError(
                f"Group handle @{form.username} is already taken."
            ) from exc

    def get_group(self, group_id: str) -> Group:
        group = self._groups.get_group(group_id)
        if group is None:
            raise NotFoundError("Group not found.")
        return group

    def _group_by_handle(self, handle: str) -> Group:
        group = self._groups.find_by_username(handle.strip().lstrip("@"))
        if group is None:
            raise NotFoundError("Group not found.")
        return group

    def preview_group(self, handle: str) -> GroupPreview:
        group = self._group_by_handle(handle)
        return GroupPreview(
            group=group,
            member_count=len(self._groups.list_members(group.id)),
            link=messages.join_link(settings.PUBLIC_BASE_URL, group.username),
        )

    def join_group(self, user_id: str, handle: str) -> Group:
        """Join by public handle. Joining a group twice is a no-op."""
        group = self._group_by_handle(handle)
        self.get_user(user_id)
        added = self._groups.add_member(
            group.id, user_id, MemberRole.MEMBER, datetime.now().isoformat(),
        )
        if not added:
            logger.info("User %s already a member of group %s", user_id, group.id)
        return group

    def is_member(self, group_id: str, user_id: str) -> bool:
        return self._groups.get_member(group_id, user_id) is not None
