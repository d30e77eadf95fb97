"""Input forms for every operation that accepts free-form user data.

Each form is a pydantic model; `parse_form` turns pydantic's error into the
ledger's own ValidationError so callers only ever catch LedgerError.
"""

from __future__ import annotations

from datetime import datetime
from typing import TypeVar

import pydantic
from pydantic import BaseModel, EmailStr, field_validator

from meetup_ledger.core.errors import ValidationError

_MIN_PHONE_DIGITS = 10

FormT = TypeVar("FormT", bound=BaseModel)


def parse_form(form_cls: type[FormT], **data) -> FormT:
    """Build a form, raising ValidationError on any malformed field."""
    try:
        return form_cls(**data)
    except pydantic.ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}"
            for err in exc.errors()
        )
        raise ValidationError(problems) from exc


def parse_datetime(value: str) -> datetime:
    """Parse an ISO datetime, accepting a trailing 'Z' for UTC."""
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.fromisoformat(raw)


def _required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("must not be empty")
    return v


def _strip(v):
    return v.strip() if isinstance(v, str) else v


class RegistrationForm(BaseModel):
    full_name: str
    username: str
    email: EmailStr
    phone: str
    hcode: str

    @field_validator("full_name", "username", "hcode")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required(v)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return _strip(v)

    @field_validator("phone")
    @classmethod
    def valid_phone(cls, v: str) -> str:
        v = v.strip().replace(" ", "")
        digits = v[1:] if v.startswith("+") else v
        if not digits.isdigit() or len(digits) < _MIN_PHONE_DIGITS:
            raise ValueError(f"phone number needs at least {_MIN_PHONE_DIGITS} digits")
        return v


class GroupForm(BaseModel):
    name: str
    username: str
    hcode: str

    @field_validator("name", "hcode")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required(v)

    @field_validator("username")
    @classmethod
    def valid_handle(cls, v: str) -> str:
        v = _required(v).lstrip("@")
        if not v or any(ch.isspace() or ch in "/#?" for ch in v):
            raise ValueError("handle must be a single word usable in a link")
        return v


class EventForm(BaseModel):
    title: str
    amount: int
    location_code: str
    meeting_datetime: str
    invited_user_ids: list[str]

    @field_validator("title", "location_code")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required(v)

    @field_validator("amount")
    @classmethod
    def positive_amount(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("amount must be positive")
        return v

    @field_validator("meeting_datetime")
    @classmethod
    def valid_datetime(cls, v: str) -> str:
        try:
            return parse_datetime(v).isoformat()
        except ValueError:
            raise ValueError("not an ISO datetime") from None

    @field_validator("invited_user_ids")
    @classmethod
    def unique_invitees(cls, v: list[str]) -> list[str]:
        # One invite per (event, user): collapse repeats, keep first-seen order
        unique = list(dict.fromkeys(uid.strip() for uid in v if uid.strip()))
        if not unique:
            raise ValueError("at least one member must be invited")
        return unique


class GuestForm(BaseModel):
    name: str
    email: EmailStr

    @field_validator("name")
    @classmethod
    def not_blank(cls, v: str) -> str:
        return _required(v)

    @field_validator("email", mode="before")
    @classmethod
    def strip_email(cls, v: str) -> str:
        return _strip(v)
