"""Error taxonomy for the ledger core.

Every failure is detected locally and raised at the point of violation.
None of them is retried by the core.
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all domain failures."""


class NotFoundError(LedgerError):
    """Unknown user, group, event, invite id or group handle."""


class ForbiddenError(LedgerError):
    """The actor lacks the required role, e.g. a non-creator closing an event."""


class AlreadyClosedError(LedgerError):
    """The event is already in its terminal closed state."""


class AlreadyPaidError(LedgerError):
    """The invite has already been paid; repeat payments are rejected."""


class InvalidTransitionError(LedgerError):
    """The invite cannot move to the requested payment state."""


class DuplicateIdentityError(LedgerError):
    """Conflicting account or handle linkage."""


class InvalidCodeError(LedgerError):
    """The supplied verification code does not match."""


class NoRecipientsError(LedgerError):
    """A bulk message was requested for an event with no paid invites."""


class ValidationError(LedgerError):
    """Malformed input: non-positive amount, ill-formed contact fields, etc."""
