"""
Subscriptions component models.

Data models for the subscriber lifecycle and confirmation-token workflow.

State machine: Subscriber (pending_confirmation → confirmed)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

# --- State Machine ---


class SubscriberStatus(Enum):
    """
    Subscriber lifecycle status.

    State transitions:
    - pending_confirmation → confirmed (via confirmation link)

    Confirmed is terminal. Confirming again is an idempotent no-op.
    """

    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"


VALID_TRANSITIONS: dict[SubscriberStatus, set[SubscriberStatus]] = {
    SubscriberStatus.PENDING_CONFIRMATION: {SubscriberStatus.CONFIRMED},
    SubscriberStatus.CONFIRMED: set(),
}


def can_transition(from_status: SubscriberStatus, to_status: SubscriberStatus) -> bool:
    """Check if a status transition is allowed."""
    return to_status in VALID_TRANSITIONS.get(from_status, set())


# --- Validated Values ---


@dataclass(frozen=True)
class SubscriberName:
    """A display name that passed validation."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class SubscriberEmail:
    """An email address that passed validation."""

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class NewSubscriber:
    """Validated enrollment data, ready to be stored."""

    email: SubscriberEmail
    name: SubscriberName


# --- Entity ---


@dataclass
class Subscriber:
    """
    Subscriber entity.

    The email is kept as the raw stored string: validation rules may change
    after a row was written, so readers re-validate where it matters.
    """

    id: UUID
    email: str
    name: str
    status: SubscriberStatus = SubscriberStatus.PENDING_CONFIRMATION
    subscribed_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class Enrollment:
    """Outcome of an atomic insert-or-fetch in the store."""

    subscriber: Subscriber
    token: str
    created: bool  # False when the email was already enrolled


# --- Input Models ---


@dataclass(frozen=True)
class EnrollInput:
    """Input for a new enrollment. Fields are raw form values."""

    name: str | None
    email: str | None


@dataclass(frozen=True)
class ConfirmInput:
    """Input for confirming a subscription."""

    token: str | None


# --- Output Models ---


@dataclass(frozen=True)
class ValidationError:
    """Validation error detail."""

    code: str
    message: str
    field: str | None = None


@dataclass(frozen=True)
class ValidateNameOutput:
    is_valid: bool
    name: SubscriberName | None = None
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class ValidateEmailOutput:
    is_valid: bool
    email: SubscriberEmail | None = None
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class ValidateSubscriberOutput:
    """Output from validating a name/email pair."""

    is_valid: bool
    subscriber: NewSubscriber | None = None
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class EnrollOutput:
    """Output from an enrollment attempt."""

    success: bool
    subscriber_id: UUID | None = None
    errors: list[ValidationError] = field(default_factory=list)
    created: bool = False
    already_confirmed: bool = False  # Nothing is sent in this case


@dataclass(frozen=True)
class ConfirmOutput:
    """Output from a confirmation attempt."""

    success: bool
    subscriber_id: UUID | None = None
    errors: list[ValidationError] = field(default_factory=list)
    already_confirmed: bool = False  # Idempotent success


# --- Configuration ---


@dataclass(frozen=True)
class SubscriptionConfig:
    """Subscription workflow configuration."""

    token_length: int = 25
    max_name_graphemes: int = 256
    max_email_length: int = 254


# --- Error Types ---


class SubscriptionError(Exception):
    """Base subscriptions error."""

    pass


class PersistenceError(SubscriptionError):
    """Storage I/O failed. Never retried inside the store."""

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        self.reason = reason
        super().__init__(f"Failed to {operation}: {reason}")
