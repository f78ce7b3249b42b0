"""
Newsletter component models.

Data models for broadcasting an issue to confirmed subscribers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from src.components.subscriptions.models import ValidationError

# --- Value Objects ---


@dataclass(frozen=True)
class NewsletterIssue:
    """
    A newsletter issue.

    Transient: built per request and never persisted.
    """

    title: str
    html: str
    text: str


class DeliveryFailurePolicy(Enum):
    """
    What a broadcast does with a recipient it cannot deliver to.

    Applies alike to invalid stored contact details and delivery failures.
    CONTINUE skips the recipient and carries on. ABORT stops the batch.
    """

    CONTINUE = "continue"
    ABORT = "abort"


# --- Input Models ---


@dataclass(frozen=True)
class PublishInput:
    """Input for publishing an issue."""

    issue: NewsletterIssue


# --- Output Models ---


@dataclass(frozen=True)
class SkippedRecipient:
    """A confirmed subscriber whose stored email no longer validates."""

    subscriber_id: UUID
    errors: list[ValidationError] = field(default_factory=list)


@dataclass(frozen=True)
class DeliveryFailure:
    """A recipient the issue could not be delivered to."""

    subscriber_id: UUID
    email: str
    error: str


@dataclass(frozen=True)
class PublishOutput:
    """Output from a broadcast."""

    success: bool
    sent_count: int = 0
    skipped: list[SkippedRecipient] = field(default_factory=list)
    failures: list[DeliveryFailure] = field(default_factory=list)
    aborted: bool = False
    errors: list[ValidationError] = field(default_factory=list)


# --- Configuration ---


@dataclass(frozen=True)
class NewsletterConfig:
    """Newsletter broadcast configuration."""

    delivery_failure_policy: DeliveryFailurePolicy = DeliveryFailurePolicy.CONTINUE
