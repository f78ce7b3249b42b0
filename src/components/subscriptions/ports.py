"""
Subscriptions component ports.

Protocol interfaces for subscription workflow dependencies.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Protocol
from uuid import UUID

from src.components.subscriptions.models import (
    Enrollment,
    NewSubscriber,
    Subscriber,
    SubscriberStatus,
)
from src.core.ports.email import EmailResult


class SubscriptionStorePort(Protocol):
    """
    Durable subscriber store.

    Owns email uniqueness and the subscriber/token pairing. Implementations
    raise PersistenceError on storage failure.
    """

    def enroll(
        self,
        new_subscriber: NewSubscriber,
        issue_token: Callable[[UUID], str],
    ) -> Enrollment:
        """
        Insert a pending subscriber and its token, or fetch the existing pair.

        Args:
            new_subscriber: Validated enrollment data
            issue_token: Called exactly once, only when a new row is created

        Returns:
            Enrollment with the stored subscriber and its single token
        """
        ...

    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None:
        """Get subscriber by ID."""
        ...

    def get_by_email(self, email: str) -> Subscriber | None:
        """Get subscriber by email address."""
        ...

    def get_subscriber_id_from_token(self, token: str) -> UUID | None:
        """Resolve a confirmation token to its subscriber."""
        ...

    def confirm(self, subscriber_id: UUID) -> None:
        """Mark subscriber as confirmed. Succeeds if already confirmed."""
        ...

    def list_confirmed(self) -> Iterator[Subscriber]:
        """Lazily yield confirmed subscribers. Each call runs a new query."""
        ...

    def count_by_status(self, status: SubscriberStatus) -> int:
        """Count subscribers by status."""
        ...


class ConfirmationSenderPort(Protocol):
    """Sends the double opt-in confirmation email."""

    def send_confirmation(self, recipient_email: str, token: str) -> EmailResult:
        """
        Send the confirmation link for a token.

        Returns:
            EmailResult; FAILED status on transport error or timeout
        """
        ...
