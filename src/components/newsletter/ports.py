"""
Newsletter component ports.

Protocol interfaces for broadcast dependencies.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Protocol

from src.components.newsletter.models import NewsletterIssue
from src.components.subscriptions.models import Subscriber
from src.core.ports.email import EmailResult


class ConfirmedSubscribersPort(Protocol):
    """
    Source of broadcast recipients.

    Satisfied by the subscription store.
    """

    def list_confirmed(self) -> Iterator[Subscriber]:
        """Lazily yield confirmed subscribers."""
        ...


class IssueSenderPort(Protocol):
    """Sends one newsletter issue to one recipient."""

    def send_issue(self, recipient_email: str, issue: NewsletterIssue) -> EmailResult:
        """
        Send an issue.

        Returns:
            EmailResult; FAILED status on transport error or timeout
        """
        ...
