"""
Email Adapter Interface.

Protocol-based interface for sending transactional and newsletter emails.
Used by the notification dispatcher for confirmation and issue emails.

Key requirements:
- Send one email per call (no retry, no queueing)
- Carry both HTML and plain text bodies
- Report transport failures and timeouts as a FAILED result

Implementation strategies:
1. HttpEmailClient: POSTs to an external email API (production)
2. DevEmailAdapter: Logs emails to console (dev/test)

All strategies implement the same EmailPort interface.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol


class EmailStatus(Enum):
    """Email send result status."""

    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"  # Dev adapter


@dataclass(frozen=True)
class EmailAddress:
    """
    Email address with optional display name.

    Examples:
        EmailAddress("user@example.com")
        EmailAddress("user@example.com", "John Doe")
    """

    email: str
    name: str | None = None

    def __str__(self) -> str:
        """Format as RFC 5322 address."""
        if self.name:
            safe_name = self.name.replace('"', '\\"')
            return f'"{safe_name}" <{self.email}>'
        return self.email


@dataclass(frozen=True)
class EmailMessage:
    """
    Email message to be sent.

    Supports both HTML and plain text body for maximum compatibility.
    """

    recipient: EmailAddress
    subject: str
    body_html: str
    body_text: str
    sender: EmailAddress | None = None  # None = use the client's sender
    headers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate email message."""
        if not self.recipient.email:
            raise EmailValidationError("Recipient email is required", "recipient")
        if not self.subject:
            raise EmailValidationError("Subject is required", "subject")
        if not self.body_html and not self.body_text:
            raise EmailValidationError("At least one of body_html or body_text is required", "body")


@dataclass
class EmailResult:
    """Result of an email send attempt."""

    status: EmailStatus
    message_id: str | None = None  # Provider's message ID
    error: str | None = None
    sent_at: datetime | None = None
    recipient: str = ""

    @classmethod
    def success(cls, recipient: str, message_id: str | None = None) -> EmailResult:
        """Create a successful send result."""
        return cls(
            status=EmailStatus.SENT,
            message_id=message_id,
            recipient=recipient,
            sent_at=datetime.now(UTC),
        )

    @classmethod
    def skipped(cls, recipient: str, reason: str = "Dev mode") -> EmailResult:
        """Create a skipped result (dev adapter)."""
        return cls(
            status=EmailStatus.SKIPPED,
            recipient=recipient,
            error=reason,
        )

    @classmethod
    def failed(cls, recipient: str, error: str) -> EmailResult:
        """Create a failed result."""
        return cls(
            status=EmailStatus.FAILED,
            recipient=recipient,
            error=error,
        )

    @property
    def ok(self) -> bool:
        return self.status != EmailStatus.FAILED


class EmailPort(Protocol):
    """
    Email sending interface.

    Implementations:
    - HttpEmailClient: Sends via the email API over HTTP
    - DevEmailAdapter: Logs to console (dev/test)
    """

    def send(self, message: EmailMessage) -> EmailResult:
        """
        Send an email message.

        Args:
            message: Complete email message

        Returns:
            EmailResult with send outcome

        Notes:
            - Must not raise for transport errors; return failed status instead
        """
        ...


# --- Error Types ---


class EmailError(Exception):
    """Base exception for email-related errors."""

    pass


class EmailValidationError(EmailError, ValueError):
    """Invalid email address or message format."""

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)
