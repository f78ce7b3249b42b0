"""
Dev Email Adapter (EmailPort Implementation).

Logs emails to console instead of sending.
Used for local development and testing.

Production uses the HTTP email API adapter;
this provides safe testing without sending actual emails.

Key behaviors:
- Logs email details to console
- Returns SKIPPED status (not SENT)
- Stores emails in memory for test assertions
- Can be told to fail, to exercise delivery-failure paths
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import uuid4

from src.core.ports.email import (
    EmailMessage,
    EmailResult,
    EmailStatus,
)

logger = logging.getLogger(__name__)


@dataclass
class SentEmail:
    """Record of a logged email for test assertions."""

    id: str
    recipient: str
    subject: str
    body_html: str
    body_text: str
    sender: str | None
    logged_at: datetime


@dataclass
class DevEmailAdapter:
    """
    Dev email adapter that logs instead of sending.

    Emails are logged and stored in memory. Recipients listed in
    fail_recipients get a FAILED result instead.
    """

    sent_emails: list[SentEmail] = field(default_factory=list)
    fail_recipients: set[str] = field(default_factory=set)

    # Configuration
    log_level: int = logging.INFO
    log_body: bool = True  # Whether to log body content
    body_preview_length: int = 100  # Max chars of body to log

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def send(self, message: EmailMessage) -> EmailResult:
        """
        Log a structured email message.

        Args:
            message: Complete email message

        Returns:
            EmailResult with SKIPPED status, or FAILED for fail_recipients
        """
        recipient = message.recipient.email
        if recipient in self.fail_recipients:
            logger.log(self.log_level, "EMAIL (dev): simulated failure for %s", recipient)
            return EmailResult.failed(recipient, "Dev mode - simulated failure")

        message_id = f"dev-{uuid4().hex[:12]}"
        sender_str = str(message.sender) if message.sender else None

        sent_email = SentEmail(
            id=message_id,
            recipient=recipient,
            subject=message.subject,
            body_html=message.body_html,
            body_text=message.body_text,
            sender=sender_str,
            logged_at=datetime.now(UTC),
        )
        with self._lock:
            self.sent_emails.append(sent_email)

        self._log_email(
            recipient=recipient,
            subject=message.subject,
            body_html=message.body_html,
            message_id=message_id,
            sender=sender_str,
        )

        return EmailResult(
            status=EmailStatus.SKIPPED,
            message_id=message_id,
            recipient=recipient,
            error="Dev mode - email logged, not sent",
        )

    def _log_email(
        self,
        recipient: str,
        subject: str,
        body_html: str,
        message_id: str,
        sender: str | None = None,
    ) -> None:
        """Log email details to console."""
        parts = [
            f"EMAIL (dev): To={recipient}",
            f"Subject={subject}",
        ]

        if sender:
            parts.append(f"From={sender}")

        if self.log_body and body_html:
            preview = body_html[: self.body_preview_length]
            if len(body_html) > self.body_preview_length:
                preview += "..."
            parts.append(f"Body={preview}")

        parts.append(f"MessageID={message_id}")

        logger.log(self.log_level, ", ".join(parts))

    # --- Test Helper Methods ---

    def get_last_email(self) -> SentEmail | None:
        """Get the most recently logged email."""
        return self.sent_emails[-1] if self.sent_emails else None

    def get_emails_to(self, recipient: str) -> list[SentEmail]:
        """Get all emails logged to a specific recipient."""
        return [e for e in self.sent_emails if e.recipient == recipient]

    def clear(self) -> None:
        """Clear all stored emails (for test isolation)."""
        self.sent_emails.clear()

    @property
    def email_count(self) -> int:
        """Get the number of logged emails."""
        return len(self.sent_emails)

    def close(self) -> None:
        """Nothing to release; mirrors HttpEmailClient."""
        return None
