"""
Notifications component.

Builds and sends subscriber-facing emails through an EmailPort.

Key behaviors:
- Confirmation links embed the raw token as a query parameter
- Exactly one EmailPort.send per call, no retry
- Transport failures come back as FAILED results, never masked
"""

from __future__ import annotations

import html
from urllib.parse import urlencode

from src.components.newsletter.models import NewsletterIssue
from src.core.ports.email import EmailAddress, EmailMessage, EmailPort, EmailResult

CONFIRMATION_PATH = "/subscriptions/confirm"
CONFIRMATION_SUBJECT = "Welcome!"


def build_confirmation_url(
    base_url: str,
    token: str,
    path: str = CONFIRMATION_PATH,
) -> str:
    """
    Build the confirmation URL for an email.

    Args:
        base_url: Public base address of the application
        token: Confirmation token
        path: URL path of the confirmation endpoint

    Returns:
        Full confirmation URL
    """
    base = base_url.rstrip("/")
    query = urlencode({"subscription_token": token})
    return f"{base}{path}?{query}"


def build_confirmation_message(recipient_email: str, confirmation_url: str) -> EmailMessage:
    """Build the double opt-in email. HTML and text carry the same link."""
    safe_url = html.escape(confirmation_url, quote=True)
    return EmailMessage(
        recipient=EmailAddress(recipient_email),
        subject=CONFIRMATION_SUBJECT,
        body_html=(
            "Welcome to our newsletter!<br />"
            f'Click <a href="{safe_url}">here</a> to confirm your subscription.'
        ),
        body_text=(
            "Welcome to our newsletter!\n"
            f"Visit {confirmation_url} to confirm your subscription."
        ),
    )


class NotificationDispatcher:
    """
    Notification dispatcher.

    Stateless apart from its configuration, safe to share across requests.
    """

    def __init__(
        self,
        email_client: EmailPort,
        base_url: str,
        confirmation_path: str = CONFIRMATION_PATH,
    ) -> None:
        """Initialize dispatcher."""
        self._email_client = email_client
        self._base_url = base_url
        self._confirmation_path = confirmation_path

    def build_confirmation_url(self, token: str) -> str:
        return build_confirmation_url(self._base_url, token, self._confirmation_path)

    def send_confirmation(self, recipient_email: str, token: str) -> EmailResult:
        """Send the confirmation link for a token."""
        url = self.build_confirmation_url(token)
        return self._email_client.send(build_confirmation_message(recipient_email, url))

    def send_issue(self, recipient_email: str, issue: NewsletterIssue) -> EmailResult:
        """Send a newsletter issue to one recipient."""
        message = EmailMessage(
            recipient=EmailAddress(recipient_email),
            subject=issue.title,
            body_html=issue.html,
            body_text=issue.text,
        )
        return self._email_client.send(message)
