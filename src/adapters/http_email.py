"""
HTTP Email Adapter (EmailPort Implementation).

Sends emails through an external email API over HTTP.

Key behaviors:
- One POST to {base_url}/email per message
- Bearer credential in the Authorization header
- The configured timeout bounds the whole call; expiry fails closed
- No retry: failures are returned as FAILED results immediately
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any

import httpx

from src.core.ports.email import EmailAddress, EmailMessage, EmailResult

logger = logging.getLogger(__name__)

EMAIL_ENDPOINT = "/email"


class HttpEmailClient:
    """
    Email API client.

    Holds one pooled httpx.Client, shared by concurrent requests. The
    client carries no mutable per-request state.
    """

    def __init__(
        self,
        base_url: str,
        sender: EmailAddress,
        authorization_token: str,
        timeout_ms: int,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.sender = sender
        self.timeout_ms = timeout_ms
        self._client = httpx.Client(
            base_url=base_url,
            timeout=timeout_ms / 1000,
            headers={"Authorization": f"Bearer {authorization_token}"},
            transport=transport,
        )

    def _payload(self, message: EmailMessage) -> dict[str, Any]:
        sender = message.sender or self.sender
        return {
            "From": str(sender),
            "To": str(message.recipient),
            "Subject": message.subject,
            "HtmlBody": message.body_html,
            "TextBody": message.body_text,
        }

    def send(self, message: EmailMessage) -> EmailResult:
        """
        Send one email.

        The configured timeout caps the whole call, not each connect or
        read step: the response is streamed against an overall deadline.

        Args:
            message: Complete email message

        Returns:
            EmailResult with SENT status, or FAILED on timeout, transport
            error or a non-2xx response
        """
        recipient = message.recipient.email
        start = time.monotonic()
        deadline = start + self.timeout_ms / 1000

        try:
            with self._client.stream(
                "POST",
                EMAIL_ENDPOINT,
                json=self._payload(message),
                headers=message.headers or None,
            ) as response:
                body = self._read_before(response, deadline)
                response.raise_for_status()
        except httpx.TimeoutException as e:
            logger.warning(
                "Email API timed out after %dms sending to %s: %s",
                self.timeout_ms,
                recipient,
                e,
            )
            return EmailResult.failed(recipient, f"timed out after {self.timeout_ms}ms")
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Email API rejected message to %s: HTTP %d",
                recipient,
                e.response.status_code,
            )
            return EmailResult.failed(recipient, f"HTTP {e.response.status_code}")
        except httpx.HTTPError as e:
            logger.warning("Email API request to %s failed: %s", recipient, e)
            return EmailResult.failed(recipient, str(e) or type(e).__name__)

        duration_ms = (time.monotonic() - start) * 1000
        logger.debug("Email to %s accepted in %.1fms", recipient, duration_ms)

        return EmailResult.success(recipient, message_id=self._message_id(response, body))

    @staticmethod
    def _read_before(response: httpx.Response, deadline: float) -> bytes:
        """Read the response body, raising ReadTimeout once the deadline passes."""
        chunks: list[bytes] = []
        for chunk in response.iter_bytes():
            if time.monotonic() > deadline:
                raise httpx.ReadTimeout("deadline exceeded", request=response.request)
            chunks.append(chunk)
        if time.monotonic() > deadline:
            raise httpx.ReadTimeout("deadline exceeded", request=response.request)
        return b"".join(chunks)

    @staticmethod
    def _message_id(response: httpx.Response, body: bytes) -> str | None:
        if not response.headers.get("content-type", "").startswith("application/json"):
            return None
        try:
            data = json.loads(body)
        except ValueError:
            return None
        if isinstance(data, dict):
            message_id = data.get("MessageID")
            return str(message_id) if message_id is not None else None
        return None

    def close(self) -> None:
        """Release pooled connections."""
        self._client.close()
