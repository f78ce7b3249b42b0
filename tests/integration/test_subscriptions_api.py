"""
End-to-end tests for the subscription and newsletter API.

The app runs against a migrated SQLite database; the email API is faked
with httpx.MockTransport behind the real HttpEmailClient.
"""

from __future__ import annotations

import json
import sqlite3
from collections.abc import Iterator
from typing import Any
from urllib.parse import urlparse
from uuid import uuid4

import httpx
import pytest
from fastapi.testclient import TestClient

from src.adapters.http_email import HttpEmailClient
from src.api.main import create_app
from src.app_shell.config import Settings

# --- Fake Email API ---


class FakeEmailApi:
    """Records the JSON payload of each POST /email."""

    def __init__(self) -> None:
        self.payloads: list[dict[str, Any]] = []
        self.status_code = 200

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status_code, json={"MessageID": str(uuid4())})

    def recipients(self) -> list[str]:
        return [p["To"] for p in self.payloads]


def confirmation_link(payload: dict[str, Any]) -> str:
    """Path and query of the link in a confirmation email."""
    url = payload["TextBody"].split("Visit ")[1].split(" ")[0]
    parsed = urlparse(url)
    return f"{parsed.path}?{parsed.query}"


# --- Fixtures ---


@pytest.fixture
def email_api() -> FakeEmailApi:
    return FakeEmailApi()


@pytest.fixture
def client(settings: Settings, email_api: FakeEmailApi) -> Iterator[TestClient]:
    email_client = HttpEmailClient(
        base_url=settings.email_client.base_url,
        sender=settings.email_client.sender(),
        authorization_token=settings.email_client.authorization_token.get_secret_value(),
        timeout_ms=settings.email_client.timeout_milliseconds,
        transport=httpx.MockTransport(email_api),
    )
    app = create_app(settings, email_client=email_client)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db(db_path: str) -> Iterator[sqlite3.Connection]:
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    yield conn
    conn.close()


LE_GUIN = {"name": "le guin", "email": "ursula_le_guin@gmail.com"}


def subscribe_and_confirm(
    client: TestClient, email_api: FakeEmailApi, name: str, email: str
) -> None:
    assert client.post("/subscriptions", data={"name": name, "email": email}).status_code == 200
    assert client.get(confirmation_link(email_api.payloads[-1])).status_code == 200


# --- Subscribe ---


class TestSubscribe:
    def test_valid_form_returns_200_and_persists_pending(
        self, client: TestClient, db: sqlite3.Connection
    ) -> None:
        response = client.post("/subscriptions", data=LE_GUIN)

        assert response.status_code == 200
        row = db.execute("SELECT email, name, status FROM subscriptions").fetchone()
        assert row["email"] == "ursula_le_guin@gmail.com"
        assert row["name"] == "le guin"
        assert row["status"] == "pending_confirmation"

    def test_sends_confirmation_email_with_link(
        self, client: TestClient, email_api: FakeEmailApi
    ) -> None:
        client.post("/subscriptions", data=LE_GUIN)

        assert len(email_api.payloads) == 1
        payload = email_api.payloads[0]
        assert payload["To"] == "ursula_le_guin@gmail.com"
        assert payload["From"] == "newsletter@letterbox.test"
        assert payload["Subject"] == "Welcome!"
        link = confirmation_link(payload)
        assert link.startswith("/subscriptions/confirm?subscription_token=")
        assert link.split("=")[1] in payload["HtmlBody"]

    @pytest.mark.parametrize(
        "data",
        [
            {"name": "le guin"},
            {"email": "ursula_le_guin@gmail.com"},
            {},
            {"name": "", "email": "ursula_le_guin@gmail.com"},
            {"name": "le guin", "email": ""},
            {"name": "le guin", "email": "definitely-not-an-email"},
            {"name": "le <guin>", "email": "ursula_le_guin@gmail.com"},
            {"name": "a" * 257, "email": "ursula_le_guin@gmail.com"},
        ],
    )
    def test_invalid_form_returns_400(
        self,
        client: TestClient,
        email_api: FakeEmailApi,
        db: sqlite3.Connection,
        data: dict[str, str],
    ) -> None:
        response = client.post("/subscriptions", data=data)

        assert response.status_code == 400
        assert email_api.payloads == []
        assert db.execute("SELECT COUNT(*) FROM subscriptions").fetchone()[0] == 0

    def test_reenrolling_resends_identical_email(
        self, client: TestClient, email_api: FakeEmailApi, db: sqlite3.Connection
    ) -> None:
        assert client.post("/subscriptions", data=LE_GUIN).status_code == 200
        assert client.post("/subscriptions", data=LE_GUIN).status_code == 200

        assert len(email_api.payloads) == 2
        assert email_api.payloads[0]["HtmlBody"] == email_api.payloads[1]["HtmlBody"]
        assert email_api.payloads[0]["TextBody"] == email_api.payloads[1]["TextBody"]
        assert db.execute("SELECT COUNT(*) FROM subscriptions").fetchone()[0] == 1
        assert db.execute("SELECT COUNT(*) FROM subscription_tokens").fetchone()[0] == 1

    def test_email_api_failure_returns_500_and_keeps_subscriber(
        self, client: TestClient, email_api: FakeEmailApi, db: sqlite3.Connection
    ) -> None:
        email_api.status_code = 500

        response = client.post("/subscriptions", data=LE_GUIN)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
        assert db.execute("SELECT COUNT(*) FROM subscriptions").fetchone()[0] == 1

    def test_retry_after_failure_sends_same_link(
        self, client: TestClient, email_api: FakeEmailApi
    ) -> None:
        email_api.status_code = 500
        client.post("/subscriptions", data=LE_GUIN)
        email_api.status_code = 200

        assert client.post("/subscriptions", data=LE_GUIN).status_code == 200
        assert confirmation_link(email_api.payloads[0]) == confirmation_link(
            email_api.payloads[1]
        )

    def test_reenrolling_confirmed_subscriber_sends_nothing(
        self, client: TestClient, email_api: FakeEmailApi
    ) -> None:
        subscribe_and_confirm(client, email_api, **LE_GUIN)

        response = client.post("/subscriptions", data=LE_GUIN)

        assert response.status_code == 200
        assert len(email_api.payloads) == 1

    def test_storage_failure_returns_generic_500(
        self, client: TestClient, db: sqlite3.Connection
    ) -> None:
        db.execute("DROP TABLE subscription_tokens")
        db.execute("DROP TABLE subscriptions")
        db.commit()

        response = client.post("/subscriptions", data=LE_GUIN)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}

    def test_response_carries_request_id(self, client: TestClient) -> None:
        response = client.post(
            "/subscriptions", data=LE_GUIN, headers={"X-Request-ID": "req-123"}
        )

        assert response.headers["X-Request-ID"] == "req-123"


# --- Confirm ---


class TestConfirm:
    def test_link_confirms_subscriber(
        self, client: TestClient, email_api: FakeEmailApi, db: sqlite3.Connection
    ) -> None:
        client.post("/subscriptions", data=LE_GUIN)

        response = client.get(confirmation_link(email_api.payloads[0]))

        assert response.status_code == 200
        row = db.execute("SELECT status FROM subscriptions").fetchone()
        assert row["status"] == "confirmed"

    def test_clicking_twice_is_idempotent(
        self, client: TestClient, email_api: FakeEmailApi, db: sqlite3.Connection
    ) -> None:
        client.post("/subscriptions", data=LE_GUIN)
        link = confirmation_link(email_api.payloads[0])

        assert client.get(link).status_code == 200
        assert client.get(link).status_code == 200
        assert db.execute("SELECT status FROM subscriptions").fetchone()["status"] == "confirmed"

    def test_missing_token_returns_400(self, client: TestClient) -> None:
        assert client.get("/subscriptions/confirm").status_code == 400

    def test_empty_token_returns_400(self, client: TestClient) -> None:
        assert client.get("/subscriptions/confirm?subscription_token=").status_code == 400

    @pytest.mark.parametrize("token", ["garbage", "a" * 24, "a" * 26, "a" * 24 + "!"])
    def test_malformed_token_returns_400(self, client: TestClient, token: str) -> None:
        response = client.get("/subscriptions/confirm", params={"subscription_token": token})
        assert response.status_code == 400

    def test_unknown_token_returns_401(self, client: TestClient) -> None:
        response = client.get(
            "/subscriptions/confirm", params={"subscription_token": "a" * 25}
        )
        assert response.status_code == 401


# --- Newsletters ---


ISSUE = {
    "title": "Newsletter title",
    "content": {
        "html": "<p>Newsletter body as HTML</p>",
        "text": "Newsletter body as plain text",
    },
}


class TestPublish:
    def test_pending_subscribers_get_nothing(
        self, client: TestClient, email_api: FakeEmailApi
    ) -> None:
        client.post("/subscriptions", data=LE_GUIN)
        email_api.payloads.clear()

        response = client.post("/newsletters", json=ISSUE)

        assert response.status_code == 200
        assert response.json() == {"sent_count": 0, "skipped_count": 0}
        assert email_api.payloads == []

    def test_confirmed_subscribers_get_the_issue(
        self, client: TestClient, email_api: FakeEmailApi
    ) -> None:
        subscribe_and_confirm(client, email_api, **LE_GUIN)
        client.post("/subscriptions", data={"name": "pending", "email": "pending@example.com"})
        email_api.payloads.clear()

        response = client.post("/newsletters", json=ISSUE)

        assert response.status_code == 200
        assert email_api.recipients() == ["ursula_le_guin@gmail.com"]
        payload = email_api.payloads[0]
        assert payload["Subject"] == "Newsletter title"
        assert payload["HtmlBody"] == "<p>Newsletter body as HTML</p>"
        assert payload["TextBody"] == "Newsletter body as plain text"

    def test_invalid_stored_email_is_skipped(
        self, client: TestClient, email_api: FakeEmailApi, db: sqlite3.Connection
    ) -> None:
        subscribe_and_confirm(client, email_api, **LE_GUIN)
        db.execute(
            "INSERT INTO subscriptions (id, email, name, status, subscribed_at) "
            "VALUES (?, 'not-an-email', 'legacy', 'confirmed', '2024-01-01T00:00:00+00:00')",
            (str(uuid4()),),
        )
        db.commit()
        email_api.payloads.clear()

        response = client.post("/newsletters", json=ISSUE)

        assert response.status_code == 200
        assert response.json() == {"sent_count": 1, "skipped_count": 1}
        assert email_api.recipients() == ["ursula_le_guin@gmail.com"]

    def test_delivery_failure_returns_500(
        self, client: TestClient, email_api: FakeEmailApi
    ) -> None:
        subscribe_and_confirm(client, email_api, **LE_GUIN)
        email_api.status_code = 500

        response = client.post("/newsletters", json=ISSUE)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}

    @pytest.mark.parametrize(
        "body",
        [
            {"content": {"html": "<p>x</p>", "text": "x"}},
            {"title": "Newsletter!"},
            {"title": "Newsletter!", "content": {"text": "x"}},
            {"title": "", "content": {"html": "<p>x</p>", "text": "x"}},
            {"title": "Newsletter!", "content": {"html": "", "text": ""}},
        ],
    )
    def test_malformed_body_returns_400(self, client: TestClient, body: dict[str, Any]) -> None:
        response = client.post("/newsletters", json=body)

        assert response.status_code == 400
        assert response.json()["detail"]

    def test_undecodable_body_returns_400(self, client: TestClient) -> None:
        response = client.post(
            "/newsletters",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400


# --- Health ---


class TestHealth:
    def test_health_check(self, client: TestClient) -> None:
        response = client.get("/health_check")

        assert response.status_code == 200
        assert response.content == b""

    def test_ready_with_migrated_database(self, client: TestClient) -> None:
        response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["ready"] is True


# --- Lifespan ---


class RecordingEmailClient:
    def __init__(self) -> None:
        self.closed = False

    def send(self, message: Any) -> Any:
        raise AssertionError("not expected to send")

    def close(self) -> None:
        self.closed = True


def test_shutdown_closes_email_client(settings: Settings) -> None:
    email_client = RecordingEmailClient()
    app = create_app(settings, email_client=email_client)

    with TestClient(app):
        assert not email_client.closed

    assert email_client.closed
