"""
SQLite Database Adapter (SubscriptionStorePort Implementation).

Stores subscribers and their confirmation tokens.
Designed to be Postgres-compatible (uses standard SQL patterns).

Key behaviors:
- Email uniqueness is a UNIQUE constraint, not a read-then-write check
- Enrollment inserts subscriber + token in one BEGIN IMMEDIATE transaction,
  or fetches the existing pair when the email is already enrolled
- Confirmation is an idempotent UPDATE
- One connection per logical operation; the busy timeout bounds lock waits
- sqlite3 errors are wrapped in PersistenceError and never retried
"""

from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from src.components.subscriptions.models import (
    Enrollment,
    NewSubscriber,
    PersistenceError,
    Subscriber,
    SubscriberStatus,
)

# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------


def dict_factory(cursor: sqlite3.Cursor, row: tuple[Any, ...]) -> dict[str, Any]:
    """Convert SQLite row to dictionary."""
    return {col[0]: row[idx] for idx, col in enumerate(cursor.description)}


def parse_dt(s: str) -> datetime:
    """Parse ISO datetime string."""
    return datetime.fromisoformat(s)


# -----------------------------------------------------------------------------
# Base SQLite Repository
# -----------------------------------------------------------------------------


class SQLiteRepoBase:
    """Base class for SQLite repositories."""

    def __init__(self, db_path: str, busy_timeout_seconds: float = 5.0):
        self.db_path = db_path
        self.busy_timeout_seconds = busy_timeout_seconds

    def _get_conn(self) -> sqlite3.Connection:
        """Open a connection with explicit transaction control."""
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout_seconds,
            isolation_level=None,
        )
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def ping(self) -> None:
        """Run a trivial query. Raises PersistenceError if the DB is unusable."""
        try:
            conn = self._get_conn()
            try:
                conn.execute("SELECT 1").fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("reach the database", str(e)) from e


# -----------------------------------------------------------------------------
# Subscription Store
# -----------------------------------------------------------------------------

_SUBSCRIBER_COLUMNS = "s.id, s.email, s.name, s.status, s.subscribed_at"


class SQLiteSubscriptionStore(SQLiteRepoBase):
    """SQLite implementation of SubscriptionStorePort."""

    def enroll(
        self,
        new_subscriber: NewSubscriber,
        issue_token: Callable[[UUID], str],
    ) -> Enrollment:
        email = new_subscriber.email.value
        name = new_subscriber.name.value

        try:
            conn = self._get_conn()
            try:
                # Take the write lock up front so concurrent enrollments of
                # the same email serialize on the UNIQUE constraint.
                conn.execute("BEGIN IMMEDIATE")
                try:
                    enrollment = self._insert_or_fetch(conn, email, name, issue_token)
                    conn.execute("COMMIT")
                except BaseException:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
                return enrollment
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("enroll subscriber", str(e)) from e

    def _insert_or_fetch(
        self,
        conn: sqlite3.Connection,
        email: str,
        name: str,
        issue_token: Callable[[UUID], str],
    ) -> Enrollment:
        subscriber = Subscriber(
            id=uuid4(),
            email=email,
            name=name,
            status=SubscriberStatus.PENDING_CONFIRMATION,
            subscribed_at=datetime.now(UTC),
        )
        cursor = conn.execute(
            """
            INSERT INTO subscriptions (id, email, name, status, subscribed_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(email) DO NOTHING
            """,
            (
                str(subscriber.id),
                subscriber.email,
                subscriber.name,
                subscriber.status.value,
                subscriber.subscribed_at.isoformat(),
            ),
        )

        if cursor.rowcount == 1:
            token = issue_token(subscriber.id)
            conn.execute(
                """
                INSERT INTO subscription_tokens (subscription_token, subscriber_id)
                VALUES (?, ?)
                """,
                (token, str(subscriber.id)),
            )
            return Enrollment(subscriber=subscriber, token=token, created=True)

        row = conn.execute(
            f"""
            SELECT {_SUBSCRIBER_COLUMNS}, t.subscription_token
            FROM subscriptions s
            JOIN subscription_tokens t ON t.subscriber_id = s.id
            WHERE s.email = ?
            """,
            (email,),
        ).fetchone()
        if row is None:
            raise PersistenceError("enroll subscriber", "existing subscriber has no token")

        return Enrollment(
            subscriber=self._map_row(row),
            token=row["subscription_token"],
            created=False,
        )

    def get_by_id(self, subscriber_id: UUID) -> Subscriber | None:
        return self._fetch_one(
            f"SELECT {_SUBSCRIBER_COLUMNS} FROM subscriptions s WHERE s.id = ?",
            (str(subscriber_id),),
            "get subscriber",
        )

    def get_by_email(self, email: str) -> Subscriber | None:
        return self._fetch_one(
            f"SELECT {_SUBSCRIBER_COLUMNS} FROM subscriptions s WHERE s.email = ?",
            (email,),
            "get subscriber by email",
        )

    def get_subscriber_id_from_token(self, token: str) -> UUID | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT subscriber_id FROM subscription_tokens WHERE subscription_token = ?",
                    (token,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("look up confirmation token", str(e)) from e
        return UUID(row["subscriber_id"]) if row else None

    def get_token(self, subscriber_id: UUID) -> str | None:
        """Get the confirmation token issued to a subscriber."""
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT subscription_token FROM subscription_tokens WHERE subscriber_id = ?",
                    (str(subscriber_id),),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("get confirmation token", str(e)) from e
        return row["subscription_token"] if row else None

    def confirm(self, subscriber_id: UUID) -> None:
        try:
            conn = self._get_conn()
            try:
                conn.execute("BEGIN IMMEDIATE")
                try:
                    conn.execute(
                        "UPDATE subscriptions SET status = ? WHERE id = ?",
                        (SubscriberStatus.CONFIRMED.value, str(subscriber_id)),
                    )
                    conn.execute("COMMIT")
                except BaseException:
                    if conn.in_transaction:
                        conn.execute("ROLLBACK")
                    raise
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("confirm subscriber", str(e)) from e

    def list_confirmed(self) -> Iterator[Subscriber]:
        try:
            conn = self._get_conn()
            try:
                cursor = conn.execute(
                    f"""
                    SELECT {_SUBSCRIBER_COLUMNS} FROM subscriptions s
                    WHERE s.status = ?
                    ORDER BY s.subscribed_at
                    """,
                    (SubscriberStatus.CONFIRMED.value,),
                )
                for row in cursor:
                    yield self._map_row(row)
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("list confirmed subscribers", str(e)) from e

    def count_by_status(self, status: SubscriberStatus) -> int:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(
                    "SELECT COUNT(*) AS n FROM subscriptions WHERE status = ?",
                    (status.value,),
                ).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError("count subscribers", str(e)) from e
        return int(row["n"])

    def _fetch_one(
        self,
        sql: str,
        params: tuple[Any, ...],
        operation: str,
    ) -> Subscriber | None:
        try:
            conn = self._get_conn()
            try:
                row = conn.execute(sql, params).fetchone()
            finally:
                conn.close()
        except sqlite3.Error as e:
            raise PersistenceError(operation, str(e)) from e
        return self._map_row(row) if row else None

    def _map_row(self, row: dict[str, Any]) -> Subscriber:
        return Subscriber(
            id=UUID(row["id"]),
            email=row["email"],
            name=row["name"],
            status=SubscriberStatus(row["status"]),
            subscribed_at=parse_dt(row["subscribed_at"]),
        )
