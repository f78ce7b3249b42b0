from pathlib import Path

import pytest

from src.adapters.sqlite.migrator import SQLiteMigrator
from src.adapters.sqlite_db import SQLiteSubscriptionStore
from src.app_shell.config import (
    ApplicationSettings,
    DatabaseSettings,
    EmailClientSettings,
    Settings,
)

PROJECT_ROOT = Path(__file__).resolve().parents[1]
MIGRATIONS_DIR = PROJECT_ROOT / "migrations"
CONFIG_DIR = PROJECT_ROOT / "configuration"


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    """A fresh, fully migrated SQLite database."""
    path = str(tmp_path / "letterbox.db")
    SQLiteMigrator(path, str(MIGRATIONS_DIR)).run_migrations()
    return path


@pytest.fixture
def store(db_path: str) -> SQLiteSubscriptionStore:
    return SQLiteSubscriptionStore(db_path, busy_timeout_seconds=5.0)


@pytest.fixture
def settings(db_path: str) -> Settings:
    """Settings pointing at the temporary database and a fake email API."""
    return Settings(
        application=ApplicationSettings(base_url="http://letterbox.test"),
        database=DatabaseSettings(path=db_path, migrations_dir=str(MIGRATIONS_DIR)),
        email_client=EmailClientSettings(
            backend="http",
            base_url="http://email.test",
            sender_email="newsletter@letterbox.test",
            authorization_token="test-token",
            timeout_milliseconds=200,
        ),
    )
