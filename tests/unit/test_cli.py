"""
Unit tests for the letterbox CLI.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from src.app_shell import cli
from src.shell.http.request_context import RequestContextFilter

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"


@pytest.fixture(autouse=True)
def restore_root_logger() -> Iterator[None]:
    """main() installs a root handler; drop it again after each test."""
    root = logging.getLogger()
    saved_level = root.level
    yield
    for handler in list(root.handlers):
        if any(isinstance(f, RequestContextFilter) for f in handler.filters):
            root.removeHandler(handler)
    root.setLevel(saved_level)


def write_config(config_dir: Path, db_path: Path, sender: str = "newsletter@letterbox.test") -> None:
    config_dir.mkdir(parents=True, exist_ok=True)
    (config_dir / "base.yaml").write_text(
        "database:\n"
        f"  path: {db_path}\n"
        f"  migrations_dir: {MIGRATIONS_DIR}\n"
        "email_client:\n"
        "  backend: dev\n"
        f'  sender_email: "{sender}"\n'
    )
    (config_dir / "local.yaml").write_text("")


def test_migrate_creates_schema(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("APP_ENVIRONMENT", raising=False)
    db_path = tmp_path / "data" / "letterbox.db"
    write_config(tmp_path / "configuration", db_path)

    cli.main(["--config-dir", str(tmp_path / "configuration"), "migrate"])

    conn = sqlite3.connect(db_path)
    tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    conn.close()
    assert {"subscriptions", "subscription_tokens"} <= tables


def test_invalid_configuration_exits_with_1(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("APP_ENVIRONMENT", raising=False)
    write_config(tmp_path / "configuration", tmp_path / "db.sqlite", sender="not-an-email")

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--config-dir", str(tmp_path / "configuration"), "migrate"])

    assert exc_info.value.code == 1


def test_missing_configuration_exits_with_1(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("APP_ENVIRONMENT", raising=False)

    with pytest.raises(SystemExit) as exc_info:
        cli.main(["--config-dir", str(tmp_path / "nowhere"), "migrate"])

    assert exc_info.value.code == 1


def test_command_is_required() -> None:
    with pytest.raises(SystemExit) as exc_info:
        cli.main([])

    assert exc_info.value.code == 2
