"""
Application configuration.

Settings are layered:
1. configuration/base.yaml
2. configuration/<environment>.yaml (APP_ENVIRONMENT, default "local")
3. APP_<SECTION>__<KEY> environment variables

The merged document is validated with pydantic. Any problem raises
ConfigurationError so the process never reaches a serving state with a
half-read configuration.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from enum import Enum
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError

from src.components.newsletter.models import DeliveryFailurePolicy
from src.components.subscriptions.component import validate_email
from src.core.ports.email import EmailAddress

ENV_PREFIX = "APP_"
ENV_SEPARATOR = "__"


class ConfigurationError(Exception):
    """Configuration could not be loaded or is invalid."""

    pass


class Environment(str, Enum):
    """Runtime environment."""

    LOCAL = "local"
    PRODUCTION = "production"

    @classmethod
    def parse(cls, value: str) -> Environment:
        try:
            return cls(value.lower())
        except ValueError:
            raise ConfigurationError(
                f"{value} is not a supported environment. "
                "Use either `local` or `production`."
            ) from None


# --- Settings Models ---


class ApplicationSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(8000, ge=0, le=65535)
    base_url: str = "http://127.0.0.1:8000"  # Public address used in email links
    log_level: str = "INFO"


class DatabaseSettings(BaseModel):
    path: str = "./data/letterbox.db"
    busy_timeout_seconds: float = Field(5.0, gt=0)
    migrations_dir: str = "migrations"


class EmailClientSettings(BaseModel):
    backend: Literal["http", "dev"] = "http"
    base_url: str = "http://localhost:8025"
    sender_email: str
    authorization_token: SecretStr = SecretStr("")
    timeout_milliseconds: int = Field(10_000, gt=0)

    def sender(self) -> EmailAddress:
        """The validated sender address."""
        result = validate_email(self.sender_email)
        if not result.is_valid or result.email is None:
            raise ConfigurationError(f"Invalid sender email address: {self.sender_email!r}")
        return EmailAddress(result.email.value)

    def credential(self) -> str:
        """The API token; the HTTP backend cannot run without one."""
        token = self.authorization_token.get_secret_value()
        if self.backend == "http" and not token.strip():
            raise ConfigurationError(
                "email_client.authorization_token is required for the http backend"
            )
        return token


class NewsletterSettings(BaseModel):
    delivery_failure_policy: DeliveryFailurePolicy = DeliveryFailurePolicy.CONTINUE


class Settings(BaseModel):
    application: ApplicationSettings = Field(default_factory=ApplicationSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    email_client: EmailClientSettings
    newsletter: NewsletterSettings = Field(default_factory=NewsletterSettings)


# --- Loading ---


def _read_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found at: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML syntax in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {path} must be a mapping")
    return data


def _deep_merge(base: dict[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Collect APP_<SECTION>__<KEY> variables into a nested mapping.

    APP_ENVIRONMENT is not an override; it selects the environment file.
    """
    overrides: dict[str, Any] = {}
    for name, value in environ.items():
        if not name.startswith(ENV_PREFIX) or ENV_SEPARATOR not in name:
            continue
        path = name[len(ENV_PREFIX):].lower().split(ENV_SEPARATOR)
        if not all(path):
            continue
        node = overrides
        for part in path[:-1]:
            node = node.setdefault(part, {})
        node[path[-1]] = value
    return overrides


def load_settings(
    config_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """
    Load and validate settings.

    Raises ConfigurationError if a file is missing, the YAML is invalid,
    the environment is unknown, or the schema does not validate.
    """
    env = os.environ if environ is None else environ
    directory = config_dir or Path(os.getcwd()) / "configuration"

    environment = Environment.parse(env.get("APP_ENVIRONMENT", Environment.LOCAL.value))

    data = _read_yaml(directory / "base.yaml")
    data = _deep_merge(data, _read_yaml(directory / f"{environment.value}.yaml"))
    data = _deep_merge(data, env_overrides(env))

    try:
        settings = Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

    # Fail at startup rather than on the first email.
    settings.email_client.sender()
    settings.email_client.credential()
    return settings
