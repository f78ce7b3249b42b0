# Letterbox ports (Protocol interfaces)
# Abstract interfaces for adapters; no implementations here

from src.core.ports.email import (
    EmailAddress,
    EmailError,
    EmailMessage,
    EmailPort,
    EmailResult,
    EmailStatus,
    EmailValidationError,
)

__all__ = [
    # Email
    "EmailAddress",
    "EmailError",
    "EmailMessage",
    "EmailPort",
    "EmailResult",
    "EmailStatus",
    "EmailValidationError",
]
