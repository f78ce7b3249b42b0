"""
Subscriptions component.

Functional core for the subscriber lifecycle.
Implements double opt-in enrollment with secure confirmation tokens.

Key behaviors:
- Pure name/email validation (grapheme-aware length limit)
- Idempotent enrollment (store-level insert-or-fetch)
- Cryptographic tokens (secrets), one per subscriber, reused on re-enrollment
- Confirmation is idempotent (pending → confirmed, confirmed stays confirmed)
- A failed email never rolls back the stored subscriber

Invariants:
- Email uniqueness is enforced by the store, not by read-then-write here
- Malformed tokens and unknown tokens are reported with distinct codes
"""

from __future__ import annotations

import logging
import re
import secrets
import string

import regex

from src.components.subscriptions.models import (
    ConfirmInput,
    ConfirmOutput,
    EnrollInput,
    EnrollOutput,
    NewSubscriber,
    SubscriberEmail,
    SubscriberName,
    SubscriberStatus,
    SubscriptionConfig,
    ValidateEmailOutput,
    ValidateNameOutput,
    ValidateSubscriberOutput,
    ValidationError,
)
from src.components.subscriptions.ports import (
    ConfirmationSenderPort,
    SubscriptionStorePort,
)
from src.core.ports.email import EmailStatus

logger = logging.getLogger(__name__)

# --- Email Validation Regex (RFC 5322 simplified) ---

EMAIL_REGEX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@"
    r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

FORBIDDEN_NAME_CHARACTERS = frozenset('/()"<>\\{}')

TOKEN_ALPHABET = string.ascii_letters + string.digits

_GRAPHEME = regex.compile(r"\X")


# --- Pure Functions (Functional Core) ---


def count_graphemes(value: str) -> int:
    """Count user-perceived characters (extended grapheme clusters)."""
    return len(_GRAPHEME.findall(value))


def validate_name(
    name: str | None,
    max_graphemes: int = 256,
) -> ValidateNameOutput:
    """
    Validate a subscriber display name.

    The name is stored as submitted; stripping is only used for the
    emptiness check.
    """
    if name is None:
        return ValidateNameOutput(
            is_valid=False,
            errors=[ValidationError("MISSING_NAME", "Name is required", "name")],
        )

    if not name.strip():
        return ValidateNameOutput(
            is_valid=False,
            errors=[ValidationError("EMPTY_NAME", "Name must not be empty", "name")],
        )

    if count_graphemes(name) > max_graphemes:
        return ValidateNameOutput(
            is_valid=False,
            errors=[
                ValidationError(
                    "NAME_TOO_LONG",
                    f"Name must be at most {max_graphemes} characters",
                    "name",
                )
            ],
        )

    if any(ch in FORBIDDEN_NAME_CHARACTERS for ch in name):
        return ValidateNameOutput(
            is_valid=False,
            errors=[
                ValidationError(
                    "FORBIDDEN_CHARACTERS",
                    "Name contains forbidden characters",
                    "name",
                )
            ],
        )

    return ValidateNameOutput(is_valid=True, name=SubscriberName(name))


def validate_email(
    email: str | None,
    max_length: int = 254,
) -> ValidateEmailOutput:
    """
    Validate email address format.

    Args:
        email: Raw email address
        max_length: Maximum accepted length

    Returns:
        ValidateEmailOutput with the validated address or errors
    """
    if email is None:
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("MISSING_EMAIL", "Email address is required", "email")],
        )

    if not email:
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("EMPTY_EMAIL", "Email address is required", "email")],
        )

    if len(email) > max_length:
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("EMAIL_TOO_LONG", "Email address is too long", "email")],
        )

    if not EMAIL_REGEX.match(email):
        return ValidateEmailOutput(
            is_valid=False,
            errors=[ValidationError("INVALID_FORMAT", "Invalid email format", "email")],
        )

    return ValidateEmailOutput(is_valid=True, email=SubscriberEmail(email))


def validate_new_subscriber(
    name: str | None,
    email: str | None,
    config: SubscriptionConfig | None = None,
) -> ValidateSubscriberOutput:
    """Validate a name/email pair. Errors from both fields are reported."""
    cfg = config or SubscriptionConfig()

    name_result = validate_name(name, cfg.max_name_graphemes)
    email_result = validate_email(email, cfg.max_email_length)

    errors = [*name_result.errors, *email_result.errors]
    if errors or name_result.name is None or email_result.email is None:
        return ValidateSubscriberOutput(is_valid=False, errors=errors)

    return ValidateSubscriberOutput(
        is_valid=True,
        subscriber=NewSubscriber(email=email_result.email, name=name_result.name),
    )


def generate_subscription_token(length: int = 25) -> str:
    """
    Generate a cryptographically secure confirmation token.

    Tokens are opaque ASCII alphanumeric strings with no embedded structure.
    """
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def is_well_formed_token(token: str, length: int = 25) -> bool:
    """Check a token has the issued shape (fixed length, ASCII alphanumeric)."""
    return len(token) == length and all(ch in TOKEN_ALPHABET for ch in token)


# --- Run Handlers (Functional Core) ---


def run_enroll(
    inp: EnrollInput,
    store: SubscriptionStorePort,
    *,
    sender: ConfirmationSenderPort,
    config: SubscriptionConfig | None = None,
) -> EnrollOutput:
    """
    Handle an enrollment request.

    Storage failures propagate as PersistenceError. The confirmation email
    is sent only after the subscriber/token pair has been committed.
    """
    cfg = config or SubscriptionConfig()

    validation = validate_new_subscriber(inp.name, inp.email, cfg)
    if not validation.is_valid or validation.subscriber is None:
        return EnrollOutput(success=False, errors=validation.errors)

    enrollment = store.enroll(
        validation.subscriber,
        lambda _subscriber_id: generate_subscription_token(cfg.token_length),
    )
    subscriber = enrollment.subscriber

    if subscriber.status == SubscriberStatus.CONFIRMED:
        logger.info("Subscriber %s is already confirmed, nothing to send", subscriber.id)
        return EnrollOutput(
            success=True,
            subscriber_id=subscriber.id,
            created=False,
            already_confirmed=True,
        )

    result = sender.send_confirmation(subscriber.email, enrollment.token)
    if result.status == EmailStatus.FAILED:
        # The stored pair stays valid; a later enrollment re-sends the same token.
        logger.error(
            "Failed to send confirmation email to subscriber %s: %s",
            subscriber.id,
            result.error,
        )
        return EnrollOutput(
            success=False,
            subscriber_id=subscriber.id,
            created=enrollment.created,
            errors=[
                ValidationError("DELIVERY_FAILED", "Failed to send confirmation email", None)
            ],
        )

    return EnrollOutput(
        success=True,
        subscriber_id=subscriber.id,
        created=enrollment.created,
    )


def run_confirm(
    inp: ConfirmInput,
    store: SubscriptionStorePort,
    *,
    config: SubscriptionConfig | None = None,
) -> ConfirmOutput:
    """
    Handle a confirmation request.

    A missing or malformed token is a format error; a well-formed token
    that resolves to nobody is an authorization error.
    """
    cfg = config or SubscriptionConfig()

    if not inp.token:
        return ConfirmOutput(
            success=False,
            errors=[ValidationError("MISSING_TOKEN", "Confirmation token is required", None)],
        )

    if not is_well_formed_token(inp.token, cfg.token_length):
        return ConfirmOutput(
            success=False,
            errors=[ValidationError("MALFORMED_TOKEN", "Confirmation token is malformed", None)],
        )

    subscriber_id = store.get_subscriber_id_from_token(inp.token)
    if subscriber_id is None:
        return ConfirmOutput(
            success=False,
            errors=[ValidationError("UNKNOWN_TOKEN", "Unknown confirmation token", None)],
        )

    subscriber = store.get_by_id(subscriber_id)
    if subscriber is not None and subscriber.status == SubscriberStatus.CONFIRMED:
        return ConfirmOutput(
            success=True,
            subscriber_id=subscriber_id,
            already_confirmed=True,
        )

    store.confirm(subscriber_id)

    return ConfirmOutput(success=True, subscriber_id=subscriber_id)


def run(
    inp: EnrollInput | ConfirmInput,
    *,
    store: SubscriptionStorePort,
    sender: ConfirmationSenderPort | None = None,
    config: SubscriptionConfig | None = None,
) -> EnrollOutput | ConfirmOutput:
    """
    Main component entry point.

    Args:
        inp: Input command
        store: Subscription store (Required)
        sender: Confirmation sender (Required for enrollment)
        config: Configuration (Optional)

    Returns:
        Operation result
    """
    if isinstance(inp, EnrollInput):
        if sender is None:
            raise ValueError("Enrollment requires a confirmation sender")
        return run_enroll(inp, store, sender=sender, config=config)
    elif isinstance(inp, ConfirmInput):
        return run_confirm(inp, store, config=config)
    else:
        raise ValueError(f"Unknown input type: {type(inp)}")
