"""
Subscriptions component.

Double opt-in enrollment and confirmation for the mailing list.
"""

from src.components.subscriptions.component import (
    EMAIL_REGEX,
    FORBIDDEN_NAME_CHARACTERS,
    count_graphemes,
    generate_subscription_token,
    is_well_formed_token,
    run,
    run_confirm,
    run_enroll,
    validate_email,
    validate_name,
    validate_new_subscriber,
)
from src.components.subscriptions.models import (
    VALID_TRANSITIONS,
    ConfirmInput,
    ConfirmOutput,
    EnrollInput,
    Enrollment,
    EnrollOutput,
    NewSubscriber,
    PersistenceError,
    Subscriber,
    SubscriberEmail,
    SubscriberName,
    SubscriberStatus,
    SubscriptionConfig,
    SubscriptionError,
    ValidateEmailOutput,
    ValidateNameOutput,
    ValidateSubscriberOutput,
    ValidationError,
    can_transition,
)
from src.components.subscriptions.ports import (
    ConfirmationSenderPort,
    SubscriptionStorePort,
)

__all__ = [
    # Component
    "run",
    "run_enroll",
    "run_confirm",
    # Pure functions
    "validate_name",
    "validate_email",
    "validate_new_subscriber",
    "count_graphemes",
    "generate_subscription_token",
    "is_well_formed_token",
    # Constants
    "EMAIL_REGEX",
    "FORBIDDEN_NAME_CHARACTERS",
    # Models
    "Subscriber",
    "SubscriberStatus",
    "SubscriberName",
    "SubscriberEmail",
    "NewSubscriber",
    "Enrollment",
    "VALID_TRANSITIONS",
    "can_transition",
    "SubscriptionConfig",
    # Input/Output
    "EnrollInput",
    "EnrollOutput",
    "ConfirmInput",
    "ConfirmOutput",
    "ValidateNameOutput",
    "ValidateEmailOutput",
    "ValidateSubscriberOutput",
    "ValidationError",
    # Errors
    "SubscriptionError",
    "PersistenceError",
    # Ports
    "SubscriptionStorePort",
    "ConfirmationSenderPort",
]
