"""
Newsletter component.

Broadcast of newsletter issues to confirmed subscribers.
"""

from src.components.newsletter.component import run, run_publish
from src.components.newsletter.models import (
    DeliveryFailure,
    DeliveryFailurePolicy,
    NewsletterConfig,
    NewsletterIssue,
    PublishInput,
    PublishOutput,
    SkippedRecipient,
)
from src.components.newsletter.ports import ConfirmedSubscribersPort, IssueSenderPort

__all__ = [
    # Component
    "run",
    "run_publish",
    # Models
    "NewsletterIssue",
    "NewsletterConfig",
    "DeliveryFailurePolicy",
    # Input/Output
    "PublishInput",
    "PublishOutput",
    "SkippedRecipient",
    "DeliveryFailure",
    # Ports
    "ConfirmedSubscribersPort",
    "IssueSenderPort",
]
