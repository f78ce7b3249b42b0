"""
Notifications component - confirmation and newsletter email dispatch.
"""

from .component import (
    CONFIRMATION_PATH,
    CONFIRMATION_SUBJECT,
    NotificationDispatcher,
    build_confirmation_message,
    build_confirmation_url,
)

__all__ = [
    "NotificationDispatcher",
    "build_confirmation_url",
    "build_confirmation_message",
    "CONFIRMATION_PATH",
    "CONFIRMATION_SUBJECT",
]
