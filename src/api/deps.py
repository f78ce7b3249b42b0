"""
FastAPI dependency providers.

Process-wide collaborators (settings, store, email client, dispatcher) are
built once by create_app and kept on app.state; these providers hand them
to endpoints per request. Tests swap them via app.dependency_overrides.
"""

from fastapi import Depends, Request

from src.app_shell.config import Settings
from src.components.newsletter.models import NewsletterConfig
from src.components.notifications import NotificationDispatcher
from src.components.subscriptions.models import SubscriptionConfig
from src.components.subscriptions.ports import SubscriptionStorePort


# --- Settings ---
def get_settings(request: Request) -> Settings:
    settings: Settings = request.app.state.settings
    return settings


def get_subscription_config() -> SubscriptionConfig:
    return SubscriptionConfig()


def get_newsletter_config(settings: Settings = Depends(get_settings)) -> NewsletterConfig:
    return NewsletterConfig(
        delivery_failure_policy=settings.newsletter.delivery_failure_policy,
    )


# --- Store ---
def get_subscription_store(request: Request) -> SubscriptionStorePort:
    store: SubscriptionStorePort = request.app.state.subscription_store
    return store


# --- Notifications ---
def get_notification_dispatcher(request: Request) -> NotificationDispatcher:
    dispatcher: NotificationDispatcher = request.app.state.notification_dispatcher
    return dispatcher
