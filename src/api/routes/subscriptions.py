"""
Subscription endpoints.

Endpoints:
- POST /subscriptions - Enroll (form fields name, email)
- GET /subscriptions/confirm - Confirm via the emailed token
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Form, HTTPException, status
from pydantic import BaseModel, Field

from src.api.deps import (
    get_notification_dispatcher,
    get_subscription_config,
    get_subscription_store,
)
from src.components.notifications import NotificationDispatcher
from src.components.subscriptions.component import run
from src.components.subscriptions.models import (
    ConfirmInput,
    EnrollInput,
    SubscriptionConfig,
)
from src.components.subscriptions.ports import SubscriptionStorePort
from src.shell.http.request_context import bind_log_fields

router = APIRouter()

VALIDATION_CODES = frozenset(
    {
        "MISSING_NAME",
        "EMPTY_NAME",
        "NAME_TOO_LONG",
        "FORBIDDEN_CHARACTERS",
        "MISSING_EMAIL",
        "EMPTY_EMAIL",
        "EMAIL_TOO_LONG",
        "INVALID_FORMAT",
    }
)

BAD_TOKEN_CODES = frozenset({"MISSING_TOKEN", "MALFORMED_TOKEN"})


# --- Response Models ---


class SubscribeResponse(BaseModel):
    """Response for an enrollment request."""

    success: bool = Field(..., description="Whether the request was processed successfully")
    message: str = Field(..., description="Human-readable message")


class ConfirmResponse(BaseModel):
    """Response for a confirmation request."""

    success: bool
    message: str


class ErrorResponse(BaseModel):
    """Error response."""

    detail: str


# --- Subscribe Endpoint ---


@router.post(
    "/subscriptions",
    response_model=SubscribeResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or invalid name/email"},
        500: {"model": ErrorResponse, "description": "Storage or email delivery failure"},
    },
    summary="Subscribe to the newsletter",
    description="Start the double opt-in flow. Sends a confirmation email.",
)
def subscribe(
    name: Annotated[str | None, Form()] = None,
    email: Annotated[str | None, Form()] = None,
    store: SubscriptionStorePort = Depends(get_subscription_store),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    config: SubscriptionConfig = Depends(get_subscription_config),
) -> SubscribeResponse:
    """
    Enroll a subscriber.

    Re-enrolling a pending email re-sends the same link. Re-enrolling
    a confirmed email succeeds without sending anything.
    """
    bind_log_fields(subscriber_email=email, subscriber_name=name)

    result = run(EnrollInput(name=name, email=email), store=store, sender=dispatcher, config=config)

    if not result.success:
        for error in result.errors:
            if error.code in VALIDATION_CODES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=error.message,
                )

        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    return SubscribeResponse(
        success=True,
        message="Please check your email to confirm your subscription",
    )


# --- Confirm Endpoint ---


@router.get(
    "/subscriptions/confirm",
    response_model=ConfirmResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing or malformed token"},
        401: {"model": ErrorResponse, "description": "Unknown token"},
    },
    summary="Confirm a subscription",
    description="Confirm a subscription via the token from the confirmation email.",
)
def confirm_subscription(
    subscription_token: str | None = None,
    store: SubscriptionStorePort = Depends(get_subscription_store),
    config: SubscriptionConfig = Depends(get_subscription_config),
) -> ConfirmResponse:
    """
    Confirm a subscription.

    Idempotent: already confirmed subscriptions return success.
    """
    result = run(ConfirmInput(token=subscription_token), store=store, config=config)

    if not result.success:
        for error in result.errors:
            if error.code in BAD_TOKEN_CODES:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=error.message,
                )
            if error.code == "UNKNOWN_TOKEN":
                raise HTTPException(
                    status_code=status.HTTP_401_UNAUTHORIZED,
                    detail=error.message,
                )

        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    if result.already_confirmed:
        return ConfirmResponse(
            success=True,
            message="Your subscription was already confirmed",
        )

    return ConfirmResponse(
        success=True,
        message="Your subscription is confirmed",
    )
