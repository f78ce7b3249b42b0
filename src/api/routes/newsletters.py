"""
Newsletter publishing endpoint.

Endpoints:
- POST /newsletters - Send an issue to every confirmed subscriber
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, model_validator

from src.api.deps import (
    get_newsletter_config,
    get_notification_dispatcher,
    get_subscription_store,
)
from src.components.newsletter.component import run
from src.components.newsletter.models import NewsletterConfig, NewsletterIssue, PublishInput
from src.components.notifications import NotificationDispatcher
from src.components.subscriptions.ports import SubscriptionStorePort

router = APIRouter()


# --- Request/Response Models ---


class IssueContent(BaseModel):
    html: str
    text: str

    @model_validator(mode="after")
    def require_a_body(self) -> IssueContent:
        if not self.html and not self.text:
            raise ValueError("At least one of html or text is required")
        return self


class PublishRequest(BaseModel):
    """Request body for publishing an issue."""

    title: str = Field(..., min_length=1, description="Email subject")
    content: IssueContent


class PublishResponse(BaseModel):
    """Response for a completed broadcast."""

    sent_count: int
    skipped_count: int


@router.post(
    "/newsletters",
    response_model=PublishResponse,
    responses={
        400: {"description": "Missing or invalid title or content"},
        500: {"description": "Delivery to at least one recipient failed"},
    },
    summary="Publish a newsletter issue",
)
def publish_newsletter(
    body: PublishRequest,
    store: SubscriptionStorePort = Depends(get_subscription_store),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    config: NewsletterConfig = Depends(get_newsletter_config),
) -> PublishResponse:
    """Send the issue to confirmed subscribers. Pending subscribers get nothing."""
    issue = NewsletterIssue(
        title=body.title,
        html=body.content.html,
        text=body.content.text,
    )

    result = run(PublishInput(issue=issue), store=store, sender=dispatcher, config=config)

    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Internal server error",
        )

    return PublishResponse(
        sent_count=result.sent_count,
        skipped_count=len(result.skipped),
    )
