"""
Newsletter component.

Broadcasts an issue to confirmed subscribers only.

Key behaviors:
- Recipients are read lazily from the store
- Stored emails are re-validated at read time and logged with a warning
  when invalid
- One send per recipient, no retry
- Invalid recipients and delivery failures follow the same
  DeliveryFailurePolicy: CONTINUE (default) skips them, ABORT stops the batch
"""

from __future__ import annotations

import logging

from src.components.newsletter.models import (
    DeliveryFailure,
    DeliveryFailurePolicy,
    NewsletterConfig,
    PublishInput,
    PublishOutput,
    SkippedRecipient,
)
from src.components.newsletter.ports import ConfirmedSubscribersPort, IssueSenderPort
from src.components.subscriptions.component import validate_email
from src.components.subscriptions.models import ValidationError
from src.core.ports.email import EmailStatus

logger = logging.getLogger(__name__)


def run_publish(
    inp: PublishInput,
    store: ConfirmedSubscribersPort,
    *,
    sender: IssueSenderPort,
    config: NewsletterConfig | None = None,
) -> PublishOutput:
    """
    Send an issue to every confirmed subscriber.

    Storage failures while reading recipients propagate as PersistenceError.
    """
    cfg = config or NewsletterConfig()

    sent_count = 0
    skipped: list[SkippedRecipient] = []
    failures: list[DeliveryFailure] = []
    aborted = False

    for subscriber in store.list_confirmed():
        validation = validate_email(subscriber.email)
        if not validation.is_valid or validation.email is None:
            logger.warning(
                "Skipping confirmed subscriber %s: stored contact details are invalid (%s)",
                subscriber.id,
                ", ".join(e.code for e in validation.errors),
            )
            skipped.append(SkippedRecipient(subscriber.id, validation.errors))
            if cfg.delivery_failure_policy == DeliveryFailurePolicy.ABORT:
                aborted = True
                break
            continue

        result = sender.send_issue(validation.email.value, inp.issue)
        if result.status == EmailStatus.FAILED:
            logger.error(
                "Failed to send newsletter issue %r to subscriber %s: %s",
                inp.issue.title,
                subscriber.id,
                result.error,
            )
            failures.append(
                DeliveryFailure(
                    subscriber_id=subscriber.id,
                    email=validation.email.value,
                    error=result.error or "unknown error",
                )
            )
            if cfg.delivery_failure_policy == DeliveryFailurePolicy.ABORT:
                aborted = True
                break
            continue

        sent_count += 1

    errors: list[ValidationError] = []
    if aborted and not failures:
        errors.append(
            ValidationError(
                "ABORTED",
                "Broadcast stopped at a recipient with invalid contact details",
                None,
            )
        )
    if failures:
        errors.append(
            ValidationError(
                "DELIVERY_FAILED",
                f"Failed to deliver the issue to {len(failures)} recipient(s)",
                None,
            )
        )

    logger.info(
        "Published issue %r: sent=%d skipped=%d failed=%d aborted=%s",
        inp.issue.title,
        sent_count,
        len(skipped),
        len(failures),
        aborted,
    )

    return PublishOutput(
        success=not failures and not aborted,
        sent_count=sent_count,
        skipped=skipped,
        failures=failures,
        aborted=aborted,
        errors=errors,
    )


def run(
    inp: PublishInput,
    *,
    store: ConfirmedSubscribersPort,
    sender: IssueSenderPort,
    config: NewsletterConfig | None = None,
) -> PublishOutput:
    """Main component entry point."""
    if isinstance(inp, PublishInput):
        return run_publish(inp, store, sender=sender, config=config)
    raise ValueError(f"Unknown input type: {type(inp)}")
