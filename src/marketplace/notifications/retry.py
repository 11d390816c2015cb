"""Redelivery of failed notifications whose backoff has elapsed.

Also picks up PENDING records that were committed with their order but never
attempted, because the run stopped between the commit and the fan-out.
A PENDING record counts as stranded once it has been due for longer than the
dispatcher's timeout, so deliveries still in flight are left alone.
"""

from datetime import UTC, datetime

import structlog

from marketplace.notifications.dispatch import NotificationDispatcher, NotificationDispatchOutcome
from marketplace.notifications.notification import NotificationStatus

logger = structlog.get_logger(__name__)


async def retry_due_notifications(
    dispatcher: NotificationDispatcher,
    now: datetime | None = None,
    limit: int = 100,
) -> list[NotificationDispatchOutcome]:
    """Deliver every due record: FAILED ones go back to PENDING first.

    Records that have used up ``max_retries`` are never due and stay FAILED.
    """
    now = now or datetime.now(UTC)
    due = dispatcher.store.get_due_notifications(
        now=now,
        limit=limit,
        stranded_after_seconds=dispatcher.timeout_seconds,
    )
    if not due:
        return []

    stranded = 0
    for notification in due:
        if notification.status == NotificationStatus.FAILED.value:
            notification.retry()
        else:
            stranded += 1
    logger.info("Retrying due notifications", count=len(due), stranded=stranded)
    outcomes = await dispatcher.deliver_all(due)

    for outcome in outcomes:
        if not outcome.success:
            logger.warning(
                "Notification retry failed",
                notification_id=outcome.notification_id,
                channel=outcome.channel,
                error=outcome.error,
            )
    return outcomes
