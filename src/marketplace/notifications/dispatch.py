"""Notification delivery — sends outbox records through their channel adapters.

Each record is delivered on its own worker thread with a timeout. A
provider error, a "failed" result or a timeout marks only that record
FAILED (with its next attempt scheduled); the other records are unaffected.
"""

import asyncio
from dataclasses import dataclass

import structlog

from marketplace.notifications.channel.chat_port import ChatPort
from marketplace.notifications.channel.email_port import EmailPort
from marketplace.notifications.notification import Notification, NotificationChannel, NotificationStatus
from marketplace.reconciliation.persistence import ReconciliationStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class NotificationDispatchOutcome:
    notification_id: str
    audience: str
    channel: str
    success: bool
    message_id: str | None = None
    error: str | None = None


class NotificationDispatcher:
    def __init__(
        self,
        store: ReconciliationStore,
        email: EmailPort,
        chat: ChatPort,
        timeout_seconds: float = 10.0,
    ):
        self.store = store
        self.email = email
        self.chat = chat
        self.timeout_seconds = timeout_seconds

    async def deliver_all(self, notifications: list[Notification]) -> list[NotificationDispatchOutcome]:
        return list(await asyncio.gather(*(self.deliver(n) for n in notifications)))

    async def deliver(self, notification: Notification) -> NotificationDispatchOutcome:
        """Attempt one PENDING notification and persist the result."""
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self._send, notification),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            result = {"status": "failed", "error": f"Timed out after {self.timeout_seconds}s"}
        except Exception as exc:
            logger.error(
                "Notification provider raised",
                notification_id=str(notification.id),
                channel=notification.channel,
                error=str(exc),
                exc_info=True,
            )
            result = {"status": "failed", "error": str(exc) or exc.__class__.__name__}

        if result.get("status") == "sent":
            notification.mark_sent(result.get("message_id"))
            logger.info(
                "Notification sent",
                notification_id=str(notification.id),
                audience=notification.audience,
                channel=notification.channel,
            )
        else:
            notification.mark_failed(result.get("error", "Unknown dispatch error"))
            logger.warning(
                "Notification dispatch failed",
                notification_id=str(notification.id),
                audience=notification.audience,
                channel=notification.channel,
                error=notification.failure_reason,
                retry_count=notification.retry_count,
                next_attempt_at=str(notification.next_attempt_at) if notification.next_attempt_at else None,
            )

        try:
            self.store.save_notification(notification)
        except Exception as exc:
            logger.error(
                "Failed to record notification outcome",
                notification_id=str(notification.id),
                error=str(exc),
                exc_info=True,
            )

        return NotificationDispatchOutcome(
            notification_id=str(notification.id),
            audience=notification.audience,
            channel=notification.channel,
            success=notification.status == NotificationStatus.SENT.value,
            message_id=notification.message_id,
            error=notification.failure_reason,
        )

    def _send(self, notification: Notification) -> dict:
        """Route the record to the adapter for its channel."""
        if notification.channel == NotificationChannel.EMAIL.value:
            return self.email.send_email(
                to=notification.recipient,
                sender=notification.sender,
                subject=notification.subject or "",
                html=notification.body,
            )
        if notification.channel == NotificationChannel.CHAT.value:
            merchant = self.store.get_merchant(notification.merchant_id)
            credentials = merchant.chat_credentials if merchant else None
            if not credentials:
                return {"status": "failed", "error": "Merchant chat credentials not configured"}
            return self.chat.send_message(notification.recipient, notification.body, credentials)
        return {"status": "failed", "error": f"Unknown channel: {notification.channel}"}
