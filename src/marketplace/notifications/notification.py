"""Notification aggregate — one outbox record per recipient and channel.

Notifications are written in the same unit of work as the order they
describe, so an order never exists without its pending alerts. Delivery
happens afterwards and is retried with exponential backoff.

State Machine:
    PENDING → SENT
    PENDING → FAILED → (retry) → PENDING
"""

from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.notifications.events import (
    NotificationFailed,
    NotificationQueued,
    NotificationRetried,
    NotificationSent,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(Enum):
    ORDER_CONFIRMATION = "OrderConfirmation"
    MERCHANT_NEW_ORDER = "MerchantNewOrder"


class NotificationChannel(Enum):
    EMAIL = "Email"
    CHAT = "Chat"


class NotificationStatus(Enum):
    PENDING = "Pending"
    SENT = "Sent"
    FAILED = "Failed"


class Audience(Enum):
    CUSTOMER = "Customer"
    MERCHANT = "Merchant"


_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.FAILED: {NotificationStatus.PENDING},  # via retry
    NotificationStatus.SENT: set(),  # terminal
}


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@marketplace.aggregate
class Notification:
    order_id = Identifier(required=True)
    merchant_id = Identifier(required=True)
    audience = String(choices=Audience, required=True)
    notification_type = String(choices=NotificationType, required=True)
    channel = String(choices=NotificationChannel, required=True)

    recipient = String(required=True, max_length=254)
    sender = String(max_length=254)
    subject = String(max_length=500)
    body = Text(required=True)

    status = String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    message_id = String(max_length=255)
    failure_reason = String(max_length=500)

    retry_count = Integer(default=0)
    max_retries = Integer(default=3)
    retry_base_seconds = Integer(default=60)
    next_attempt_at = DateTime()

    sent_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def queue(
        cls,
        order_id,
        merchant_id,
        audience,
        notification_type,
        channel,
        recipient,
        body,
        subject=None,
        sender=None,
        max_retries=3,
        retry_base_seconds=60,
    ):
        """Create a PENDING notification, due immediately."""
        now = datetime.now(UTC)
        notification = cls(
            order_id=order_id,
            merchant_id=merchant_id,
            audience=audience,
            notification_type=notification_type,
            channel=channel,
            recipient=recipient,
            sender=sender,
            subject=subject,
            body=body,
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=max_retries,
            retry_base_seconds=retry_base_seconds,
            next_attempt_at=now,
            created_at=now,
            updated_at=now,
        )
        notification.raise_(
            NotificationQueued(
                notification_id=str(notification.id),
                order_id=str(order_id),
                notification_type=notification_type,
                channel=channel,
                recipient=recipient,
                queued_at=now,
            )
        )
        return notification

    @property
    def is_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def is_due(self, now=None) -> bool:
        """True when the record is failed, retryable and its backoff has elapsed."""
        if NotificationStatus(self.status) != NotificationStatus.FAILED or self.is_exhausted:
            return False
        now = now or datetime.now(UTC)
        return self.next_attempt_at is None or self.next_attempt_at <= now

    def is_stranded(self, now=None, grace_seconds: float = 0.0) -> bool:
        """True when a PENDING record was due more than ``grace_seconds`` ago.

        Such a record was committed with its order but its first delivery never
        ran, for example because the process stopped right after the commit.
        """
        if NotificationStatus(self.status) != NotificationStatus.PENDING or self.next_attempt_at is None:
            return False
        now = now or datetime.now(UTC)
        return self.next_attempt_at + timedelta(seconds=grace_seconds) <= now

    def _assert_can_transition(self, target_status):
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_sent(self, message_id=None):
        self._assert_can_transition(NotificationStatus.SENT)

        now = datetime.now(UTC)
        self.status = NotificationStatus.SENT.value
        self.message_id = message_id
        self.sent_at = now
        self.next_attempt_at = None
        self.failure_reason = None
        self.updated_at = now

        self.raise_(
            NotificationSent(
                notification_id=str(self.id),
                order_id=str(self.order_id),
                channel=self.channel,
                message_id=message_id,
                sent_at=now,
            )
        )

    def mark_failed(self, reason):
        """Record a failed attempt and schedule the next one.

        The delay doubles with each attempt: base, 2*base, 4*base, ...
        Once ``max_retries`` attempts have failed no further attempt is scheduled.
        """
        self._assert_can_transition(NotificationStatus.FAILED)

        now = datetime.now(UTC)
        self.status = NotificationStatus.FAILED.value
        self.failure_reason = (reason or "Unknown dispatch error")[:500]
        self.retry_count = self.retry_count + 1
        if self.is_exhausted:
            self.next_attempt_at = None
        else:
            delay = self.retry_base_seconds * (2 ** (self.retry_count - 1))
            self.next_attempt_at = now + timedelta(seconds=delay)
        self.updated_at = now

        self.raise_(
            NotificationFailed(
                notification_id=str(self.id),
                order_id=str(self.order_id),
                channel=self.channel,
                reason=self.failure_reason,
                retry_count=self.retry_count,
                max_retries=self.max_retries,
                next_attempt_at=self.next_attempt_at,
                failed_at=now,
            )
        )

    def retry(self):
        """Move a failed notification back to PENDING for another attempt."""
        if NotificationStatus(self.status) != NotificationStatus.FAILED:
            raise ValidationError({"status": ["Only failed notifications can be retried"]})
        if self.is_exhausted:
            raise ValidationError({"retry_count": ["Maximum retry attempts exceeded"]})

        now = datetime.now(UTC)
        self.status = NotificationStatus.PENDING.value
        self.updated_at = now

        self.raise_(
            NotificationRetried(
                notification_id=str(self.id),
                order_id=str(self.order_id),
                channel=self.channel,
                retry_count=self.retry_count,
                retried_at=now,
            )
        )
