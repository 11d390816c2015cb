from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from marketplace.notifications.events import (
    NotificationFailed,
    NotificationQueued,
    NotificationRetried,
    NotificationSent,
)
from marketplace.notifications.notification import (
    Audience,
    Notification,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)


def _queued(max_retries=3, retry_base_seconds=60):
    return Notification.queue(
        order_id="order-1",
        merchant_id="wh-001",
        audience=Audience.CUSTOMER.value,
        notification_type=NotificationType.ORDER_CONFIRMATION.value,
        channel=NotificationChannel.EMAIL.value,
        recipient="jane@example.com",
        subject="Order FRE-000001 confirmed",
        body="<p>Thanks</p>",
        max_retries=max_retries,
        retry_base_seconds=retry_base_seconds,
    )


class TestQueue:
    def test_queued_notification_is_pending(self):
        notification = _queued()

        assert notification.status == NotificationStatus.PENDING.value
        assert notification.retry_count == 0
        assert notification.next_attempt_at is not None
        assert isinstance(notification._events[0], NotificationQueued)

    def test_pending_notification_is_not_due_for_retry(self):
        assert not _queued().is_due()


class TestSent:
    def test_mark_sent(self):
        notification = _queued()

        notification.mark_sent(message_id="msg-1")

        assert notification.status == NotificationStatus.SENT.value
        assert notification.message_id == "msg-1"
        assert notification.sent_at is not None
        assert notification.next_attempt_at is None
        assert isinstance(notification._events[-1], NotificationSent)

    def test_sent_is_terminal(self):
        notification = _queued()
        notification.mark_sent()

        with pytest.raises(ValidationError):
            notification.mark_failed("late failure")


class TestFailureBackoff:
    def test_first_failure_waits_the_base_delay(self):
        notification = _queued(retry_base_seconds=60)
        before = datetime.now(UTC)

        notification.mark_failed("SMTP down")

        assert notification.status == NotificationStatus.FAILED.value
        assert notification.retry_count == 1
        assert notification.failure_reason == "SMTP down"
        delay = notification.next_attempt_at - before
        assert timedelta(seconds=59) < delay <= timedelta(seconds=61)
        assert isinstance(notification._events[-1], NotificationFailed)

    def test_delay_doubles_with_each_attempt(self):
        notification = _queued(max_retries=5, retry_base_seconds=60)

        notification.mark_failed("first")
        notification.retry()
        before = datetime.now(UTC)
        notification.mark_failed("second")

        assert notification.retry_count == 2
        delay = notification.next_attempt_at - before
        assert timedelta(seconds=119) < delay <= timedelta(seconds=121)

    def test_failure_reason_defaults(self):
        notification = _queued()

        notification.mark_failed(None)

        assert notification.failure_reason == "Unknown dispatch error"

    def test_due_only_after_backoff_elapses(self):
        notification = _queued(retry_base_seconds=60)
        notification.mark_failed("SMTP down")

        assert not notification.is_due(datetime.now(UTC))
        assert notification.is_due(datetime.now(UTC) + timedelta(seconds=61))

    def test_exhausted_notification_is_never_due(self):
        notification = _queued(max_retries=1)

        notification.mark_failed("SMTP down")

        assert notification.is_exhausted
        assert notification.next_attempt_at is None
        assert not notification.is_due(datetime.now(UTC) + timedelta(days=1))


class TestRetry:
    def test_retry_returns_to_pending(self):
        notification = _queued()
        notification.mark_failed("SMTP down")

        notification.retry()

        assert notification.status == NotificationStatus.PENDING.value
        assert notification.retry_count == 1
        assert isinstance(notification._events[-1], NotificationRetried)

    def test_only_failed_notifications_can_be_retried(self):
        with pytest.raises(ValidationError) as exc:
            _queued().retry()
        assert "status" in exc.value.messages

    def test_exhausted_notification_cannot_be_retried(self):
        notification = _queued(max_retries=1)
        notification.mark_failed("SMTP down")

        with pytest.raises(ValidationError) as exc:
            notification.retry()
        assert "retry_count" in exc.value.messages


class TestStranded:
    def test_fresh_pending_record_is_not_stranded(self):
        assert not _queued().is_stranded(datetime.now(UTC), grace_seconds=10)

    def test_pending_record_past_the_grace_period_is_stranded(self):
        notification = _queued()

        assert notification.is_stranded(datetime.now(UTC) + timedelta(seconds=11), grace_seconds=10)

    def test_sent_and_failed_records_are_never_stranded(self):
        later = datetime.now(UTC) + timedelta(days=1)
        sent = _queued()
        sent.mark_sent(message_id="msg-1")
        failed = _queued()
        failed.mark_failed("Mailbox unavailable")

        assert not sent.is_stranded(later)
        assert not failed.is_stranded(later)
