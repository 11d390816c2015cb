"""Domain events for the Notification aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Notification")
class NotificationQueued:
    """A notification was written to the outbox alongside its order."""

    __version__ = 1

    notification_id = Identifier(required=True)
    order_id = Identifier(required=True)
    notification_type = String(required=True)
    channel = String(required=True)
    recipient = String(required=True)
    queued_at = DateTime(required=True)


@marketplace.event(part_of="Notification")
class NotificationSent:
    __version__ = 1

    notification_id = Identifier(required=True)
    order_id = Identifier(required=True)
    channel = String(required=True)
    message_id = String()
    sent_at = DateTime(required=True)


@marketplace.event(part_of="Notification")
class NotificationFailed:
    __version__ = 1

    notification_id = Identifier(required=True)
    order_id = Identifier(required=True)
    channel = String(required=True)
    reason = String()
    retry_count = Integer(required=True)
    max_retries = Integer(required=True)
    next_attempt_at = DateTime()
    failed_at = DateTime(required=True)


@marketplace.event(part_of="Notification")
class NotificationRetried:
    __version__ = 1

    notification_id = Identifier(required=True)
    order_id = Identifier(required=True)
    channel = String(required=True)
    retry_count = Integer(required=True)
    retried_at = DateTime(required=True)
