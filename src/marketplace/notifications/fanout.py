"""Notification fan-out for a newly recorded order.

Up to three outbox records are queued with the order:

- the customer's order confirmation, by email, when the customer gave one;
- a new-order alert to the merchant by chat, when the merchant has chat
  credentials and a phone to reach;
- a new-order alert to the merchant by email, when the merchant has one.

They are persisted with the order, then delivered concurrently.
"""

import structlog

from marketplace.identity.customer import CustomerAccount
from marketplace.identity.merchant import Merchant
from marketplace.notifications.dispatch import NotificationDispatcher, NotificationDispatchOutcome
from marketplace.notifications.notification import Audience, Notification, NotificationChannel, NotificationType
from marketplace.notifications.templates import get_template
from marketplace.ordering.order import Order
from marketplace.reconciliation.settings import ReconciliationSettings

logger = structlog.get_logger(__name__)


def order_context(order: Order, merchant: Merchant | None) -> dict:
    """Template context shared by every notification about ``order``."""
    return {
        "order_number": order.order_number,
        "merchant_name": merchant.display_name if merchant else "your supplier",
        "currency_symbol": merchant.currency_symbol if merchant else "£",
        "customer_name": order.customer_name or "Customer",
        "customer_email": order.customer_email,
        "customer_phone": order.customer_phone,
        "items": [
            {
                "product_name": item.product_name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "line_total": item.line_total,
                "selling_type": item.selling_type,
            }
            for item in order.items or []
        ],
        "subtotal": order.subtotal,
        "customer_fee": order.customer_fee,
        "platform_fee": order.platform_fee,
        "delivery_cost": order.delivery_cost,
        "total": order.total,
        "fulfillment_type": order.fulfillment_type,
        "carrier_name": order.carrier_name,
    }


class NotificationFanout:
    def __init__(self, dispatcher: NotificationDispatcher, settings: ReconciliationSettings):
        self.dispatcher = dispatcher
        self.settings = settings

    def build_outbox(
        self,
        order: Order,
        customer: CustomerAccount,
        merchant: Merchant | None,
    ) -> list[Notification]:
        context = order_context(order, merchant)
        outbox = []

        customer_email = order.customer_email or customer.email
        if customer_email:
            outbox.append(
                self._queue(
                    order,
                    Audience.CUSTOMER,
                    NotificationType.ORDER_CONFIRMATION,
                    NotificationChannel.EMAIL,
                    customer_email,
                    context,
                )
            )
        else:
            logger.info("Customer has no email, skipping order confirmation", order_id=str(order.id))

        if merchant is not None and merchant.chat_credentials and merchant.chat_address:
            outbox.append(
                self._queue(
                    order,
                    Audience.MERCHANT,
                    NotificationType.MERCHANT_NEW_ORDER,
                    NotificationChannel.CHAT,
                    merchant.chat_address,
                    context,
                )
            )

        if merchant is not None and merchant.email:
            outbox.append(
                self._queue(
                    order,
                    Audience.MERCHANT,
                    NotificationType.MERCHANT_NEW_ORDER,
                    NotificationChannel.EMAIL,
                    merchant.email,
                    context,
                )
            )

        return outbox

    def _queue(self, order, audience, notification_type, channel, recipient, context) -> Notification:
        rendered = get_template(notification_type.value, channel.value).render(context)
        return Notification.queue(
            order_id=order.id,
            merchant_id=order.merchant_id,
            audience=audience.value,
            notification_type=notification_type.value,
            channel=channel.value,
            recipient=recipient,
            subject=rendered.get("subject"),
            body=rendered["body"],
            sender=self.settings.notification_from_email if channel == NotificationChannel.EMAIL else None,
            max_retries=self.settings.notification_max_retries,
            retry_base_seconds=self.settings.notification_retry_base_seconds,
        )

    async def fan_out(self, order: Order) -> list[NotificationDispatchOutcome]:
        """Deliver every PENDING outbox record queued for ``order``."""
        pending = self.dispatcher.store.get_pending_notifications(order.id)
        if not pending:
            return []
        return await self.dispatcher.deliver_all(pending)
