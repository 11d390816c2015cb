"""Idempotent order creation.

At most one Order exists per payment confirmation id. The existence check
covers sequential redelivery; the unique constraint on the id covers the
concurrent case, and losing that race is reported exactly like finding the
order up front.
"""

import structlog

from marketplace.identity.customer import CustomerAccount
from marketplace.identity.merchant import Merchant
from marketplace.ordering.fulfillment import FulfillmentDecision
from marketplace.ordering.order import Order
from marketplace.reconciliation.errors import ReconciliationError
from marketplace.reconciliation.intent import PurchaseIntent, declared_amount
from marketplace.reconciliation.persistence import DuplicateOrderError, ReconciliationStore

logger = structlog.get_logger(__name__)


def validate_intent(intent: PurchaseIntent) -> None:
    """Reject intents no amount of redelivery can turn into an order."""
    if not intent.payment_confirmation_id:
        raise ReconciliationError("Payment confirmation event has no id")
    if not intent.merchant_id:
        raise ReconciliationError(
            "Payment confirmation names no merchant",
            payment_confirmation_id=intent.payment_confirmation_id,
        )
    if not intent.cart:
        raise ReconciliationError(
            "Payment confirmation has no usable cart lines",
            payment_confirmation_id=intent.payment_confirmation_id,
        )


class IdempotentOrderCreator:
    def __init__(self, store: ReconciliationStore, platform_fee_rate: float = 0.033, outbox_builder=None):
        """``outbox_builder(order, customer, merchant)`` returns the notifications to persist with the order."""
        self.store = store
        self.platform_fee_rate = platform_fee_rate
        self.outbox_builder = outbox_builder

    def create(
        self,
        intent: PurchaseIntent,
        customer: CustomerAccount,
        fulfillment: FulfillmentDecision,
        merchant: Merchant | None = None,
    ) -> tuple[Order, bool]:
        """Return ``(order, created)``. ``created`` is False when the order already existed."""
        existing = self.store.get_order_by_payment_confirmation_id(intent.payment_confirmation_id)
        if existing is not None:
            logger.info("Order already exists for payment", order_id=str(existing.id))
            return existing, False

        validate_intent(intent)

        order = Order.place(
            merchant_id=intent.merchant_id,
            customer_id=customer.id,
            order_number=self.store.generate_order_number(intent.merchant_id),
            payment_confirmation_id=intent.payment_confirmation_id,
            items_data=self._items_data(intent),
            subtotal=intent.subtotal,
            customer_fee=intent.transaction_fee,
            fulfillment=fulfillment,
            platform_fee_rate=self.platform_fee_rate,
            customer_name=customer.full_name,
            customer_email=intent.customer_email or customer.email,
            customer_phone=customer.phone,
            delivery_address=intent.customer_address,
            amount_paid=intent.amount_paid,
        )
        outbox = self.outbox_builder(order, customer, merchant) if self.outbox_builder else []

        try:
            self.store.create_order(order, outbox)
        except DuplicateOrderError:
            winner = self.store.get_order_by_payment_confirmation_id(intent.payment_confirmation_id)
            if winner is None:
                raise
            logger.info("Lost order creation race, using existing order", order_id=str(winner.id))
            return winner, False

        logger.info(
            "Order created",
            order_id=str(order.id),
            order_number=order.order_number,
            total=order.total,
            fulfillment_type=order.fulfillment_type,
            notifications_queued=len(outbox),
        )
        return order, True

    def _items_data(self, intent: PurchaseIntent) -> list[dict]:
        items = []
        for line in intent.cart:
            unit_price = declared_amount(line.unit_price)
            if unit_price is None:
                logger.warning(
                    "Unusable unit price on cart line, recording as zero",
                    product_id=line.product_id,
                    unit_price=repr(line.unit_price),
                )
                unit_price = 0.0
            items.append(
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name or f"Product {line.product_id}",
                    "quantity": line.quantity,
                    "unit_price": unit_price,
                    "selling_type": line.selling_type,
                }
            )
        return items
