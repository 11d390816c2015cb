"""Delivery payment trigger — books and pays the carrier when the buyer asked for it.

Only attempted for delivery orders whose checkout chose a carrier service
(with or without a service id) and requested automatic payment. Any
failure leaves the order as it is; the merchant then arranges delivery by
hand.
"""

import asyncio
from dataclasses import dataclass

import structlog

from marketplace.ordering.fulfillment import FulfillmentDecision
from marketplace.ordering.order import Order
from marketplace.reconciliation.intent import PurchaseIntent
from marketplace.reconciliation.persistence import ReconciliationStore
from marketplace.shipping.carrier.port import CarrierPort

logger = structlog.get_logger(__name__)

DEFAULT_COUNTRY = "GBR"
DEFAULT_ITEM_WEIGHT_KG = 1.0


@dataclass(frozen=True)
class DeliveryPaymentOutcome:
    attempted: bool
    success: bool = False
    cost: float = 0.0
    error: str | None = None
    reference: str | None = None


def shipping_context(order: Order, intent: PurchaseIntent, fulfillment: FulfillmentDecision) -> dict:
    customer_data = intent.customer_data or {}
    return {
        "orderId": str(order.id),
        "orderNumber": order.order_number,
        "wholesalerId": str(order.merchant_id),
        "customerData": {
            "name": order.customer_name,
            "email": order.customer_email,
            "phone": order.customer_phone,
            "address": customer_data.get("address") or intent.customer_address,
            "city": customer_data.get("city"),
            "state": customer_data.get("state"),
            "postalCode": customer_data.get("postalCode"),
            "country": customer_data.get("country") or DEFAULT_COUNTRY,
        },
        "shippingInfo": {
            "serviceId": fulfillment.service_id,
            "serviceName": fulfillment.carrier_name,
            "price": fulfillment.cost,
        },
        "items": [
            {
                "productName": item.product_name,
                "quantity": item.quantity,
                "unitPrice": item.unit_price,
                "weight": DEFAULT_ITEM_WEIGHT_KG,
                "value": item.line_total,
            }
            for item in order.items or []
        ],
    }


class DeliveryPaymentTrigger:
    def __init__(self, store: ReconciliationStore, carrier: CarrierPort, timeout_seconds: float = 10.0):
        self.store = store
        self.carrier = carrier
        self.timeout_seconds = timeout_seconds

    async def trigger(
        self,
        order: Order,
        intent: PurchaseIntent,
        fulfillment: FulfillmentDecision,
    ) -> DeliveryPaymentOutcome:
        if not (intent.auto_pay_delivery and fulfillment.is_delivery and fulfillment.selected_at_checkout):
            return DeliveryPaymentOutcome(attempted=False)
        if not fulfillment.service_id:
            logger.info(
                "Checkout service has no service id, carrier will book by service name",
                order_id=str(order.id),
                carrier=fulfillment.carrier_name,
            )

        context = shipping_context(order, intent, fulfillment)
        try:
            result = await asyncio.wait_for(
                asyncio.to_thread(self.carrier.process_shipping_order, context),
                timeout=self.timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                "Carrier payment timed out, merchant must arrange delivery manually",
                order_id=str(order.id),
                timeout_seconds=self.timeout_seconds,
            )
            return DeliveryPaymentOutcome(attempted=True, error=f"Timed out after {self.timeout_seconds}s")
        except Exception as exc:
            logger.error(
                "Carrier payment raised, merchant must arrange delivery manually",
                order_id=str(order.id),
                error=str(exc),
                exc_info=True,
            )
            return DeliveryPaymentOutcome(attempted=True, error=str(exc))

        if not result.success:
            logger.error(
                "Carrier payment failed, merchant must arrange delivery manually",
                order_id=str(order.id),
                error=result.error,
            )
            return DeliveryPaymentOutcome(attempted=True, error=result.error)

        try:
            order.record_delivery_booking(reference=result.reference, charge=result.cost)
            self.store.save_order(order)
        except Exception as exc:
            logger.error(
                "Carrier paid but booking could not be recorded on the order",
                order_id=str(order.id),
                carrier_reference=result.reference,
                error=str(exc),
                exc_info=True,
            )

        logger.info(
            "Carrier payment succeeded",
            order_id=str(order.id),
            carrier=fulfillment.carrier_name,
            cost=result.cost,
            carrier_reference=result.reference,
        )
        return DeliveryPaymentOutcome(
            attempted=True,
            success=True,
            cost=result.cost,
            reference=result.reference,
        )
