"""Fulfillment classification — pickup or delivery, and what delivery costs.

Events from several generations of checkout are still in flight, each
describing delivery differently. The tiers below are consulted in order and
the first one that yields a positive cost wins:

    1. shippingInfo with option "delivery" (current checkout)
    2. shippingCost / deliveryService       (legacy)
    3. deliveryCost / deliveryCarrier       (older legacy)
    4. pickup
"""

from dataclasses import dataclass
from enum import Enum

import structlog

from marketplace.reconciliation.intent import PurchaseIntent, parse_amount

logger = structlog.get_logger(__name__)

UNKNOWN_DELIVERY_SERVICE = "Unknown Delivery Service"


class FulfillmentType(Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"


@dataclass(frozen=True)
class FulfillmentDecision:
    type: str
    carrier_name: str | None
    cost: float
    service_id: str | None = None
    selected_at_checkout: bool = False

    @property
    def is_delivery(self) -> bool:
        return self.type == FulfillmentType.DELIVERY.value

    @classmethod
    def pickup(cls) -> "FulfillmentDecision":
        return cls(type=FulfillmentType.PICKUP.value, carrier_name=None, cost=0.0)

    @classmethod
    def delivery(cls, carrier_name, cost, service_id=None, selected_at_checkout=False) -> "FulfillmentDecision":
        return cls(
            type=FulfillmentType.DELIVERY.value,
            carrier_name=carrier_name or UNKNOWN_DELIVERY_SERVICE,
            cost=round(cost, 2),
            service_id=service_id,
            selected_at_checkout=selected_at_checkout,
        )


def classify_fulfillment(intent: PurchaseIntent) -> FulfillmentDecision:
    shipping = intent.shipping
    if shipping is not None and (shipping.option or "").lower() == FulfillmentType.DELIVERY.value:
        price = parse_amount(shipping.price)
        if price > 0:
            return FulfillmentDecision.delivery(
                shipping.service_name,
                price,
                service_id=shipping.service_id,
                selected_at_checkout=True,
            )
        logger.warning(
            "Delivery selected without a usable service price, consulting legacy fields",
            payment_confirmation_id=intent.payment_confirmation_id,
        )

    if intent.shipping_cost > 0:
        return FulfillmentDecision.delivery(intent.delivery_service, intent.shipping_cost)

    if intent.delivery_cost > 0:
        return FulfillmentDecision.delivery(intent.delivery_carrier, intent.delivery_cost)

    return FulfillmentDecision.pickup()
