"""Order aggregate — the durable record of one paid checkout.

An Order is created exactly once per payment confirmation and never edited
afterwards, apart from the shipping update recorded when a carrier booking
succeeds.

State Machine:
    PAID → DELIVERY_BOOKED
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from marketplace.domain import marketplace
from marketplace.ordering.events import DeliveryBooked, OrderPlaced
from marketplace.ordering.fulfillment import FulfillmentDecision, FulfillmentType


class OrderStatus(Enum):
    PAID = "paid"
    DELIVERY_BOOKED = "delivery_booked"


_VALID_TRANSITIONS = {
    OrderStatus.PAID: {OrderStatus.DELIVERY_BOOKED},
    OrderStatus.DELIVERY_BOOKED: set(),  # terminal
}


@marketplace.entity(part_of="Order")
class OrderLineItem:
    product_id = Identifier(required=True)
    product_name = String(max_length=255)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(default=0.0)
    line_total = Float(default=0.0)
    selling_type = String(max_length=20, default="units")


@marketplace.aggregate
class Order:
    merchant_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_number = String(required=True, max_length=20)
    payment_confirmation_id = String(required=True, max_length=255, unique=True)

    # Customer snapshot at the time of purchase
    customer_name = String(max_length=255)
    customer_email = String(max_length=254)
    customer_phone = String(max_length=20)
    delivery_address = Text()

    items = HasMany(OrderLineItem)

    subtotal = Float(default=0.0)
    platform_fee = Float(default=0.0)
    customer_fee = Float(default=0.0)
    delivery_cost = Float(default=0.0)
    total = Float(default=0.0)
    amount_paid = Float(default=0.0)

    status = String(choices=OrderStatus, default=OrderStatus.PAID.value)
    fulfillment_type = String(choices=FulfillmentType, default=FulfillmentType.PICKUP.value)
    carrier_name = String(max_length=255)
    carrier_reference = String(max_length=255)
    carrier_charge = Float()

    created_at = DateTime()
    updated_at = DateTime()

    @property
    def is_delivery(self) -> bool:
        return self.fulfillment_type == FulfillmentType.DELIVERY.value

    @classmethod
    def place(
        cls,
        merchant_id,
        customer_id,
        order_number: str,
        payment_confirmation_id: str,
        items_data: list[dict],
        subtotal: float,
        customer_fee: float,
        fulfillment: FulfillmentDecision,
        platform_fee_rate: float,
        customer_name=None,
        customer_email=None,
        customer_phone=None,
        delivery_address=None,
        amount_paid=0.0,
    ):
        """Build a paid order with its line items and totals."""
        if not items_data:
            raise ValidationError({"items": ["An order needs at least one line item"]})

        delivery_cost = fulfillment.cost if fulfillment.is_delivery else 0.0
        now = datetime.now(UTC)

        order = cls(
            merchant_id=merchant_id,
            customer_id=customer_id,
            order_number=order_number,
            payment_confirmation_id=payment_confirmation_id,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone,
            delivery_address=delivery_address,
            subtotal=round(subtotal, 2),
            platform_fee=round(subtotal * platform_fee_rate, 2),
            customer_fee=round(customer_fee, 2),
            delivery_cost=round(delivery_cost, 2),
            total=round(subtotal + customer_fee + delivery_cost, 2),
            amount_paid=amount_paid,
            status=OrderStatus.PAID.value,
            fulfillment_type=fulfillment.type,
            carrier_name=fulfillment.carrier_name,
            created_at=now,
            updated_at=now,
        )

        for item in items_data:
            order.add_items(
                OrderLineItem(
                    product_id=item["product_id"],
                    product_name=item.get("product_name"),
                    quantity=item["quantity"],
                    unit_price=item["unit_price"],
                    line_total=round(item["unit_price"] * item["quantity"], 2),
                    selling_type=item.get("selling_type") or "units",
                )
            )

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                merchant_id=str(merchant_id),
                customer_id=str(customer_id),
                payment_confirmation_id=payment_confirmation_id,
                item_count=len(items_data),
                subtotal=order.subtotal,
                platform_fee=order.platform_fee,
                customer_fee=order.customer_fee,
                delivery_cost=order.delivery_cost,
                total=order.total,
                fulfillment_type=order.fulfillment_type,
                carrier_name=order.carrier_name,
                placed_at=now,
            )
        )
        return order

    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def record_delivery_booking(self, reference=None, charge=0.0):
        """Record a successful carrier payment against a delivery order."""
        if not self.is_delivery:
            raise ValidationError({"fulfillment_type": ["Only delivery orders can be booked with a carrier"]})
        self._assert_can_transition(OrderStatus.DELIVERY_BOOKED)

        now = datetime.now(UTC)
        self.status = OrderStatus.DELIVERY_BOOKED.value
        self.carrier_reference = reference
        self.carrier_charge = round(charge or 0.0, 2)
        self.updated_at = now

        self.raise_(
            DeliveryBooked(
                order_id=str(self.id),
                carrier_name=self.carrier_name,
                carrier_reference=reference,
                carrier_charge=self.carrier_charge,
                booked_at=now,
            )
        )
