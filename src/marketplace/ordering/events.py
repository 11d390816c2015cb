"""Domain events for the Order aggregate."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.event(part_of="Order")
class OrderPlaced:
    """A paid order was recorded for a payment confirmation."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    merchant_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_confirmation_id = String(required=True)
    item_count = Integer(required=True)
    subtotal = Float(required=True)
    platform_fee = Float(required=True)
    customer_fee = Float(required=True)
    delivery_cost = Float(required=True)
    total = Float(required=True)
    fulfillment_type = String(required=True)
    carrier_name = String()
    placed_at = DateTime(required=True)


@marketplace.event(part_of="Order")
class DeliveryBooked:
    """Carrier payment for a delivery order went through."""

    __version__ = 1

    order_id = Identifier(required=True)
    carrier_name = String()
    carrier_reference = String()
    carrier_charge = Float(required=True)
    booked_at = DateTime(required=True)
