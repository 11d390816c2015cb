"""Payment-confirmation event decoding.

The payment gateway delivers a flat metadata bag. Some entries are JSON
strings (``customerData``, ``cart``, ``shippingInfo``), the rest are plain
strings, and any of them may be missing or malformed depending on which
checkout version produced the event. Decoding never fails: an unusable
fragment becomes an absent field and a warning in the log.
"""

import json
import math
from dataclasses import dataclass, field
from typing import Any

import structlog

logger = structlog.get_logger(__name__)


class SellingType:
    UNITS = "units"
    PALLETS = "pallets"


@dataclass(frozen=True)
class CartLine:
    product_id: str
    quantity: int
    unit_price: Any = None  # raw; parsed when the line item is built
    selling_type: str = SellingType.UNITS
    product_name: str | None = None


@dataclass(frozen=True)
class ShippingSelection:
    option: str | None = None
    service_id: str | None = None
    service_name: str | None = None
    price: Any = None  # raw


@dataclass(frozen=True)
class PurchaseIntent:
    payment_confirmation_id: str
    amount_paid: float = 0.0
    merchant_id: str | None = None
    cart: tuple[CartLine, ...] = ()
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    customer_address: str | None = None
    customer_data: dict = field(default_factory=dict)
    subtotal: float = 0.0
    transaction_fee: float = 0.0
    shipping: ShippingSelection | None = None
    shipping_cost: float = 0.0
    delivery_service: str | None = None
    delivery_cost: float = 0.0
    delivery_carrier: str | None = None
    auto_pay_delivery: bool = False


# ---------------------------------------------------------------------------
# Defensive parsers
# ---------------------------------------------------------------------------
def declared_amount(value) -> float | None:
    """The declared amount as a float, or None when it is missing or unusable."""
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount) or amount < 0:
        return None
    return amount


def parse_amount(value) -> float:
    """Parse a money-ish value. Non-numeric, non-finite or negative values become 0."""
    amount = declared_amount(value)
    return 0.0 if amount is None else amount


def parse_quantity(value) -> int | None:
    """Parse a positive whole quantity, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0 or number != int(number):
        return None
    return int(number)


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _load_json(metadata: dict, key: str, expected: type):
    raw = metadata.get(key)
    if raw is None or raw == "":
        return None
    if isinstance(raw, expected):
        return raw
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError) as exc:
        logger.warning("Malformed JSON in event metadata, treating as absent", field=key, error=str(exc))
        return None
    if not isinstance(parsed, expected):
        logger.warning(
            "Unexpected shape in event metadata, treating as absent",
            field=key,
            expected=expected.__name__,
        )
        return None
    return parsed


# ---------------------------------------------------------------------------
# Fragments
# ---------------------------------------------------------------------------
def _decode_cart(metadata: dict) -> tuple[CartLine, ...]:
    entries = _load_json(metadata, "cart", list) or []
    lines = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            logger.warning("Dropping unusable cart entry", position=position, reason="not an object")
            continue
        product_id = _text(entry.get("productId"))
        if product_id is None:
            logger.warning("Dropping unusable cart entry", position=position, reason="missing product id")
            continue
        quantity = parse_quantity(entry.get("quantity"))
        if quantity is None:
            logger.warning(
                "Dropping unusable cart entry",
                position=position,
                product_id=product_id,
                reason="invalid quantity",
            )
            continue

        selling_type = _text(entry.get("sellingType")) or SellingType.UNITS
        if selling_type not in (SellingType.UNITS, SellingType.PALLETS):
            selling_type = SellingType.UNITS

        unit_price = entry.get("unitPrice")
        if unit_price is None:
            unit_price = entry.get("price")

        lines.append(
            CartLine(
                product_id=product_id,
                quantity=quantity,
                unit_price=unit_price,
                selling_type=selling_type,
                product_name=_text(entry.get("productName")),
            )
        )
    return tuple(lines)


def _decode_shipping(metadata: dict) -> ShippingSelection | None:
    info = _load_json(metadata, "shippingInfo", dict)
    if info is None:
        return None
    service = info.get("service")
    if not isinstance(service, dict):
        service = {}
    return ShippingSelection(
        option=_text(info.get("option")),
        service_id=_text(service.get("serviceId")),
        service_name=_text(service.get("serviceName")),
        price=service.get("price"),
    )


def _compose_address(customer_data: dict) -> str | None:
    parts = {
        "street": _text(customer_data.get("address")),
        "city": _text(customer_data.get("city")),
        "state": _text(customer_data.get("state")),
        "postalCode": _text(customer_data.get("postalCode")),
        "country": _text(customer_data.get("country")),
    }
    if not any(parts.values()):
        return None
    return json.dumps({key: value for key, value in parts.items() if value})


def _flag(value) -> bool:
    if isinstance(value, bool):
        return value
    return isinstance(value, str) and value.strip().lower() == "true"


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------
def decode_event(event: dict) -> PurchaseIntent:
    """Decode a raw ``{id, amount, metadata}`` event into a PurchaseIntent."""
    metadata = event.get("metadata")
    if not isinstance(metadata, dict):
        if metadata is not None:
            logger.warning(
                "Unexpected shape in event metadata, treating as absent",
                field="metadata",
                expected="dict",
            )
        metadata = {}

    customer_data = _load_json(metadata, "customerData", dict) or {}
    cart = _decode_cart(metadata)

    subtotal = declared_amount(metadata.get("subtotal"))
    if subtotal is None:
        subtotal = round(sum(parse_amount(line.unit_price) * line.quantity for line in cart), 2)

    return PurchaseIntent(
        payment_confirmation_id=str(event.get("id") or ""),
        amount_paid=round(parse_amount(event.get("amount")) / 100, 2),
        merchant_id=_text(metadata.get("wholesalerId")),
        cart=cart,
        customer_name=_text(customer_data.get("name")) or _text(metadata.get("customerName")),
        customer_email=_text(customer_data.get("email")) or _text(metadata.get("customerEmail")),
        customer_phone=_text(customer_data.get("phone")) or _text(metadata.get("customerPhone")),
        customer_address=_compose_address(customer_data) or _text(metadata.get("customerAddress")),
        customer_data=customer_data,
        subtotal=subtotal,
        transaction_fee=parse_amount(metadata.get("transactionFee")),
        shipping=_decode_shipping(metadata),
        shipping_cost=parse_amount(metadata.get("shippingCost")),
        delivery_service=_text(metadata.get("deliveryService")),
        delivery_cost=parse_amount(metadata.get("deliveryCost")),
        delivery_carrier=_text(metadata.get("deliveryCarrier")),
        auto_pay_delivery=_flag(metadata.get("autoPayDelivery")),
    )
