"""Fake carrier adapter — deterministic carrier for testing and development.

Records every shipping order it receives and charges the quoted service price.
"""

from uuid import uuid4

from marketplace.shipping.carrier.port import CarrierPort, ShippingResult


class FakeCarrier(CarrierPort):
    """Fake carrier that always succeeds by default."""

    def __init__(self):
        self.orders: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.raises: Exception | None = None

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Carrier unavailable",
        raises: Exception | None = None,
    ):
        """Configure the fake carrier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raises = raises

    def process_shipping_order(self, context: dict) -> ShippingResult:
        self.orders.append(context)
        if self.raises is not None:
            raise self.raises
        if not self.should_succeed:
            return ShippingResult(success=False, error=self.failure_reason)

        price = (context.get("shippingInfo") or {}).get("price") or 0.0
        return ShippingResult(
            success=True,
            cost=float(price),
            reference=f"FAKE-{uuid4().hex[:12].upper()}",
        )

    def reset(self):
        self.orders.clear()
        self.should_succeed = True
        self.failure_reason = "Carrier unavailable"
        self.raises = None
