"""Carrier port — abstract interface for the carrier-rate aggregator.

The aggregator quotes, buys postage and books the collection; all the
marketplace hands over is the order context and the chosen service.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class ShippingResult:
    success: bool
    cost: float = 0.0
    error: str | None = None
    reference: str | None = None


class CarrierPort(ABC):
    """Abstract interface for carrier adapters."""

    @abstractmethod
    def process_shipping_order(self, context: dict) -> ShippingResult:
        """Pay for delivery of one order.

        ``context`` carries orderId, orderNumber, wholesalerId, customerData
        (name, email, phone and address parts), shippingInfo (serviceId,
        serviceName, price) and items (productName, quantity, unitPrice,
        weight, value).
        """
        ...
