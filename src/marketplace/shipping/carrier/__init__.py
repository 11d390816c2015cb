"""Carrier adapter selection for the app wiring.

``CARRIER_ADAPTER`` names the adapter; only "fake" ships with the
marketplace. A deployment with a real rate aggregator installs its adapter
once at startup with ``use_carrier``.
"""

import os

from marketplace.shipping.carrier.port import CarrierPort

_carrier: CarrierPort | None = None


def get_carrier() -> CarrierPort:
    global _carrier
    if _carrier is None:
        name = os.environ.get("CARRIER_ADAPTER", "fake").lower()
        if name != "fake":
            raise ValueError(f"Unknown carrier adapter: {name}")

        from marketplace.shipping.carrier.fake_adapter import FakeCarrier

        _carrier = FakeCarrier()
    return _carrier


def use_carrier(carrier: CarrierPort) -> None:
    global _carrier
    _carrier = carrier


def reset_carrier() -> None:
    global _carrier
    _carrier = None
