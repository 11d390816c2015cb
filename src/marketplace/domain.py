"""Marketplace bounded context — order reconciliation for wholesale merchants.

Turns payment-confirmation events into orders owned by exactly one customer
account, then adjusts stock, notifies both parties and optionally books the
carrier. Configuration is read from ``[tool.protean]`` in pyproject.toml.
"""

from protean.domain import Domain

from marketplace.utils.logging import configure_logging

configure_logging()

# Domain Composition Root
marketplace = Domain(name="marketplace")
