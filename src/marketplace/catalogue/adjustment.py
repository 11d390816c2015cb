"""Inventory adjustment after an order is recorded.

Best effort: every line is attempted on its own, and a product that is
missing or fails to update is logged and skipped. Stock is floored at zero,
so an oversold product reads as sold out rather than negative. Each line is
a single atomic decrement in the store.
"""

from dataclasses import dataclass

import structlog

from marketplace.reconciliation.persistence import ReconciliationStore

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class StockAdjustmentOutcome:
    product_id: str
    selling_type: str
    quantity: int
    success: bool
    previous_stock: int | None = None
    new_stock: int | None = None
    error: str | None = None


class InventoryAdjuster:
    def __init__(self, store: ReconciliationStore):
        self.store = store

    def adjust(self, items) -> list[StockAdjustmentOutcome]:
        """Decrement stock for each line item. ``items`` are OrderLineItem-like objects."""
        return [self._adjust_line(item) for item in items]

    def _adjust_line(self, item) -> StockAdjustmentOutcome:
        product_id = str(item.product_id)
        selling_type = item.selling_type or "units"
        quantity = item.quantity

        try:
            levels = self.store.decrement_product_stock(product_id, selling_type, quantity)
            if levels is None:
                logger.warning("Product not found, skipping stock adjustment", product_id=product_id)
                return StockAdjustmentOutcome(
                    product_id=product_id,
                    selling_type=selling_type,
                    quantity=quantity,
                    success=False,
                    error="Product not found",
                )

            previous, remaining = levels
        except Exception as exc:
            logger.error(
                "Stock adjustment failed",
                product_id=product_id,
                error=str(exc),
                exc_info=True,
            )
            return StockAdjustmentOutcome(
                product_id=product_id,
                selling_type=selling_type,
                quantity=quantity,
                success=False,
                error=str(exc),
            )

        if previous < quantity:
            logger.warning(
                "Product oversold, stock floored at zero",
                product_id=product_id,
                selling_type=selling_type,
                previous_stock=previous,
                quantity=quantity,
            )
        logger.info(
            "Stock adjusted",
            product_id=product_id,
            selling_type=selling_type,
            previous_stock=previous,
            new_stock=remaining,
        )
        return StockAdjustmentOutcome(
            product_id=product_id,
            selling_type=selling_type,
            quantity=quantity,
            success=True,
            previous_stock=previous,
            new_stock=remaining,
        )
