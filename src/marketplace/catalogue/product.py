"""Product aggregate — the stock a merchant sells by the unit or by the pallet."""

from protean.fields import Float, Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.aggregate
class Product:
    merchant_id = Identifier(required=True)
    name = String(required=True, max_length=255)
    price = Float(default=0.0)
    stock = Integer(default=0, min_value=0)
    pallet_stock = Integer(default=0, min_value=0)

    def stock_for(self, selling_type: str) -> int:
        return (self.pallet_stock if selling_type == "pallets" else self.stock) or 0

    def decrement_stock(self, selling_type: str, quantity: int) -> tuple[int, int]:
        """Take ``quantity`` from the pool ``selling_type`` selects, never going below zero.

        Returns the (previous, new) levels of that pool.
        """
        previous = self.stock_for(selling_type)
        remaining = max(0, previous - quantity)
        if selling_type == "pallets":
            self.pallet_stock = remaining
        else:
            self.stock = remaining
        return previous, remaining
