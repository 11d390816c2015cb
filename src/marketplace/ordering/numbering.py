"""Merchant-scoped order numbering.

Each merchant owns one OrderSequence. Numbers are ``PREFIX-NNNNNN`` where the
prefix comes from the merchant's business name and the counter only grows.
"""

from protean.fields import Identifier, Integer, String

from marketplace.domain import marketplace


@marketplace.aggregate
class OrderSequence:
    merchant_id = Identifier(required=True, unique=True)
    prefix = String(max_length=3, default="ORD")
    last_number = Integer(default=0)

    def next_number(self) -> str:
        self.last_number = (self.last_number or 0) + 1
        return format_order_number(self.prefix, self.last_number)


def format_order_number(prefix: str, number: int) -> str:
    return f"{prefix or 'ORD'}-{number:06d}"
