"""Pydantic request/response schemas for the marketplace API.

These are external contracts (anti-corruption layer), kept separate from
internal Protean commands and the reconciliation pipeline's own types.
"""

from typing import Any

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Payment webhook
# ---------------------------------------------------------------------------
class PaymentConfirmedEvent(BaseModel):
    id: str = Field(min_length=1)
    amount: int = Field(default=0, ge=0)  # minor units
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "pi_3PqR8sLkd2",
                    "amount": 11100,
                    "metadata": {
                        "wholesalerId": "wh-001",
                        "customerData": '{"name": "Jane Smith", "email": "jane@example.com", "phone": "07700900123"}',
                        "cart": '[{"productId": "p-1", "quantity": 2, "unitPrice": "50.00"}]',
                        "subtotal": "100.00",
                        "transactionFee": "6.00",
                        "shippingInfo": '{"option": "delivery", "service": {"serviceId": "rm-24", "serviceName": "Royal Mail 24", "price": "5.00"}}',
                        "autoPayDelivery": "true",
                    },
                }
            ]
        }
    }


class ReconciliationResponse(BaseModel):
    order_id: str
    order_number: str
    created: bool
    status: str
    total: float
    fulfillment_type: str


# ---------------------------------------------------------------------------
# Merchant settings
# ---------------------------------------------------------------------------
class ForcedIdentityRequest(BaseModel):
    forced_customer_id: str | None = None


class MerchantIdResponse(BaseModel):
    merchant_id: str
