"""FastAPI routes for the marketplace — payment webhook and merchant settings."""

import hashlib
import hmac
import os

import structlog
from fastapi import APIRouter, Header, HTTPException, Request
from protean.utils.globals import current_domain
from pydantic import ValidationError as PayloadValidationError

from marketplace.api.schemas import (
    ForcedIdentityRequest,
    MerchantIdResponse,
    PaymentConfirmedEvent,
    ReconciliationResponse,
)
from marketplace.identity.forced_identity import ConfigureForcedIdentity
from marketplace.notifications.channel import get_channel
from marketplace.notifications.notification import NotificationChannel
from marketplace.reconciliation.persistence import ProteanStore
from marketplace.reconciliation.pipeline import OrderReconciler
from marketplace.shipping.carrier import get_carrier

logger = structlog.get_logger(__name__)

DEVELOPMENT_WEBHOOK_SECRET = "whsec_development"


def webhook_secret() -> str:
    secret = os.environ.get("PAYMENT_WEBHOOK_SECRET")
    if secret:
        return secret
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=500, detail="Webhook secret not configured")
    return DEVELOPMENT_WEBHOOK_SECRET


def sign_payload(payload: bytes, secret: str) -> str:
    return hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, signature: str, secret: str) -> bool:
    """Check a hex HMAC-SHA256 signature, optionally prefixed with ``sha256=``."""
    if not signature:
        return False
    signature = signature.removeprefix("sha256=")
    return hmac.compare_digest(sign_payload(payload, secret), signature)


def build_reconciler() -> OrderReconciler:
    return OrderReconciler(
        store=ProteanStore(),
        email=get_channel(NotificationChannel.EMAIL.value),
        chat=get_channel(NotificationChannel.CHAT.value),
        carrier=get_carrier(),
    )


# ---------------------------------------------------------------------------
# Webhook Router
# ---------------------------------------------------------------------------
webhook_router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@webhook_router.post("/payment-confirmed", response_model=ReconciliationResponse)
async def payment_confirmed(
    request: Request,
    x_payment_signature: str = Header(default=""),
) -> ReconciliationResponse:
    """Reconcile a payment confirmation into an order.

    Redelivering the same event returns the original order with ``created`` false.
    """
    payload = await request.body()
    if not verify_signature(payload, x_payment_signature, webhook_secret()):
        logger.warning("Rejected payment webhook with invalid signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    try:
        event = PaymentConfirmedEvent.model_validate_json(payload)
    except PayloadValidationError as exc:
        raise HTTPException(status_code=422, detail=f"Malformed payment event: {exc.error_count()} error(s)") from exc

    result = await build_reconciler().reconcile(event.model_dump())
    order = result.order
    return ReconciliationResponse(
        order_id=str(order.id),
        order_number=order.order_number,
        created=result.created,
        status=order.status,
        total=order.total,
        fulfillment_type=order.fulfillment_type,
    )


# ---------------------------------------------------------------------------
# Merchant Router
# ---------------------------------------------------------------------------
merchant_router = APIRouter(prefix="/merchants", tags=["merchants"])


@merchant_router.put("/{merchant_id}/forced-identity", response_model=MerchantIdResponse)
async def configure_forced_identity(merchant_id: str, body: ForcedIdentityRequest) -> MerchantIdResponse:
    """Route all of a merchant's orders to one customer account, or clear the setting."""
    command = ConfigureForcedIdentity(
        merchant_id=merchant_id,
        forced_customer_id=body.forced_customer_id,
    )
    result = current_domain.process(command, asynchronous=False)
    return MerchantIdResponse(merchant_id=result)
