"""Order reconciliation pipeline — one payment confirmation in, one order out.

Stages run in this order:

    decode → resolve customer → classify fulfillment → create order
           → (adjust stock ∥ deliver notifications ∥ pay carrier)

Everything up to and including order creation runs without yielding to the
event loop, so two runs in the same process never interleave there. Errors
in those stages are fatal and propagate to the caller, which is expected to
let the gateway redeliver. The three stages after creation run concurrently,
each under its own timeout, and their failures are only logged.

The synchronous stages block the event loop while they run, including
database round trips on the production PostgreSQL overlay, so a slow store
holds up every other webhook served by the same process. Adding awaits
there would let two runs for the same payment interleave between the
existence check and the insert; scale out with more worker processes
instead.
"""

import asyncio
from dataclasses import dataclass

import structlog

from marketplace.catalogue.adjustment import InventoryAdjuster, StockAdjustmentOutcome
from marketplace.identity.resolution import CustomerIdentityResolver
from marketplace.notifications.channel.chat_port import ChatPort
from marketplace.notifications.channel.email_port import EmailPort
from marketplace.notifications.dispatch import NotificationDispatcher, NotificationDispatchOutcome
from marketplace.notifications.fanout import NotificationFanout
from marketplace.ordering.creation import IdempotentOrderCreator, validate_intent
from marketplace.ordering.fulfillment import FulfillmentDecision, classify_fulfillment
from marketplace.ordering.order import Order
from marketplace.reconciliation.errors import ReconciliationError
from marketplace.reconciliation.intent import PurchaseIntent, decode_event
from marketplace.reconciliation.persistence import ReconciliationStore
from marketplace.reconciliation.settings import ReconciliationSettings
from marketplace.shipping.carrier.port import CarrierPort
from marketplace.shipping.trigger import DeliveryPaymentOutcome, DeliveryPaymentTrigger
from marketplace.utils.logging import reconciliation_context

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ReconciliationResult:
    order: Order
    created: bool
    fulfillment: FulfillmentDecision | None = None
    stock: tuple[StockAdjustmentOutcome, ...] = ()
    notifications: tuple[NotificationDispatchOutcome, ...] = ()
    delivery_payment: DeliveryPaymentOutcome | None = None


class OrderReconciler:
    def __init__(
        self,
        store: ReconciliationStore,
        email: EmailPort,
        chat: ChatPort,
        carrier: CarrierPort,
        settings: ReconciliationSettings | None = None,
    ):
        self.store = store
        self.settings = settings or ReconciliationSettings.from_domain()

        self.resolver = CustomerIdentityResolver(store, self.settings.default_country_code)
        self.dispatcher = NotificationDispatcher(store, email, chat, self.settings.stage_timeout_seconds)
        self.fanout = NotificationFanout(self.dispatcher, self.settings)
        self.creator = IdempotentOrderCreator(
            store,
            platform_fee_rate=self.settings.platform_fee_rate,
            outbox_builder=self.fanout.build_outbox,
        )
        self.inventory = InventoryAdjuster(store)
        self.delivery = DeliveryPaymentTrigger(store, carrier, self.settings.stage_timeout_seconds)

    async def reconcile_order(self, event: dict) -> Order:
        """Reconcile ``event`` and return its order, new or pre-existing."""
        result = await self.reconcile(event)
        return result.order

    async def reconcile(self, event: dict) -> ReconciliationResult:
        intent = decode_event(event)
        with reconciliation_context(payment_confirmation_id=intent.payment_confirmation_id):
            return await self._run(intent)

    async def _run(self, intent: PurchaseIntent) -> ReconciliationResult:
        if intent.payment_confirmation_id:
            existing = self.store.get_order_by_payment_confirmation_id(intent.payment_confirmation_id)
            if existing is not None:
                logger.info("Payment already reconciled", order_id=str(existing.id))
                return ReconciliationResult(order=existing, created=False)

        validate_intent(intent)
        merchant = self.store.get_merchant(intent.merchant_id)
        if merchant is None:
            raise ReconciliationError(
                f"Unknown merchant {intent.merchant_id}",
                payment_confirmation_id=intent.payment_confirmation_id,
            )

        customer = self.resolver.resolve(
            intent.merchant_id,
            name=intent.customer_name,
            email=intent.customer_email,
            phone=intent.customer_phone,
        )
        fulfillment = classify_fulfillment(intent)
        order, created = self.creator.create(intent, customer, fulfillment, merchant)
        if not created:
            return ReconciliationResult(order=order, created=False, fulfillment=fulfillment)

        stock, notifications, delivery_payment = await asyncio.gather(
            self._best_effort("inventory", self._adjust_stock(order), ()),
            self._best_effort("notifications", self.fanout.fan_out(order), ()),
            self._best_effort(
                "delivery_payment",
                self.delivery.trigger(order, intent, fulfillment),
                DeliveryPaymentOutcome(attempted=True, error="Delivery payment stage failed"),
            ),
        )

        logger.info(
            "Reconciliation complete",
            order_id=str(order.id),
            order_number=order.order_number,
            stock_adjusted=sum(1 for outcome in stock if outcome.success),
            notifications_sent=sum(1 for outcome in notifications if outcome.success),
            delivery_paid=delivery_payment.success,
        )
        return ReconciliationResult(
            order=order,
            created=True,
            fulfillment=fulfillment,
            stock=tuple(stock),
            notifications=tuple(notifications),
            delivery_payment=delivery_payment,
        )

    async def _adjust_stock(self, order: Order) -> list[StockAdjustmentOutcome]:
        return await asyncio.wait_for(
            asyncio.to_thread(self.inventory.adjust, list(order.items or [])),
            timeout=self.settings.stage_timeout_seconds,
        )

    async def _best_effort(self, stage: str, awaitable, default):
        try:
            return await awaitable
        except TimeoutError:
            logger.error("Stage timed out", stage=stage, timeout_seconds=self.settings.stage_timeout_seconds)
        except Exception as exc:
            logger.error("Stage failed", stage=stage, error=str(exc), exc_info=True)
        return default
