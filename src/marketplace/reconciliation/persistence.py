"""Persistence port for the reconciliation pipeline, and its protean adapter.

The pipeline never touches repositories directly: everything it reads or
writes goes through ``ReconciliationStore``. ``ProteanStore`` is the
production adapter, backed by whatever database the domain is configured
with. Uniqueness violations on the payment confirmation id and on customer
phone/email surface as ``DuplicateOrderError`` / ``DuplicateCustomerError``
so callers can re-read the winning record.
"""

import threading
from abc import ABC, abstractmethod
from datetime import UTC, datetime

import structlog
from protean import UnitOfWork
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from marketplace.catalogue.product import Product
from marketplace.identity.customer import CustomerAccount
from marketplace.identity.merchant import Merchant
from marketplace.notifications.notification import Notification, NotificationStatus
from marketplace.ordering.numbering import OrderSequence
from marketplace.ordering.order import Order

STOCK_WRITE_ATTEMPTS = 3

_stock_lock = threading.Lock()

logger = structlog.get_logger(__name__)


class DuplicateOrderError(Exception):
    """An order already exists for this payment confirmation id."""

    def __init__(self, payment_confirmation_id):
        super().__init__(f"Order already exists for payment confirmation {payment_confirmation_id}")
        self.payment_confirmation_id = payment_confirmation_id


class DuplicateCustomerError(Exception):
    """Another account already owns this phone number or email address."""

    def __init__(self, fields):
        super().__init__(f"Customer already exists with {', '.join(sorted(fields))}")
        self.fields = fields


class ReconciliationStore(ABC):
    # Orders
    @abstractmethod
    def get_order_by_payment_confirmation_id(self, payment_confirmation_id: str) -> Order | None: ...

    @abstractmethod
    def create_order(self, order: Order, outbox: list[Notification]) -> Order:
        """Persist the order, its line items and its outbox records atomically.

        Raises DuplicateOrderError when the payment confirmation id is taken.
        """
        ...

    @abstractmethod
    def generate_order_number(self, merchant_id: str) -> str: ...

    @abstractmethod
    def get_order_items(self, order_id: str) -> list: ...

    @abstractmethod
    def save_order(self, order: Order) -> Order: ...

    # Accounts
    @abstractmethod
    def get_customer(self, customer_id: str) -> CustomerAccount | None: ...

    @abstractmethod
    def get_merchant(self, merchant_id: str) -> Merchant | None: ...

    @abstractmethod
    def get_customer_by_phone(self, phone: str) -> CustomerAccount | None: ...

    @abstractmethod
    def get_customer_by_email(self, email: str) -> CustomerAccount | None: ...

    @abstractmethod
    def create_customer(self, fields: dict) -> CustomerAccount:
        """Raises DuplicateCustomerError when phone or email is already taken."""
        ...

    @abstractmethod
    def update_customer(self, customer_id: str, fields: dict) -> CustomerAccount: ...

    @abstractmethod
    def update_customer_phone(self, customer_id: str, phone: str) -> CustomerAccount: ...

    # Catalogue
    @abstractmethod
    def get_product(self, product_id: str) -> Product | None: ...

    @abstractmethod
    def update_product_stock(self, product_id: str, new_stock: int) -> Product: ...

    @abstractmethod
    def update_product(self, product_id: str, fields: dict) -> Product: ...

    @abstractmethod
    def decrement_product_stock(self, product_id: str, selling_type: str, quantity: int) -> tuple[int, int] | None:
        """Take ``quantity`` from the product's stock pool in one atomic step.

        Returns the (previous, new) levels, or None when the product does not exist.
        """

    # Notification outbox
    @abstractmethod
    def get_pending_notifications(self, order_id: str) -> list[Notification]: ...

    @abstractmethod
    def get_due_notifications(
        self,
        now: datetime | None = None,
        limit: int = 100,
        stranded_after_seconds: float | None = None,
    ) -> list[Notification]:
        """FAILED records whose backoff has elapsed, oldest first.

        With ``stranded_after_seconds`` set, PENDING records due longer ago than
        that are included too.
        """

    @abstractmethod
    def save_notification(self, notification: Notification) -> Notification: ...


class ProteanStore(ReconciliationStore):
    """ReconciliationStore backed by the active domain's repositories."""

    def _get(self, aggregate_cls, identifier):
        if identifier is None:
            return None
        try:
            return current_domain.repository_for(aggregate_cls).get(identifier)
        except ObjectNotFoundError:
            return None

    def _first(self, aggregate_cls, **filters):
        repo = current_domain.repository_for(aggregate_cls)
        items = repo._dao.query.filter(**filters).all().items
        return items[0] if items else None

    # -------------------------------------------------------------------
    # Orders
    # -------------------------------------------------------------------
    def get_order_by_payment_confirmation_id(self, payment_confirmation_id):
        return self._first(Order, payment_confirmation_id=payment_confirmation_id)

    def create_order(self, order, outbox):
        try:
            with UnitOfWork():
                current_domain.repository_for(Order).add(order)
                notification_repo = current_domain.repository_for(Notification)
                for notification in outbox:
                    notification_repo.add(notification)
        except ValidationError as exc:
            if "payment_confirmation_id" in exc.messages:
                raise DuplicateOrderError(order.payment_confirmation_id) from exc
            raise
        return order

    def generate_order_number(self, merchant_id):
        repo = current_domain.repository_for(OrderSequence)
        sequence = self._first(OrderSequence, merchant_id=merchant_id)
        if sequence is None:
            merchant = self.get_merchant(merchant_id)
            prefix = merchant.order_number_prefix if merchant else "ORD"
            sequence = OrderSequence(merchant_id=merchant_id, prefix=prefix, last_number=0)
        number = sequence.next_number()
        repo.add(sequence)
        return number

    def get_order_items(self, order_id):
        order = self._get(Order, order_id)
        return list(order.items or []) if order else []

    def save_order(self, order):
        current_domain.repository_for(Order).add(order)
        return order

    # -------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------
    def get_customer(self, customer_id):
        return self._get(CustomerAccount, customer_id)

    def get_merchant(self, merchant_id):
        return self._get(Merchant, merchant_id)

    def get_customer_by_phone(self, phone):
        if not phone:
            return None
        return self._first(CustomerAccount, phone=phone)

    def get_customer_by_email(self, email):
        if not email:
            return None
        return self._first(CustomerAccount, email=email.lower())

    def _save_account(self, account):
        try:
            with UnitOfWork():
                current_domain.repository_for(CustomerAccount).add(account)
        except ValidationError as exc:
            taken = {"phone", "email"} & set(exc.messages)
            if taken:
                raise DuplicateCustomerError(taken) from exc
            raise
        return account

    def create_customer(self, fields):
        return self._save_account(CustomerAccount.register(**fields))

    def update_customer(self, customer_id, fields):
        account = current_domain.repository_for(CustomerAccount).get(customer_id)
        if not account.refine(**fields):
            return account
        return self._save_account(account)

    def update_customer_phone(self, customer_id, phone):
        return self.update_customer(customer_id, {"phone": phone})

    # -------------------------------------------------------------------
    # Catalogue
    # -------------------------------------------------------------------
    def get_product(self, product_id):
        return self._get(Product, product_id)

    def update_product_stock(self, product_id, new_stock):
        return self.update_product(product_id, {"stock": new_stock})

    def update_product(self, product_id, fields):
        repo = current_domain.repository_for(Product)
        product = repo.get(product_id)
        for attr, value in fields.items():
            setattr(product, attr, value)
        repo.add(product)
        return product

    def _save_product(self, product):
        with UnitOfWork():
            current_domain.repository_for(Product).add(product)

    def decrement_product_stock(self, product_id, selling_type, quantity):
        # Writers in this process queue on the lock; a stale read from another
        # process fails the version check and is read again.
        with _stock_lock:
            for attempt in range(1, STOCK_WRITE_ATTEMPTS + 1):
                product = self.get_product(product_id)
                if product is None:
                    return None
                levels = product.decrement_stock(selling_type, quantity)
                try:
                    self._save_product(product)
                except ExpectedVersionError:
                    if attempt == STOCK_WRITE_ATTEMPTS:
                        raise
                    logger.warning(
                        "Stock changed underneath adjustment, reading again",
                        product_id=product_id,
                        attempt=attempt,
                    )
                    continue
                return levels

    # -------------------------------------------------------------------
    # Notification outbox
    # -------------------------------------------------------------------
    def get_pending_notifications(self, order_id):
        repo = current_domain.repository_for(Notification)
        return repo._dao.query.filter(order_id=order_id, status=NotificationStatus.PENDING.value).all().items

    def get_due_notifications(self, now=None, limit=100, stranded_after_seconds=None):
        now = now or datetime.now(UTC)
        repo = current_domain.repository_for(Notification)
        due = [n for n in repo._dao.query.filter(status=NotificationStatus.FAILED.value).all().items if n.is_due(now)]
        if stranded_after_seconds is not None:
            pending = repo._dao.query.filter(status=NotificationStatus.PENDING.value).all().items
            due += [n for n in pending if n.is_stranded(now, stranded_after_seconds)]
        due.sort(key=lambda n: n.next_attempt_at or now)
        return due[:limit]

    def save_notification(self, notification):
        current_domain.repository_for(Notification).add(notification)
        return notification
