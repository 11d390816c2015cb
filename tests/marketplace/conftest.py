import json

import pytest
from protean.integrations.pytest import DomainFixture
from protean.utils.globals import current_domain

# Import every domain element before the fixture initializes the domain
import marketplace.api.routes  # noqa: F401
from marketplace.catalogue.product import Product
from marketplace.identity.customer import CustomerAccount
from marketplace.identity.merchant import Merchant
from marketplace.notifications.channel import get_channel, reset_channels
from marketplace.notifications.notification import NotificationChannel
from marketplace.reconciliation.persistence import ProteanStore
from marketplace.reconciliation.pipeline import OrderReconciler
from marketplace.reconciliation.settings import ReconciliationSettings
from marketplace.shipping.carrier import get_carrier, reset_carrier


@pytest.fixture(scope="session")
def marketplace_bed():
    from marketplace.domain import marketplace

    bed = DomainFixture(marketplace)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(marketplace_bed):
    with marketplace_bed.domain_context():
        yield

        # Clear all databases
        for _, provider in current_domain.providers.items():
            provider._data_reset()

        # Drain event stores
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _fresh_adapters():
    reset_channels()
    reset_carrier()
    yield
    reset_channels()
    reset_carrier()


# ---------------------------------------------------------------------------
# Ports and pipeline
# ---------------------------------------------------------------------------
@pytest.fixture
def store():
    return ProteanStore()


@pytest.fixture
def email_adapter():
    return get_channel(NotificationChannel.EMAIL.value)


@pytest.fixture
def chat_adapter():
    return get_channel(NotificationChannel.CHAT.value)


@pytest.fixture
def carrier():
    return get_carrier()


@pytest.fixture
def settings():
    return ReconciliationSettings.from_domain()


@pytest.fixture
def reconciler(store, email_adapter, chat_adapter, carrier, settings):
    return OrderReconciler(store, email_adapter, chat_adapter, carrier, settings)


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------
@pytest.fixture
def merchant():
    merchant = Merchant.register(
        id="wh-001",
        business_name="Fresh Foods Wholesale",
        contact_name="Priya Patel",
        email="orders@freshfoods.example.com",
        business_phone="+447700900001",
        preferred_currency="GBP",
        chat_account_sid="AC-test",
        chat_auth_token="token-test",
        chat_phone_number="+447700900999",
    )
    current_domain.repository_for(Merchant).add(merchant)
    return merchant


@pytest.fixture
def product():
    product = Product(
        id="p-1",
        merchant_id="wh-001",
        name="Basmati Rice 10kg",
        price=10.0,
        stock=50,
        pallet_stock=4,
    )
    current_domain.repository_for(Product).add(product)
    return product


@pytest.fixture
def existing_customer():
    account = CustomerAccount.register(
        first_name="Jane",
        last_name="Smith",
        email="jane@example.com",
        phone="+447700900123",
    )
    current_domain.repository_for(CustomerAccount).add(account)
    return account


def build_event(
    event_id="pi_test_001",
    merchant_id="wh-001",
    cart=None,
    customer=None,
    shipping=None,
    amount=2600,
    **metadata,
):
    """A payment-confirmation event shaped like the gateway sends it."""
    cart = cart if cart is not None else [{"productId": "p-1", "quantity": 2, "unitPrice": "10.00"}]
    customer = (
        customer
        if customer is not None
        else {"name": "Jane Smith", "email": "jane@example.com", "phone": "07700 900123"}
    )
    bag = {
        "wholesalerId": merchant_id,
        "cart": json.dumps(cart),
        "customerData": json.dumps(customer),
        "subtotal": "20.00",
        "transactionFee": "6.00",
    }
    if shipping is not None:
        bag["shippingInfo"] = json.dumps(shipping)
    bag.update(metadata)
    return {"id": event_id, "amount": amount, "metadata": {k: v for k, v in bag.items() if v is not None}}


@pytest.fixture
def make_event():
    return build_event
