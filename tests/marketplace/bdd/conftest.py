"""Shared BDD fixtures and step definitions for order reconciliation."""

import asyncio

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when

from marketplace.catalogue.product import Product
from marketplace.ordering.order import Order


@pytest.fixture()
def checkout():
    """Metadata the scenario's checkout declared, merged into the event."""
    return {}


@pytest.fixture()
def results():
    return []


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given("a merchant with stock on hand")
def merchant_with_stock(merchant, product, existing_customer):
    return merchant


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('payment confirmation "{event_id}" is delivered'))
def deliver_payment(reconciler, make_event, checkout, results, event_id):
    results.append(asyncio.run(reconciler.reconcile(make_event(event_id=event_id, **checkout))))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('exactly {count:d} order exists for "{event_id}"'))
def order_count(count, event_id):
    orders = (
        current_domain.repository_for(Order)._dao.query.filter(payment_confirmation_id=event_id).all().items
    )
    assert len(orders) == count


@then(parsers.cfparse('product "{product_id}" has {stock:d} units in stock'))
def product_stock(product_id, stock):
    assert current_domain.repository_for(Product).get(product_id).stock == stock
