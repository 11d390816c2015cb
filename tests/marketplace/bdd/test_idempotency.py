"""BDD tests for idempotent order creation."""

import asyncio

from pytest_bdd import parsers, scenarios, then, when

scenarios("features/idempotency.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('payment confirmation "{event_id}" is delivered {times:d} times concurrently'))
def deliver_concurrently(reconciler, make_event, results, event_id, times):
    event = make_event(event_id=event_id)

    async def deliver_all():
        return await asyncio.gather(*(reconciler.reconcile(event) for _ in range(times)))

    results.extend(asyncio.run(deliver_all()))


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then("the later delivery reports the order already existed")
def later_delivery_not_created(results):
    assert results[0].created
    assert not results[-1].created


@then("exactly one delivery created the order")
def one_delivery_created(results):
    assert sum(1 for result in results if result.created) == 1


@then("every delivery refers to the same order")
def same_order(results):
    assert len({str(result.order.id) for result in results}) == 1


@then(parsers.cfparse('the orders are numbered "{first}" and "{second}"'))
def order_numbers(results, first, second):
    assert [result.order.order_number for result in results] == [first, second]
