"""Application tests for notification fan-out, failure isolation and retries."""

import asyncio
import dataclasses
import time
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain

from marketplace.identity.merchant import Merchant
from marketplace.notifications.notification import Notification, NotificationStatus
from marketplace.notifications.retry import retry_due_notifications
from marketplace.ordering.fulfillment import classify_fulfillment
from marketplace.ordering.order import Order
from marketplace.reconciliation.intent import decode_event
from marketplace.reconciliation.pipeline import OrderReconciler


def _notifications(**filters):
    repo = current_domain.repository_for(Notification)
    if filters:
        return repo._dao.query.filter(**filters).all().items
    return repo._dao.query.all().items


@pytest.fixture
def seeded(merchant, product, existing_customer):
    return merchant, product, existing_customer


@pytest.mark.usefixtures("seeded")
class TestFanout:
    def test_outbox_records_are_persisted_with_the_order(self, reconciler, make_event):
        order = asyncio.run(reconciler.reconcile_order(make_event()))

        records = _notifications(order_id=order.id)
        assert len(records) == 3
        assert {(n.audience, n.channel) for n in records} == {
            ("Customer", "Email"),
            ("Merchant", "Chat"),
            ("Merchant", "Email"),
        }
        assert all(n.status == NotificationStatus.SENT.value for n in records)

    def test_email_records_carry_the_platform_sender(self, reconciler, make_event, settings):
        asyncio.run(reconciler.reconcile_order(make_event()))

        emails = _notifications(channel="Email")
        assert {n.sender for n in emails} == {settings.notification_from_email}

    def test_customer_without_email_gets_no_confirmation(self, reconciler, make_event, email_adapter):
        event = make_event(customer={"name": "Sam Taylor", "phone": "07700 900777"})

        asyncio.run(reconciler.reconcile_order(event))

        assert [email["to"] for email in email_adapter.sent_emails] == ["orders@freshfoods.example.com"]

    def test_merchant_without_chat_credentials_gets_no_chat_alert(self, reconciler, make_event, chat_adapter):
        bare = Merchant.register(id="wh-002", business_name="Bare Wholesale")
        current_domain.repository_for(Merchant).add(bare)

        result = asyncio.run(reconciler.reconcile(make_event(merchant_id="wh-002")))

        assert len(result.notifications) == 1
        assert chat_adapter.sent_messages == []

    def test_confirmation_mentions_the_order_number(self, reconciler, make_event, email_adapter):
        asyncio.run(reconciler.reconcile_order(make_event()))

        confirmation = next(e for e in email_adapter.sent_emails if e["to"] == "jane@example.com")
        assert confirmation["subject"] == "Order FRE-000001 confirmed - Fresh Foods Wholesale"


@pytest.mark.usefixtures("seeded")
class TestFailureIsolation:
    def test_email_provider_error_does_not_block_chat_or_order(
        self, reconciler, make_event, email_adapter, chat_adapter
    ):
        email_adapter.configure(raises=RuntimeError("SMTP connection refused"))

        result = asyncio.run(reconciler.reconcile(make_event()))

        assert result.created
        assert len(chat_adapter.sent_messages) == 1
        failed = [o for o in result.notifications if not o.success]
        assert len(failed) == 2
        assert all(o.error == "SMTP connection refused" for o in failed)
        assert current_domain.repository_for(Order).get(result.order.id) is not None

    def test_failed_records_are_scheduled_for_retry(self, reconciler, make_event, email_adapter):
        email_adapter.configure(should_succeed=False, failure_reason="Mailbox unavailable")

        asyncio.run(reconciler.reconcile(make_event()))

        failed = _notifications(status=NotificationStatus.FAILED.value)
        assert len(failed) == 2
        for record in failed:
            assert record.retry_count == 1
            assert record.failure_reason == "Mailbox unavailable"
            assert record.next_attempt_at is not None

    def test_missing_chat_credentials_at_send_time_fail_only_the_chat_record(
        self, reconciler, make_event, merchant, chat_adapter
    ):
        order = asyncio.run(reconciler.reconcile_order(make_event()))
        merchant_repo = current_domain.repository_for(Merchant)
        stored = merchant_repo.get(merchant.id)
        stored.chat_auth_token = None
        merchant_repo.add(stored)

        chat_record = next(n for n in _notifications(order_id=order.id) if n.channel == "Chat")
        chat_record.status = NotificationStatus.PENDING.value
        outcome = asyncio.run(reconciler.dispatcher.deliver(chat_record))

        assert not outcome.success
        assert outcome.error == "Merchant chat credentials not configured"

    def test_slow_provider_times_out(self, store, chat_adapter, carrier, make_event, settings):
        class SlowEmail:
            def send_email(self, to, sender, subject, html):
                time.sleep(0.6)
                return {"message_id": "late", "status": "sent"}

        hasty = dataclasses.replace(settings, stage_timeout_seconds=0.1)
        reconciler = OrderReconciler(store, SlowEmail(), chat_adapter, carrier, hasty)

        result = asyncio.run(reconciler.reconcile(make_event()))

        assert result.created
        email_outcomes = [o for o in result.notifications if o.channel == "Email"]
        assert email_outcomes
        assert all(not o.success and o.error.startswith("Timed out") for o in email_outcomes)
        assert len(chat_adapter.sent_messages) == 1


@pytest.mark.usefixtures("seeded")
class TestRetry:
    def test_due_records_are_redelivered(self, reconciler, make_event, email_adapter):
        email_adapter.configure(should_succeed=False)
        asyncio.run(reconciler.reconcile(make_event()))
        email_adapter.configure()

        later = datetime.now(UTC) + timedelta(seconds=61)
        outcomes = asyncio.run(retry_due_notifications(reconciler.dispatcher, now=later))

        assert len(outcomes) == 2
        assert all(o.success for o in outcomes)
        assert len(email_adapter.sent_emails) == 2
        assert _notifications(status=NotificationStatus.FAILED.value) == []

    def test_records_are_not_retried_before_their_backoff(self, reconciler, make_event, email_adapter):
        email_adapter.configure(should_succeed=False)
        asyncio.run(reconciler.reconcile(make_event()))

        outcomes = asyncio.run(retry_due_notifications(reconciler.dispatcher, now=datetime.now(UTC)))

        assert outcomes == []

    def test_repeated_failure_backs_off_further(self, reconciler, make_event, email_adapter):
        email_adapter.configure(should_succeed=False)
        asyncio.run(reconciler.reconcile(make_event()))

        later = datetime.now(UTC) + timedelta(seconds=61)
        asyncio.run(retry_due_notifications(reconciler.dispatcher, now=later))

        failed = _notifications(status=NotificationStatus.FAILED.value)
        assert len(failed) == 2
        for record in failed:
            assert record.retry_count == 2
            assert record.next_attempt_at - datetime.now(UTC) > timedelta(seconds=110)

    def test_exhausted_records_are_given_up(self, store, email_adapter, chat_adapter, carrier, make_event, settings):
        reconciler = OrderReconciler(
            store, email_adapter, chat_adapter, carrier, dataclasses.replace(settings, notification_max_retries=1)
        )
        email_adapter.configure(should_succeed=False)
        asyncio.run(reconciler.reconcile(make_event()))
        email_adapter.configure()

        far_future = datetime.now(UTC) + timedelta(days=30)
        outcomes = asyncio.run(retry_due_notifications(reconciler.dispatcher, now=far_future))

        assert outcomes == []
        assert email_adapter.sent_emails == []
        failed = _notifications(status=NotificationStatus.FAILED.value)
        assert len(failed) == 2
        assert all(n.is_exhausted for n in failed)


def _commit_without_fan_out(reconciler, event):
    """Run the pipeline up to the order commit and stop, as a crashed process would."""
    intent = decode_event(event)
    merchant = reconciler.store.get_merchant(intent.merchant_id)
    customer = reconciler.resolver.resolve(
        intent.merchant_id, name=intent.customer_name, email=intent.customer_email, phone=intent.customer_phone
    )
    order, created = reconciler.creator.create(intent, customer, classify_fulfillment(intent), merchant)
    assert created
    return order


@pytest.mark.usefixtures("seeded")
class TestStrandedOutbox:
    def test_redelivered_event_does_not_send_stranded_records(self, reconciler, make_event, email_adapter):
        order = _commit_without_fan_out(reconciler, make_event())

        result = asyncio.run(reconciler.reconcile(make_event()))

        assert not result.created
        assert email_adapter.sent_emails == []
        assert len(_notifications(order_id=order.id, status=NotificationStatus.PENDING.value)) == 3

    def test_retry_worker_delivers_records_stranded_before_fan_out(
        self, reconciler, make_event, email_adapter, chat_adapter, settings
    ):
        order = _commit_without_fan_out(reconciler, make_event())

        later = datetime.now(UTC) + timedelta(seconds=settings.stage_timeout_seconds + 1)
        outcomes = asyncio.run(retry_due_notifications(reconciler.dispatcher, now=later))

        assert len(outcomes) == 3
        assert all(o.success for o in outcomes)
        assert len(email_adapter.sent_emails) == 2
        assert len(chat_adapter.sent_messages) == 1
        assert _notifications(order_id=order.id, status=NotificationStatus.PENDING.value) == []
        assert all(n.retry_count == 0 for n in _notifications(order_id=order.id))

    def test_fresh_pending_records_are_left_to_the_running_fan_out(self, reconciler, make_event, email_adapter):
        _commit_without_fan_out(reconciler, make_event())

        outcomes = asyncio.run(retry_due_notifications(reconciler.dispatcher, now=datetime.now(UTC)))

        assert outcomes == []
        assert email_adapter.sent_emails == []

    def test_stranded_record_that_fails_enters_the_backoff(self, reconciler, make_event, email_adapter, settings):
        order = _commit_without_fan_out(reconciler, make_event())
        email_adapter.configure(should_succeed=False)

        later = datetime.now(UTC) + timedelta(seconds=settings.stage_timeout_seconds + 1)
        asyncio.run(retry_due_notifications(reconciler.dispatcher, now=later))

        failed = _notifications(order_id=order.id, status=NotificationStatus.FAILED.value)
        assert len(failed) == 2
        assert all(n.retry_count == 1 and n.next_attempt_at is not None for n in failed)
