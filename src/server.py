"""Notification retry worker for the marketplace.

Polls the notification outbox and redelivers failed notifications whose
backoff has elapsed, until each one is sent or runs out of attempts. Pending
notifications left behind by a run that stopped before delivering them are
sent too.

Usage:
    python src/server.py                 # poll every 30 seconds
    python src/server.py --interval 5    # poll every 5 seconds
    python src/server.py --once          # run a single pass and exit
"""

import argparse
import asyncio

import structlog

import marketplace.identity.forced_identity  # noqa: F401  loaded before init()
from marketplace.domain import marketplace
from marketplace.notifications.channel import get_channel
from marketplace.notifications.dispatch import NotificationDispatcher
from marketplace.notifications.notification import NotificationChannel
from marketplace.notifications.retry import retry_due_notifications
from marketplace.reconciliation.persistence import ProteanStore
from marketplace.reconciliation.settings import ReconciliationSettings

logger = structlog.get_logger(__name__)


def build_dispatcher() -> NotificationDispatcher:
    settings = ReconciliationSettings.from_domain()
    return NotificationDispatcher(
        store=ProteanStore(),
        email=get_channel(NotificationChannel.EMAIL.value),
        chat=get_channel(NotificationChannel.CHAT.value),
        timeout_seconds=settings.stage_timeout_seconds,
    )


async def run(interval: float, once: bool = False):
    marketplace.init()
    with marketplace.domain_context():
        dispatcher = build_dispatcher()
        logger.info("Notification retry worker started", interval_seconds=interval)
        while True:
            try:
                outcomes = await retry_due_notifications(dispatcher)
            except Exception as exc:
                logger.error("Retry pass failed", error=str(exc), exc_info=True)
            else:
                if outcomes:
                    logger.info(
                        "Retry pass complete",
                        attempted=len(outcomes),
                        sent=sum(1 for outcome in outcomes if outcome.success),
                    )
            if once:
                return
            await asyncio.sleep(interval)


def main():
    parser = argparse.ArgumentParser(description="Marketplace notification retry worker")
    parser.add_argument("--interval", type=float, default=30.0, help="Seconds between retry passes")
    parser.add_argument("--once", action="store_true", help="Run a single retry pass and exit")
    args = parser.parse_args()

    asyncio.run(run(args.interval, once=args.once))


if __name__ == "__main__":
    main()
