"""Delivery worker runner for the notifications domain.

Runs the channel workers that drain the Redis delivery queues, plus the
scheduler loop that promotes deferred notifications once they are due:
- ChannelWorker: N per channel, pops jobs and calls the channel provider
- Scheduler: every NOTIFY_SCHEDULER_INTERVAL seconds, queues due notifications

Usage:
    python src/server.py                        # All channels + scheduler
    python src/server.py --channel Email        # Only the email workers
    python src/server.py --channel SMS --no-scheduler
"""

import argparse
import asyncio

import structlog

from notifications.config import DeliverySettings
from notifications.delivery.runtime import DeliveryRuntime
from notifications.domain import notifications
from notifications.notification.notification import OUTBOUND_CHANNELS
from notifications.notification.scheduler import NotificationScheduler, run_scheduler

logger = structlog.get_logger(__name__)


async def run(channels, with_scheduler=True):
    notifications.init()
    settings = DeliverySettings.from_env()
    runtime = DeliveryRuntime.from_settings(notifications, settings)

    await runtime.start(channels)
    tasks = []
    if with_scheduler:
        scheduler = NotificationScheduler(runtime.publisher, batch_size=settings.scheduler_batch_size)
        tasks.append(run_scheduler(scheduler, notifications, settings.scheduler_interval))

    logger.info("Delivery server running", channels=channels, scheduler=with_scheduler)
    try:
        # Workers run as tasks inside the runtime; wait on the scheduler or forever
        await asyncio.gather(*tasks, asyncio.Event().wait())
    finally:
        await runtime.stop()


def main():
    parser = argparse.ArgumentParser(description="Notifications delivery worker runner")
    parser.add_argument(
        "--channel",
        choices=list(OUTBOUND_CHANNELS),
        action="append",
        help="Run workers for this channel only; repeat for several (default: all)",
    )
    parser.add_argument(
        "--no-scheduler",
        action="store_true",
        help="Do not run the scheduled-notification promoter in this process",
    )
    args = parser.parse_args()

    channels = args.channel or list(OUTBOUND_CHANNELS)

    asyncio.run(run(channels, with_scheduler=not args.no_scheduler))


if __name__ == "__main__":
    main()
