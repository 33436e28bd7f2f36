"""Deferred notification promotion.

Run periodically (see server.py, or the maintenance endpoint) to queue
notifications whose scheduled time has passed. The PENDING → QUEUED flip is
persisted under the aggregate's version check before any job is published,
so when two promoters race for the same record only the winner publishes.
"""

import asyncio
from datetime import UTC, datetime

import structlog
from protean.exceptions import ExpectedVersionError
from protean.utils.globals import current_domain

from notifications.notification.notification import Notification, NotificationChannel, NotificationStatus, as_utc
from notifications.preference.gate import load_preference

logger = structlog.get_logger(__name__)


class NotificationScheduler:
    def __init__(self, publisher, clock=None, batch_size=100):
        self.publisher = publisher
        self.clock = clock or (lambda: datetime.now(UTC))
        self.batch_size = batch_size

    def _due(self, as_of):
        repo = current_domain.repository_for(Notification)
        pending = (
            repo._dao.query.filter(status=NotificationStatus.PENDING.value, scheduled_for__lte=as_utc(as_of))
            .order_by("scheduled_for")
            .limit(self.batch_size)
            .all()
            .items
        )
        return [n for n in pending if n.is_due(as_of)]

    async def promote_due(self, as_of=None) -> list[str]:
        """Queue every due PENDING notification (up to batch_size). Returns promoted ids."""
        as_of = as_of or self.clock()
        promoted, expired = [], 0

        # Repository calls block, so they run on a worker thread
        for notification in await asyncio.to_thread(self._due, as_of):
            try:
                if notification.is_expired(as_of):
                    await asyncio.to_thread(self._expire, notification, as_of)
                    expired += 1
                    continue
                if await self._promote(notification, as_of):
                    promoted.append(str(notification.id))
            except ExpectedVersionError:
                logger.info(
                    "Notification already promoted by another scheduler",
                    notification_id=str(notification.id),
                )

        logger.info(
            "Scheduled notifications processed",
            promoted=len(promoted),
            expired=expired,
            as_of=as_of.isoformat(),
        )
        return promoted

    def _expire(self, notification, as_of):
        notification.expire(now=as_of)
        current_domain.repository_for(Notification).add(notification)
        logger.info("Deferred notification expired", notification_id=str(notification.id))

    async def _promote(self, notification, as_of) -> bool:
        if notification.status != NotificationStatus.PENDING.value:
            return False

        notification.mark_queued(now=as_of)
        await asyncio.to_thread(current_domain.repository_for(Notification).add, notification)

        push_tokens = []
        if notification.recipient_id and any(
            e.channel == NotificationChannel.PUSH.value for e in notification.outbound_entries()
        ):
            preference = await asyncio.to_thread(load_preference, notification.recipient_id, create=False)
            push_tokens = preference.active_push_tokens() if preference else []

        await self.publisher.publish(notification, push_tokens)
        return True


async def run_scheduler(scheduler, domain, interval, stop_event=None):
    """Promote due notifications every ``interval`` seconds until stopped."""
    stop_event = stop_event or asyncio.Event()
    logger.info("Scheduler loop started", interval=interval)

    while not stop_event.is_set():
        try:
            with domain.domain_context():
                await scheduler.promote_due()
        except Exception as exc:
            logger.exception("Scheduler tick failed", error=str(exc))

        try:
            await asyncio.wait_for(stop_event.wait(), timeout=interval)
        except TimeoutError:
            pass

    logger.info("Scheduler loop stopped")
