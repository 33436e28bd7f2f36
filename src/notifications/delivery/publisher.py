"""Job publisher: hands a queued notification's outbound entries to their queues."""

import asyncio

import structlog

from notifications.delivery.outcome import JobOutcome
from notifications.queue.job import ChannelJob

logger = structlog.get_logger(__name__)


class JobPublisher:
    def __init__(self, queues, aggregator):
        self.queues = queues
        self.aggregator = aggregator

    async def publish(self, notification, push_tokens=None) -> list[str]:
        """Enqueue one job per QUEUED outbound entry.

        An entry whose job cannot be enqueued is recorded FAILED right away so
        the notification never hangs in QUEUED.
        """
        published = []
        for entry in notification.outbound_entries():
            job = ChannelJob.for_notification(notification, entry.channel, push_tokens)
            queue = self.queues.get(entry.channel)
            try:
                if queue is None:
                    raise LookupError(f"No queue configured for channel {entry.channel}")
                await queue.put(job)
            except Exception as exc:
                logger.error(
                    "Failed to enqueue channel job",
                    notification_id=job.notification_id,
                    channel=entry.channel,
                    error=str(exc),
                )
                outcome = JobOutcome.failed(job.notification_id, entry.channel, f"Failed to enqueue: {exc}")
                await asyncio.to_thread(self.aggregator.apply, outcome)
                continue
            published.append(entry.channel)

        if published:
            logger.info(
                "Channel jobs enqueued",
                notification_id=str(notification.id),
                channels=published,
                priority=notification.priority,
            )
        return published
