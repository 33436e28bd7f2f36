"""Delivery runtime: queues, providers and workers for the outbound channels.

Everything the dispatcher and workers share is built here and passed in
explicitly; nothing is held in module-level singletons.
"""

import asyncio

import structlog

from notifications.channel.fake import build_fake_providers
from notifications.delivery.aggregator import StatusAggregator
from notifications.delivery.publisher import JobPublisher
from notifications.delivery.worker import ChannelWorker
from notifications.notification.notification import OUTBOUND_CHANNELS
from notifications.queue.memory import InMemoryChannelQueue
from notifications.queue.redis_queue import RedisChannelQueue
from notifications.queue.retry import DEFAULT_RETRY_POLICIES, policies_from_settings

logger = structlog.get_logger(__name__)


class DeliveryRuntime:
    def __init__(
        self,
        domain,
        queues,
        providers,
        policies=None,
        workers_per_channel=1,
        aggregator=None,
        clock=None,
    ):
        self.domain = domain
        self.queues = queues
        self.providers = providers
        self.policies = policies or dict(DEFAULT_RETRY_POLICIES)
        self.aggregator = aggregator or StatusAggregator()
        self.publisher = JobPublisher(queues, self.aggregator)
        self._tasks: list[asyncio.Task] = []

        self.workers = {
            channel: [
                ChannelWorker(
                    channel,
                    queues[channel],
                    providers[channel],
                    self.policies[channel],
                    self.aggregator,
                    domain,
                    clock=clock,
                    name=f"{channel.lower()}-worker-{index}",
                )
                for index in range(1, workers_per_channel + 1)
            ]
            for channel in OUTBOUND_CHANNELS
            if channel in queues and channel in providers
        }

    @classmethod
    def in_memory(cls, domain, providers=None, clock=None, queue_clock=None, **kwargs):
        """Runtime on in-process queues; fake providers unless given."""
        queues = {channel: InMemoryChannelQueue(channel, **_clock_kwargs(queue_clock)) for channel in OUTBOUND_CHANNELS}
        return cls(domain, queues, providers or build_fake_providers(), clock=clock, **kwargs)

    @classmethod
    def from_settings(cls, domain, settings, providers=None):
        queues = {}
        for channel in OUTBOUND_CHANNELS:
            url = settings.queue_url_for(channel)
            queues[channel] = RedisChannelQueue(channel, url=url) if url else InMemoryChannelQueue(channel)

        return cls(
            domain,
            queues,
            providers or build_fake_providers(),
            policies=policies_from_settings(settings),
            workers_per_channel=settings.workers_per_channel,
        )

    async def start(self, channels=None):
        """Start worker tasks for the given channels (default: all)."""
        for channel, workers in self.workers.items():
            if channels and channel not in channels:
                continue
            for worker in workers:
                self._tasks.append(asyncio.create_task(worker.run(), name=worker.name))

        logger.info("Delivery workers started", workers=len(self._tasks))

    async def stop(self):
        for workers in self.workers.values():
            for worker in workers:
                worker.stop()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        for queue in self.queues.values():
            await queue.close()
        logger.info("Delivery workers stopped")

    async def drain(self):
        """Process ready jobs on every channel until no channel has any left."""
        outcomes = []
        while True:
            batch = []
            for workers in self.workers.values():
                batch.extend(await workers[0].drain())
            if not batch:
                return outcomes
            outcomes.extend(batch)

    async def pending(self):
        return {channel: await queue.size() for channel, queue in self.queues.items()}


def _clock_kwargs(queue_clock):
    return {"clock": queue_clock} if queue_clock is not None else {}
