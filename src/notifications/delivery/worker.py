"""Channel workers: drain one channel queue and report outcomes.

A worker calls the channel provider under the channel's timeout, decides
between delivered / retry / terminal failure, re-enqueues retries with
their backoff delay, and hands the outcome to the status aggregator.
A job is acknowledged on its queue only once its outcome is recorded, so a
worker that dies mid-attempt leaves the job for the queue to hand out again.
Delivery errors never escape the worker.
"""

import asyncio
from datetime import UTC, datetime, timedelta

import structlog

from notifications.channel.errors import NonRetryableDeliveryError
from notifications.delivery.outcome import JobOutcome
from notifications.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)


class ChannelWorker:
    def __init__(self, channel, queue, provider, policy, aggregator, domain, clock=None, name=None):
        self.channel = channel
        self.queue = queue
        self.provider = provider
        self.policy = policy
        self.aggregator = aggregator
        self.domain = domain
        self.clock = clock or (lambda: datetime.now(UTC))
        self.name = name or f"{channel.lower()}-worker"
        self._running = False

    async def process(self, job) -> JobOutcome:
        """Attempt one delivery and settle its outcome."""
        attempt = job.attempts_made + 1
        log = logger.bind(
            worker=self.name,
            notification_id=job.notification_id,
            channel=job.channel,
            attempt=attempt,
        )

        try:
            result = await asyncio.wait_for(self.provider.send(job), timeout=self.policy.timeout)
        except NonRetryableDeliveryError as exc:
            log.warning("Delivery failed permanently", error=str(exc))
            outcome = JobOutcome.failed(job.notification_id, job.channel, str(exc), attempts_made=attempt)
        except TimeoutError:
            error = f"{job.channel} provider timed out after {self.policy.timeout}s"
            log.warning("Delivery attempt timed out", timeout=self.policy.timeout)
            outcome = await self._retry_or_fail(job, attempt, error)
        except Exception as exc:
            log.warning("Delivery attempt raised", error=str(exc), exc_type=type(exc).__name__)
            outcome = await self._retry_or_fail(job, attempt, str(exc) or type(exc).__name__)
        else:
            if result.success:
                log.info("Delivery attempt succeeded", external_id=result.external_id)
                outcome = JobOutcome.delivered(job, result.external_id, attempts_made=attempt, now=self.clock())
            else:
                log.warning("Delivery attempt rejected", error=result.error)
                outcome = await self._retry_or_fail(job, attempt, result.error or "Unknown delivery error")

        # Repository writes block, so they run on a worker thread
        await asyncio.to_thread(self._settle, outcome)
        await self.queue.ack(job)
        return outcome

    async def _retry_or_fail(self, job, attempt, error) -> JobOutcome:
        now = self.clock()
        if not self.policy.can_retry(attempt):
            return JobOutcome.failed(job.notification_id, job.channel, error, attempts_made=attempt, now=now)

        delay = self.policy.delay_for(attempt)
        job.attempts_made = attempt
        try:
            await self.queue.put(job, delay=delay)
        except Exception as exc:
            logger.error(
                "Failed to enqueue retry",
                notification_id=job.notification_id,
                channel=job.channel,
                error=str(exc),
            )
            return JobOutcome.failed(
                job.notification_id, job.channel, f"Failed to enqueue retry: {exc}", attempts_made=attempt, now=now
            )

        logger.info(
            "Delivery retry scheduled",
            notification_id=job.notification_id,
            channel=job.channel,
            retry=attempt,
            delay_seconds=delay,
        )
        return JobOutcome.retrying(
            job, error, next_retry_at=now + timedelta(seconds=delay), attempts_made=attempt, now=now
        )

    def _settle(self, outcome):
        with self.domain.domain_context():
            self.aggregator.apply(outcome)

    async def drain(self) -> list[JobOutcome]:
        """Process every job that is ready right now. Delayed retries stay queued."""
        outcomes = []
        while True:
            job = await self.queue.poll()
            if job is None:
                return outcomes
            outcomes.append(await self.process(job))

    async def run(self):
        """Consume the queue until stopped or cancelled."""
        self._running = True
        # Every log line in this task, aggregator included, carries the worker
        add_context(worker=self.name, channel=self.channel)
        logger.info("Channel worker started")
        try:
            while self._running:
                job = await self.queue.get()
                try:
                    await self.process(job)
                except Exception:
                    logger.exception(
                        "Unhandled error while settling job",
                        worker=self.name,
                        notification_id=job.notification_id,
                        channel=job.channel,
                    )
        finally:
            self._running = False
            logger.info("Channel worker stopped")
            clear_context()

    def stop(self):
        self._running = False

    @property
    def is_running(self):
        return self._running
