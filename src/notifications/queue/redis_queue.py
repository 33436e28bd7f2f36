"""Redis-backed channel queue.

Three sorted sets per channel:

- ``ready``, scored by priority weight and an insertion counter;
- ``delayed``, scored by the epoch second a job becomes ready;
- ``processing``, scored by the epoch second a consumer's lease runs out.

A consumer claims the head of ``ready`` by moving it into ``processing`` and
removes it there on ack. Jobs whose lease expires (the consumer died
mid-attempt) go back to ``ready`` on the next poll, which makes delivery
at-least-once. Every move between sets runs as one script, so two consumers
never claim, promote or reclaim the same job twice.
"""

import asyncio
import time

import redis.asyncio as aioredis
import structlog

from notifications.queue.base import ChannelQueue
from notifications.queue.job import ChannelJob

logger = structlog.get_logger(__name__)

# Leaves room for ~10^12 insertions per weight band
_WEIGHT_BAND = 10**12
_PROMOTE_BATCH = 100
_CLAIM_ATTEMPTS = 5

# Longer than any provider timeout plus the time to record an outcome
DEFAULT_LEASE_SECONDS = 120.0

# KEYS: source, target. ARGV: member, score in target.
MOVE_SCRIPT = """
if redis.call('ZREM', KEYS[1], ARGV[1]) == 1 then
    redis.call('ZADD', KEYS[2], ARGV[2], ARGV[1])
    return 1
end
return 0
"""


class RedisChannelQueue(ChannelQueue):
    def __init__(
        self,
        channel,
        url=None,
        client=None,
        namespace="notifications",
        poll_interval=0.5,
        lease_seconds=DEFAULT_LEASE_SECONDS,
        clock=time.time,
    ):
        if client is None and url is None:
            raise ValueError("RedisChannelQueue needs a url or a client")
        self.channel = channel
        self.redis = client or aioredis.from_url(url, decode_responses=True)
        self.poll_interval = poll_interval
        self.lease_seconds = lease_seconds
        self.clock = clock

        prefix = f"{namespace}:{channel.lower()}"
        self.ready_key = f"{prefix}:ready"
        self.delayed_key = f"{prefix}:delayed"
        self.processing_key = f"{prefix}:processing"
        self.seq_key = f"{prefix}:seq"

        self._move = self.redis.register_script(MOVE_SCRIPT)
        # job_id -> the exact member held in processing
        self._leased = {}

    async def _ready_score(self, weight):
        seq = await self.redis.incr(self.seq_key)
        return weight * _WEIGHT_BAND + seq

    async def _requeue_due(self, source_key, as_of):
        """Move members of ``source_key`` scored at or before ``as_of`` back to ready."""
        moved = 0
        due = await self.redis.zrangebyscore(source_key, "-inf", as_of, start=0, num=_PROMOTE_BATCH)
        for payload in due:
            score = await self._ready_score(ChannelJob.from_json(payload).weight)
            moved += await self._move(keys=[source_key, self.ready_key], args=[payload, score])
        return moved

    async def put(self, job, delay=0.0):
        payload = job.to_json()
        if delay and delay > 0:
            await self.redis.zadd(self.delayed_key, {payload: self.clock() + delay})
        else:
            await self.redis.zadd(self.ready_key, {payload: await self._ready_score(job.weight)})

    async def poll(self):
        now = self.clock()
        reclaimed = await self._requeue_due(self.processing_key, now)
        if reclaimed:
            logger.warning("Reclaimed jobs with expired leases", channel=self.channel, count=reclaimed)
        await self._requeue_due(self.delayed_key, now)

        for _ in range(_CLAIM_ATTEMPTS):
            head = await self.redis.zrange(self.ready_key, 0, 0)
            if not head:
                return None
            payload = head[0]
            # Another consumer may take the head first; look again
            claimed = await self._move(
                keys=[self.ready_key, self.processing_key],
                args=[payload, now + self.lease_seconds],
            )
            if claimed:
                job = ChannelJob.from_json(payload)
                self._leased[job.job_id] = payload
                return job
        return None

    async def get(self):
        while True:
            job = await self.poll()
            if job is not None:
                return job
            await asyncio.sleep(self.poll_interval)

    async def ack(self, job):
        payload = self._leased.pop(job.job_id, None)
        if payload is not None:
            await self.redis.zrem(self.processing_key, payload)

    async def size(self):
        """Jobs held: ready, delayed or leased to a consumer."""
        total = 0
        for key in (self.ready_key, self.delayed_key, self.processing_key):
            total += await self.redis.zcard(key)
        return total

    async def close(self):
        await self.redis.aclose()
        logger.debug("Redis queue closed", channel=self.channel)
