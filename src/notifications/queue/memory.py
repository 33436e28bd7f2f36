"""In-process channel queue built on heaps and an asyncio wake-up event."""

import asyncio
import heapq
import itertools
import time

from notifications.queue.base import ChannelQueue


class InMemoryChannelQueue(ChannelQueue):
    def __init__(self, channel, clock=time.monotonic):
        self.channel = channel
        self.clock = clock
        self._ready = []  # (weight, seq, job)
        self._delayed = []  # (available_at, seq, job)
        self._seq = itertools.count()
        self._wakeup = asyncio.Event()

    async def put(self, job, delay=0.0):
        if delay and delay > 0:
            heapq.heappush(self._delayed, (self.clock() + delay, next(self._seq), job))
        else:
            heapq.heappush(self._ready, (job.weight, next(self._seq), job))
        self._wakeup.set()

    def _promote_due(self):
        now = self.clock()
        while self._delayed and self._delayed[0][0] <= now:
            _, _, job = heapq.heappop(self._delayed)
            heapq.heappush(self._ready, (job.weight, next(self._seq), job))

    async def poll(self):
        self._promote_due()
        if not self._ready:
            return None
        return heapq.heappop(self._ready)[2]

    async def get(self):
        while True:
            job = await self.poll()
            if job is not None:
                return job

            self._wakeup.clear()
            timeout = max(self._delayed[0][0] - self.clock(), 0.0) if self._delayed else None
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout)
            except TimeoutError:
                pass

    async def size(self):
        return len(self._ready) + len(self._delayed)

    def next_available_in(self):
        """Seconds until the earliest delayed job becomes ready, or None."""
        if not self._delayed:
            return None
        return max(self._delayed[0][0] - self.clock(), 0.0)
