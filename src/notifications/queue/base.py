"""Channel queue port: one logical priority queue per outbound channel.

Lower priority weight is dequeued first; equal weights are FIFO. A job put
with a delay is invisible to consumers until the delay has elapsed.

Consumers ack a job once its outcome is recorded. Queues that outlive the
process (redis) hold popped jobs under a lease until then and hand them out
again when the lease expires; the in-process queue has nothing to recover.
"""

from abc import ABC, abstractmethod

from notifications.queue.job import ChannelJob


class ChannelQueue(ABC):
    channel: str

    @abstractmethod
    async def put(self, job: ChannelJob, delay: float = 0.0) -> None: ...

    @abstractmethod
    async def poll(self) -> ChannelJob | None:
        """Pop the next ready job, or None when nothing is ready yet."""

    @abstractmethod
    async def get(self) -> ChannelJob:
        """Pop the next ready job, waiting as long as necessary."""

    async def ack(self, job: ChannelJob) -> None:
        """Release a popped job for good."""
        return None

    @abstractmethod
    async def size(self) -> int:
        """Jobs held, ready or delayed."""

    async def close(self) -> None:
        return None
