"""Channel provider contract."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    external_id: str | None = None
    error: str | None = None


class ChannelProvider(ABC):
    """Delivers one channel job to a gateway.

    Return a failed DeliveryResult (or raise) for transient failures; raise a
    NonRetryableDeliveryError subclass when retrying cannot help.
    """

    channel: str

    @abstractmethod
    async def send(self, job) -> DeliveryResult: ...
