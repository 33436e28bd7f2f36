"""Per-channel retry policies.

The delay before retry ``n`` (1-based) is ``delay_ms * 2 ** (n - 1)`` for
exponential backoff and ``delay_ms`` for fixed backoff.
"""

from dataclasses import dataclass, replace
from enum import Enum

from notifications.notification.notification import NotificationChannel


class Backoff(Enum):
    EXPONENTIAL = "exponential"
    FIXED = "fixed"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int
    backoff: Backoff
    delay_ms: int
    timeout: float  # seconds allowed per provider call

    def can_retry(self, attempts_made: int) -> bool:
        return attempts_made < self.max_attempts

    def delay_for(self, retry_number: int) -> float:
        """Seconds to wait before the given retry."""
        if retry_number < 1:
            raise ValueError("retry_number starts at 1")
        if self.backoff is Backoff.EXPONENTIAL:
            return self.delay_ms * 2 ** (retry_number - 1) / 1000
        return self.delay_ms / 1000


DEFAULT_RETRY_POLICIES = {
    NotificationChannel.EMAIL.value: RetryPolicy(max_attempts=3, backoff=Backoff.EXPONENTIAL, delay_ms=2000, timeout=30.0),
    NotificationChannel.PUSH.value: RetryPolicy(max_attempts=3, backoff=Backoff.EXPONENTIAL, delay_ms=1000, timeout=10.0),
    NotificationChannel.SMS.value: RetryPolicy(max_attempts=2, backoff=Backoff.FIXED, delay_ms=5000, timeout=10.0),
}


def policies_from_settings(settings) -> dict[str, RetryPolicy]:
    """Default policies with provider timeouts taken from DeliverySettings."""
    return {
        channel: replace(policy, timeout=settings.timeout_for(channel))
        for channel, policy in DEFAULT_RETRY_POLICIES.items()
    }
