"""Delivery runtime settings, read from the environment.

Domain persistence is configured through ``domain.toml`` (with PROTEAN_ENV
overlays). The delivery runtime (queues, workers, timeouts, scheduler) is
configured here because it lives outside the Protean domain.

Queue URLs: when a channel has no URL of its own it falls back to
``NOTIFY_REDIS_URL``; when neither is set the channel uses an in-process
queue and the API process runs its workers itself.
"""

import os
from dataclasses import dataclass

from notifications.notification.notification import NotificationChannel


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}") from None


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}") from None


@dataclass(frozen=True)
class DeliverySettings:
    redis_url: str | None = None
    email_queue_url: str | None = None
    push_queue_url: str | None = None
    sms_queue_url: str | None = None

    workers_per_channel: int = 2

    # Provider call timeouts, seconds
    email_timeout: float = 30.0
    push_timeout: float = 10.0
    sms_timeout: float = 10.0

    batch_chunk_size: int = 100
    scheduler_interval: float = 60.0
    scheduler_batch_size: int = 100
    retention_days: int = 180

    @classmethod
    def from_env(cls) -> "DeliverySettings":
        redis_url = os.getenv("NOTIFY_REDIS_URL") or None
        return cls(
            redis_url=redis_url,
            email_queue_url=os.getenv("NOTIFY_EMAIL_QUEUE_URL") or redis_url,
            push_queue_url=os.getenv("NOTIFY_PUSH_QUEUE_URL") or redis_url,
            sms_queue_url=os.getenv("NOTIFY_SMS_QUEUE_URL") or redis_url,
            workers_per_channel=_int_env("NOTIFY_WORKERS_PER_CHANNEL", 2),
            email_timeout=_float_env("NOTIFY_EMAIL_TIMEOUT", 30.0),
            push_timeout=_float_env("NOTIFY_PUSH_TIMEOUT", 10.0),
            sms_timeout=_float_env("NOTIFY_SMS_TIMEOUT", 10.0),
            batch_chunk_size=_int_env("NOTIFY_BATCH_CHUNK_SIZE", 100),
            scheduler_interval=_float_env("NOTIFY_SCHEDULER_INTERVAL", 60.0),
            scheduler_batch_size=_int_env("NOTIFY_SCHEDULER_BATCH_SIZE", 100),
            retention_days=_int_env("NOTIFY_RETENTION_DAYS", 180),
        )

    def queue_url_for(self, channel: str) -> str | None:
        return {
            NotificationChannel.EMAIL.value: self.email_queue_url,
            NotificationChannel.PUSH.value: self.push_queue_url,
            NotificationChannel.SMS.value: self.sms_queue_url,
        }.get(channel)

    def timeout_for(self, channel: str) -> float:
        return {
            NotificationChannel.EMAIL.value: self.email_timeout,
            NotificationChannel.PUSH.value: self.push_timeout,
            NotificationChannel.SMS.value: self.sms_timeout,
        }[channel]

    @property
    def embedded_workers(self) -> bool:
        """True when every outbound channel runs on an in-process queue."""
        return not any((self.email_queue_url, self.push_queue_url, self.sms_queue_url))
