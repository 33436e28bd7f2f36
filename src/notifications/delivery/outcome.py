"""Job outcomes: what a worker reports once a delivery attempt settles."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class OutcomeKind(Enum):
    DELIVERED = "delivered"
    RETRYING = "retrying"
    FAILED = "failed"


@dataclass(frozen=True)
class JobOutcome:
    notification_id: str
    channel: str
    kind: OutcomeKind
    external_id: str | None = None
    error: str | None = None
    attempts_made: int = 0
    next_retry_at: datetime | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def delivered(cls, job, external_id=None, attempts_made=1, now=None):
        return cls(
            notification_id=job.notification_id,
            channel=job.channel,
            kind=OutcomeKind.DELIVERED,
            external_id=external_id,
            attempts_made=attempts_made,
            occurred_at=now or datetime.now(UTC),
        )

    @classmethod
    def retrying(cls, job, error, next_retry_at, attempts_made, now=None):
        return cls(
            notification_id=job.notification_id,
            channel=job.channel,
            kind=OutcomeKind.RETRYING,
            error=error,
            attempts_made=attempts_made,
            next_retry_at=next_retry_at,
            occurred_at=now or datetime.now(UTC),
        )

    @classmethod
    def failed(cls, notification_id, channel, error, attempts_made=0, now=None):
        return cls(
            notification_id=notification_id,
            channel=channel,
            kind=OutcomeKind.FAILED,
            error=error,
            attempts_made=attempts_made,
            occurred_at=now or datetime.now(UTC),
        )
