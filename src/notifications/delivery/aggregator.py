"""Status aggregator: the single writer of per-channel delivery status.

Every outcome is applied to a fresh read of the notification. Only the
matching channel entry is touched, the overall status is recomputed from
that fresh state, and the write goes through the aggregate's optimistic
version check. A version conflict means another outcome for the same
notification won the race, so the outcome is re-read and re-applied.
"""

import structlog
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.utils.globals import current_domain

from notifications.delivery.outcome import OutcomeKind
from notifications.notification.notification import Notification

logger = structlog.get_logger(__name__)


class StatusAggregator:
    def __init__(self, max_conflict_retries: int = 5):
        self.max_conflict_retries = max_conflict_retries

    def apply(self, outcome) -> bool:
        """Apply one outcome. Returns False for duplicates and unknown notifications."""
        repo = current_domain.repository_for(Notification)

        for attempt in range(1, self.max_conflict_retries + 1):
            try:
                notification = repo.get(outcome.notification_id)
            except ObjectNotFoundError:
                # Withdrawn or purged while the job was in flight
                logger.warning(
                    "Outcome for unknown notification ignored",
                    notification_id=outcome.notification_id,
                    channel=outcome.channel,
                    outcome=outcome.kind.value,
                )
                return False

            if not self._reduce(notification, outcome):
                logger.debug(
                    "Outcome already applied",
                    notification_id=outcome.notification_id,
                    channel=outcome.channel,
                    outcome=outcome.kind.value,
                )
                return False

            try:
                repo.add(notification)
            except ExpectedVersionError:
                logger.info(
                    "Notification changed concurrently, re-applying outcome",
                    notification_id=outcome.notification_id,
                    channel=outcome.channel,
                    attempt=attempt,
                )
                continue

            self._log(notification, outcome)
            return True

        logger.error(
            "Gave up applying outcome after repeated version conflicts",
            notification_id=outcome.notification_id,
            channel=outcome.channel,
            attempts=self.max_conflict_retries,
        )
        raise ExpectedVersionError(
            f"Could not apply {outcome.kind.value} for {outcome.channel} on notification {outcome.notification_id}"
        )

    @staticmethod
    def _reduce(notification, outcome) -> bool:
        if outcome.kind is OutcomeKind.DELIVERED:
            return notification.record_delivery(outcome.channel, outcome.external_id, now=outcome.occurred_at)
        if outcome.kind is OutcomeKind.RETRYING:
            return notification.record_retry(
                outcome.channel, outcome.error, outcome.next_retry_at, now=outcome.occurred_at
            )
        return notification.record_failure(outcome.channel, outcome.error, now=outcome.occurred_at)

    @staticmethod
    def _log(notification, outcome):
        if outcome.kind is OutcomeKind.FAILED:
            logger.error(
                "Channel delivery failed",
                notification_id=outcome.notification_id,
                channel=outcome.channel,
                error=outcome.error,
                attempts=outcome.attempts_made,
                status=notification.status,
            )
        else:
            logger.info(
                "Channel status updated",
                notification_id=outcome.notification_id,
                channel=outcome.channel,
                outcome=outcome.kind.value,
                status=notification.status,
            )
