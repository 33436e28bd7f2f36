"""PurgeNotifications command + handler: retention cleanup of settled records."""

from datetime import UTC, datetime, timedelta

import structlog
from protean.fields import DateTime, Integer
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from notifications.domain import notifications
from notifications.notification.notification import Notification, NotificationStatus, as_utc
from notifications.notification.withdrawal import delete_notification

logger = structlog.get_logger(__name__)

DEFAULT_RETENTION_DAYS = 180
PURGE_BATCH_SIZE = 100


@notifications.command(part_of="Notification")
class PurgeNotifications:
    """Delete Sent/Failed notifications created before the retention window."""

    older_than_days: Integer(default=DEFAULT_RETENTION_DAYS, min_value=1)
    as_of: DateTime()


@notifications.command_handler(part_of=Notification)
class PurgeNotificationsHandler:
    @handle(PurgeNotifications)
    def purge(self, command: PurgeNotifications):
        as_of = command.as_of or datetime.now(UTC)
        cutoff = as_of - timedelta(days=command.older_than_days)

        query = current_domain.repository_for(Notification)._dao.query.filter(
            status__in=[NotificationStatus.SENT.value, NotificationStatus.FAILED.value],
            created_at__lt=as_utc(cutoff),
        )

        # Every row in a batch is deleted, so the next batch starts from the top again
        purged = 0
        while True:
            batch = query.limit(PURGE_BATCH_SIZE).all().items
            if not batch:
                break
            for notification in batch:
                delete_notification(notification)
            purged += len(batch)

        logger.info("Notifications purged", purged=purged, cutoff=cutoff.isoformat())
        return purged

