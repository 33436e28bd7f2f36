"""WithdrawScheduledNotification command + handler.

Removes a deferred notification before the scheduler promotes it. This is
best-effort: once the scheduler has queued the record it can no longer be
withdrawn and the command fails validation.
"""

import structlog
from protean.fields import Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from notifications.domain import notifications
from notifications.notification.notification import ChannelEntry, Notification
from notifications.projections.delivery_log import DeliveryLog
from notifications.projections.in_app_inbox import InAppInbox

logger = structlog.get_logger(__name__)


def delete_notification(notification):
    """Hard-delete a notification, its channel entries and its read-model rows."""
    entry_dao = current_domain.repository_for(ChannelEntry)._dao
    for entry in list(notification.channels):
        entry_dao.delete(entry)
    current_domain.repository_for(Notification)._dao.delete(notification)

    for projection in (InAppInbox, DeliveryLog):
        dao = current_domain.repository_for(projection)._dao
        for row in dao.query.filter(notification_id=str(notification.id)).all().items:
            dao.delete(row)


@notifications.command(part_of="Notification")
class WithdrawScheduledNotification:
    notification_id: Identifier(required=True)
    reason: String(max_length=500)


@notifications.command_handler(part_of=Notification)
class WithdrawScheduledNotificationHandler:
    @handle(WithdrawScheduledNotification)
    def withdraw(self, command: WithdrawScheduledNotification):
        notification = current_domain.repository_for(Notification).get(command.notification_id)
        notification.ensure_withdrawable()
        delete_notification(notification)

        logger.info(
            "Scheduled notification withdrawn",
            notification_id=str(command.notification_id),
            reason=command.reason,
        )
