"""In-app inbox commands + handlers: mark notifications as read."""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from notifications.domain import notifications
from notifications.notification.notification import Notification
from notifications.projections.in_app_inbox import unread_inbox

logger = structlog.get_logger(__name__)


@notifications.command(part_of="Notification")
class MarkNotificationRead:
    """The recipient opened one in-app notification."""

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)


@notifications.command(part_of="Notification")
class MarkAllNotificationsRead:
    """The recipient cleared their in-app inbox."""

    user_id: Identifier(required=True)


@notifications.command_handler(part_of=Notification)
class InboxHandler:
    @handle(MarkNotificationRead)
    def mark_read(self, command: MarkNotificationRead):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        # Someone else's notification is reported as missing
        if str(notification.recipient_id) != str(command.user_id):
            raise ObjectNotFoundError(f"Notification {command.notification_id} not found")

        if notification.mark_read():
            repo.add(notification)

    @handle(MarkAllNotificationsRead)
    def mark_all_read(self, command: MarkAllNotificationsRead):
        unread = unread_inbox(command.user_id)

        repo = current_domain.repository_for(Notification)
        marked = 0
        for row in unread:
            notification = repo.get(row.notification_id)
            if notification.mark_read():
                repo.add(notification)
                marked += 1

        logger.info("Inbox marked as read", user_id=str(command.user_id), marked=marked)
        return marked
