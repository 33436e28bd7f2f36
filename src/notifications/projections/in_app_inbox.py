"""InAppInbox — the recipient's in-app notification feed."""

import json

import structlog
from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from notifications.channel.errors import NonRetryableDeliveryError
from notifications.domain import notifications
from notifications.notification.events import (
    ChannelDelivered,
    NotificationCreated,
    NotificationFailed,
    NotificationQueued,
    NotificationRead,
    NotificationSent,
)
from notifications.notification.notification import Notification, NotificationChannel
from notifications.templates import TemplateRegistry

logger = structlog.get_logger(__name__)

IN_APP = NotificationChannel.IN_APP.value


@notifications.projection
class InAppInbox:
    notification_id: Identifier(identifier=True, required=True)
    recipient_id: Identifier(required=True)
    notification_type: String(required=True)
    priority: String()
    status: String(required=True)
    title: String(max_length=500)
    body: Text()
    template_id: String(max_length=100)
    branch_id: Identifier()
    delivered: Boolean(default=False)
    is_read: Boolean(default=False)
    read_at: DateTime()
    created_at: DateTime()
    updated_at: DateTime()


def _render(event):
    if event.custom_message:
        return event.subject, event.custom_message

    context = json.loads(event.template_data) if event.template_data else {}
    try:
        content = TemplateRegistry().render(event.template_id, IN_APP, context)
    except NonRetryableDeliveryError as exc:
        logger.warning(
            "In-app content could not be rendered",
            notification_id=event.notification_id,
            template_id=event.template_id,
            error=str(exc),
        )
        return event.subject, None
    return event.subject or content["subject"], content["body"]


@notifications.projector(projector_for=InAppInbox, aggregates=[Notification])
class InAppInboxProjector:
    @on(NotificationCreated)
    def on_notification_created(self, event):
        if not event.recipient_id or IN_APP not in json.loads(event.channels):
            return

        title, body = _render(event)
        current_domain.repository_for(InAppInbox).add(
            InAppInbox(
                notification_id=event.notification_id,
                recipient_id=event.recipient_id,
                notification_type=event.notification_type,
                priority=event.priority,
                status="Pending",
                title=title,
                body=body,
                template_id=event.template_id,
                branch_id=event.branch_id,
                created_at=event.created_at,
                updated_at=event.created_at,
            )
        )

    def _update(self, notification_id, **fields):
        repo = current_domain.repository_for(InAppInbox)
        try:
            row = repo.get(notification_id)
        except ObjectNotFoundError:
            return
        for key, value in fields.items():
            setattr(row, key, value)
        repo.add(row)

    @on(NotificationQueued)
    def on_notification_queued(self, event):
        self._update(event.notification_id, status="Queued", updated_at=event.queued_at)

    @on(ChannelDelivered)
    def on_channel_delivered(self, event):
        if event.channel == IN_APP:
            self._update(event.notification_id, delivered=True, updated_at=event.sent_at)

    @on(NotificationRead)
    def on_notification_read(self, event):
        self._update(event.notification_id, is_read=True, read_at=event.read_at, updated_at=event.read_at)

    @on(NotificationSent)
    def on_notification_sent(self, event):
        self._update(event.notification_id, status="Sent", updated_at=event.sent_at)

    @on(NotificationFailed)
    def on_notification_failed(self, event):
        self._update(event.notification_id, status="Failed", updated_at=event.failed_at)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def _delivered_for(recipient_id, **filters):
    return current_domain.repository_for(InAppInbox)._dao.query.filter(
        recipient_id=str(recipient_id), delivered=True, **filters
    )


def list_inbox(recipient_id, page=1, limit=20, status=None, notification_type=None):
    """Delivered in-app notifications, newest first. Returns (items, total)."""
    filters = {}
    if status:
        filters["status"] = status
    if notification_type:
        filters["notification_type"] = notification_type

    result = (
        _delivered_for(recipient_id, **filters)
        .order_by("-created_at")
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return result.items, result.total


def unread_inbox(recipient_id):
    """Every unread delivered row, without the default page limit."""
    return _delivered_for(recipient_id, is_read=False).limit(None).all().items


def unread_count(recipient_id):
    return _delivered_for(recipient_id, is_read=False).all().total
