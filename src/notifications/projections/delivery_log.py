"""DeliveryLog — one row per notification, feeding the delivery analytics."""

from collections import defaultdict

from protean.core.projector import on
from protean.exceptions import ObjectNotFoundError
from protean.fields import Boolean, DateTime, Identifier, String, Text
from protean.utils.globals import current_domain

from notifications.domain import notifications
from notifications.notification.events import (
    NotificationCreated,
    NotificationFailed,
    NotificationQueued,
    NotificationRead,
    NotificationSent,
)
from notifications.notification.notification import Notification, as_utc


@notifications.projection
class DeliveryLog:
    notification_id: Identifier(identifier=True, required=True)
    recipient_id: Identifier()
    notification_type: String(required=True)
    priority: String()
    channels: Text()  # JSON list
    failed_channels: Text()  # JSON list
    branch_id: Identifier()
    status: String(required=True)
    is_read: Boolean(default=False)
    scheduled_for: DateTime()
    created_at: DateTime(required=True)
    queued_at: DateTime()
    processed_at: DateTime()


@notifications.projector(projector_for=DeliveryLog, aggregates=[Notification])
class DeliveryLogProjector:
    @on(NotificationCreated)
    def on_notification_created(self, event):
        current_domain.repository_for(DeliveryLog).add(
            DeliveryLog(
                notification_id=event.notification_id,
                recipient_id=event.recipient_id,
                notification_type=event.notification_type,
                priority=event.priority,
                channels=event.channels,
                branch_id=event.branch_id,
                status="Pending",
                scheduled_for=event.scheduled_for,
                created_at=event.created_at,
            )
        )

    def _update(self, notification_id, **fields):
        repo = current_domain.repository_for(DeliveryLog)
        try:
            log = repo.get(notification_id)
        except ObjectNotFoundError:
            return
        for key, value in fields.items():
            setattr(log, key, value)
        repo.add(log)

    @on(NotificationQueued)
    def on_notification_queued(self, event):
        self._update(event.notification_id, status="Queued", queued_at=event.queued_at)

    @on(NotificationSent)
    def on_notification_sent(self, event):
        self._update(event.notification_id, status="Sent", processed_at=event.sent_at)

    @on(NotificationFailed)
    def on_notification_failed(self, event):
        self._update(
            event.notification_id,
            status="Failed",
            failed_channels=event.failed_channels,
            processed_at=event.failed_at,
        )

    @on(NotificationRead)
    def on_notification_read(self, event):
        self._update(event.notification_id, is_read=True)


def summarize_deliveries(start, end, notification_type=None, branch_id=None):
    """Total/sent/failed/read counts per notification type for [start, end)."""
    filters = {"created_at__gte": as_utc(start), "created_at__lt": as_utc(end)}
    if notification_type:
        filters["notification_type"] = notification_type
    if branch_id:
        filters["branch_id"] = str(branch_id)

    rows = current_domain.repository_for(DeliveryLog)._dao.query.filter(**filters).limit(None).all().items

    counts = defaultdict(lambda: {"total": 0, "sent": 0, "failed": 0, "read": 0})
    for row in rows:
        bucket = counts[row.notification_type]
        bucket["total"] += 1
        bucket["sent"] += row.status == "Sent"
        bucket["failed"] += row.status == "Failed"
        bucket["read"] += bool(row.is_read)

    return [{"notification_type": key, **value} for key, value in sorted(counts.items())]
