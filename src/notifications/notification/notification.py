"""Notification aggregate (CQRS): one recipient, one or more delivery channels.

A notification is created per resolved recipient and carries one ChannelEntry
per surviving channel. The record's overall status is derived from its
entries:

    PENDING → QUEUED → SENT      (every entry SENT)
    PENDING → QUEUED → FAILED    (settled, at least one entry FAILED)

Each entry mirrors PENDING → QUEUED → {SENT | FAILED}. In-App entries have no
queue and are written SENT as soon as the record is queued. A record stays
PENDING while it is deferred (quiet hours or a future schedule).
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String, Text, ValueObject

from notifications.domain import notifications
from notifications.notification.events import (
    ChannelDelivered,
    ChannelFailed,
    ChannelRetryScheduled,
    NotificationCreated,
    NotificationFailed,
    NotificationQueued,
    NotificationRead,
    NotificationSent,
)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(Enum):
    BILL_CREATED = "BillCreated"
    WALLET_CREDITED = "WalletCredited"
    WALLET_EXPIRING = "WalletExpiring"
    LOW_STOCK_ALERT = "LowStockAlert"
    INCENTIVE_EARNED = "IncentiveEarned"
    DAILY_REPORT = "DailyReport"
    SYSTEM_ALERT = "SystemAlert"


class NotificationChannel(Enum):
    EMAIL = "Email"
    PUSH = "Push"
    SMS = "SMS"
    IN_APP = "InApp"


class NotificationPriority(Enum):
    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class NotificationStatus(Enum):
    PENDING = "Pending"
    QUEUED = "Queued"
    SENT = "Sent"
    FAILED = "Failed"


# Lower weight is dequeued first
PRIORITY_WEIGHTS = {
    NotificationPriority.CRITICAL.value: 1,
    NotificationPriority.HIGH.value: 2,
    NotificationPriority.MEDIUM.value: 3,
    NotificationPriority.LOW.value: 4,
}

# Channels delivered through a queue and a provider
OUTBOUND_CHANNELS = (
    NotificationChannel.EMAIL.value,
    NotificationChannel.PUSH.value,
    NotificationChannel.SMS.value,
)

_TERMINAL = (NotificationStatus.SENT.value, NotificationStatus.FAILED.value)
_UNSETTLED = (NotificationStatus.PENDING.value, NotificationStatus.QUEUED.value)

EXPIRED_MESSAGE = "Notification expired before delivery"


def validate_notification_type(value):
    """Return the enum value for a notification type, or raise ValidationError."""
    try:
        return NotificationType(value).value
    except ValueError:
        raise ValidationError({"notification_type": [f"Unknown notification type: {value}"]}) from None


def validate_channels(channels):
    """Validate channel values and drop duplicates, keeping the requested order."""
    result = []
    for channel in channels or []:
        try:
            value = NotificationChannel(channel).value
        except ValueError:
            raise ValidationError({"channels": [f"Unknown channel: {channel}"]}) from None
        if value not in result:
            result.append(value)
    return result


# ---------------------------------------------------------------------------
# Value objects and entities
# ---------------------------------------------------------------------------
@notifications.value_object(part_of="Notification")
class NotificationSource:
    """What triggered the notification: resource, branch and acting user."""

    resource_type: String(max_length=100)
    resource_id: String(max_length=255)
    branch_id: Identifier()
    triggered_by: Identifier()
    triggered_by_action: String(max_length=100)


@notifications.entity(part_of="Notification")
class ChannelEntry:
    """Delivery state of one channel on a notification."""

    channel: String(choices=NotificationChannel, required=True)
    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)
    sent_at: DateTime()
    failed_at: DateTime()
    error_message: String(max_length=1000)
    retry_count: Integer(default=0)
    next_retry_at: DateTime()
    external_id: String(max_length=255)

    @property
    def is_terminal(self):
        return self.status in _TERMINAL


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class Notification:
    """A message to a single recipient, delivered over one or more channels."""

    notification_type: String(choices=NotificationType, required=True)
    priority: String(choices=NotificationPriority, default=NotificationPriority.MEDIUM.value)
    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)

    # Recipient (recipient_id is None for guests)
    recipient_id: Identifier()
    recipient_email: String(max_length=255)
    recipient_mobile: String(max_length=32)

    # Content
    subject: String(max_length=500)
    template_id: String(required=True, max_length=100)
    template_data: Text()  # JSON map passed to the template at render time
    custom_message: Text()
    delivery_options: Text()  # JSON: per-channel gateway options

    channels: HasMany(ChannelEntry)
    source: ValueObject(NotificationSource)

    # Scheduling and lifecycle
    scheduled_for: DateTime()
    processed_at: DateTime()
    read_at: DateTime()
    expires_at: DateTime()

    created_at: DateTime()
    updated_at: DateTime()

    @invariant.post
    def status_reflects_channel_entries(self):
        if not self.channels:
            return

        statuses = [entry.status for entry in self.channels]
        all_sent = all(s == NotificationStatus.SENT.value for s in statuses)
        settled_with_failure = NotificationStatus.FAILED.value in statuses and not any(
            s in _UNSETTLED for s in statuses
        )

        if (self.status == NotificationStatus.SENT.value) != all_sent:
            raise ValidationError({"status": ["Notification is Sent only when every channel is Sent"]})
        if (self.status == NotificationStatus.FAILED.value) != settled_with_failure:
            raise ValidationError(
                {"status": ["Notification is Failed only when every channel settled and at least one Failed"]}
            )

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        notification_type,
        channels,
        template_id,
        priority=NotificationPriority.MEDIUM.value,
        recipient_id=None,
        recipient_email=None,
        recipient_mobile=None,
        template_data=None,
        subject=None,
        custom_message=None,
        delivery_options=None,
        source=None,
        scheduled_for=None,
        expires_at=None,
        now=None,
    ):
        """Create a PENDING notification with one entry per channel."""
        notification_type = validate_notification_type(notification_type)
        channels = validate_channels(channels)
        if not channels:
            raise ValidationError({"channels": ["At least one channel is required"]})
        if not template_id:
            raise ValidationError({"template_id": ["Template id is required"]})

        now = now or datetime.now(UTC)

        notification = cls(
            notification_type=notification_type,
            priority=priority,
            status=NotificationStatus.PENDING.value,
            recipient_id=recipient_id,
            recipient_email=recipient_email,
            recipient_mobile=recipient_mobile,
            subject=subject,
            template_id=template_id,
            template_data=json.dumps(template_data or {}, default=str),
            custom_message=custom_message,
            delivery_options=json.dumps(delivery_options or {}, default=str),
            source=source,
            scheduled_for=scheduled_for,
            expires_at=expires_at,
            created_at=now,
            updated_at=now,
        )
        notification.add_channels([ChannelEntry(channel=channel) for channel in channels])

        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                recipient_id=recipient_id,
                notification_type=notification_type,
                priority=priority,
                channels=json.dumps(channels),
                subject=subject,
                template_id=template_id,
                template_data=notification.template_data,
                custom_message=custom_message,
                branch_id=source.branch_id if source else None,
                scheduled_for=scheduled_for,
                created_at=now,
            )
        )

        return notification

    # -------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------
    def entry_for(self, channel):
        entry = next((e for e in self.channels if e.channel == channel), None)
        if entry is None:
            raise ValidationError({"channels": [f"Notification has no {channel} channel"]})
        return entry

    def channel_values(self):
        return [entry.channel for entry in self.channels]

    def outbound_entries(self, status=NotificationStatus.QUEUED.value):
        """Entries that still need a queue job, in channel order."""
        return [e for e in self.channels if e.channel in OUTBOUND_CHANNELS and e.status == status]

    def template_context(self):
        return json.loads(self.template_data) if self.template_data else {}

    def options(self):
        return json.loads(self.delivery_options) if self.delivery_options else {}

    def is_due(self, as_of):
        if self.scheduled_for is None:
            return True
        return _comparable(self.scheduled_for, as_of) <= as_of

    def is_expired(self, as_of):
        if self.expires_at is None:
            return False
        return _comparable(self.expires_at, as_of) <= as_of

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_queued(self, now=None):
        """PENDING → QUEUED. In-App entries are written SENT directly."""
        if self.status != NotificationStatus.PENDING.value:
            raise ValidationError({"status": [f"Cannot queue a notification in {self.status} status"]})

        now = now or datetime.now(UTC)
        queued = []

        with atomic_change(self):
            for entry in self.channels:
                if entry.status != NotificationStatus.PENDING.value:
                    continue
                if entry.channel == NotificationChannel.IN_APP.value:
                    entry.status = NotificationStatus.SENT.value
                    entry.sent_at = now
                else:
                    entry.status = NotificationStatus.QUEUED.value
                    queued.append(entry.channel)
            self.status = NotificationStatus.QUEUED.value
            self.updated_at = now

            # Queued precedes any Sent raised by the recompute below
            self.raise_(
                NotificationQueued(
                    notification_id=str(self.id),
                    recipient_id=self.recipient_id,
                    channels=json.dumps(queued),
                    queued_at=now,
                )
            )
            if NotificationChannel.IN_APP.value in self.channel_values():
                self.raise_(
                    ChannelDelivered(
                        notification_id=str(self.id),
                        recipient_id=self.recipient_id,
                        channel=NotificationChannel.IN_APP.value,
                        sent_at=now,
                    )
                )
            self._recompute_status(now)

    def record_delivery(self, channel, external_id=None, now=None):
        """Mark one channel SENT. Returns False when the entry was already terminal."""
        entry = self.entry_for(channel)
        if entry.is_terminal:
            return False

        now = now or datetime.now(UTC)
        with atomic_change(self):
            entry.status = NotificationStatus.SENT.value
            entry.sent_at = now
            entry.external_id = external_id
            entry.next_retry_at = None
            self.updated_at = now
            self._recompute_status(now)

        self.raise_(
            ChannelDelivered(
                notification_id=str(self.id),
                recipient_id=self.recipient_id,
                channel=channel,
                external_id=external_id,
                sent_at=now,
            )
        )
        return True

    def record_retry(self, channel, error, next_retry_at, now=None):
        """Note a failed attempt that will be retried. The entry stays QUEUED."""
        entry = self.entry_for(channel)
        if entry.is_terminal:
            return False

        now = now or datetime.now(UTC)
        entry.retry_count = (entry.retry_count or 0) + 1
        entry.error_message = _truncate(error)
        entry.next_retry_at = next_retry_at
        self.updated_at = now

        self.raise_(
            ChannelRetryScheduled(
                notification_id=str(self.id),
                channel=channel,
                error=_truncate(error),
                retry_count=entry.retry_count,
                next_retry_at=next_retry_at,
            )
        )
        return True

    def record_failure(self, channel, error, now=None):
        """Mark one channel terminally FAILED. Returns False when already terminal."""
        entry = self.entry_for(channel)
        if entry.is_terminal:
            return False

        now = now or datetime.now(UTC)
        with atomic_change(self):
            entry.status = NotificationStatus.FAILED.value
            entry.failed_at = now
            entry.error_message = _truncate(error)
            entry.next_retry_at = None
            self.updated_at = now
            self._recompute_status(now)

        self.raise_(
            ChannelFailed(
                notification_id=str(self.id),
                recipient_id=self.recipient_id,
                channel=channel,
                error=_truncate(error),
                retry_count=entry.retry_count or 0,
                failed_at=now,
            )
        )
        return True

    def expire(self, now=None):
        """Fail every unsettled entry of a deferred notification past its expiry."""
        now = now or datetime.now(UTC)
        for entry in list(self.channels):
            if not entry.is_terminal:
                self.record_failure(entry.channel, EXPIRED_MESSAGE, now=now)

    def mark_read(self, now=None):
        """Stamp read_at on an in-app notification. Returns False if already read."""
        if NotificationChannel.IN_APP.value not in self.channel_values():
            raise ValidationError({"read_at": ["Only in-app notifications can be marked as read"]})
        if self.read_at is not None:
            return False

        now = now or datetime.now(UTC)
        self.read_at = now
        self.updated_at = now

        self.raise_(
            NotificationRead(
                notification_id=str(self.id),
                recipient_id=self.recipient_id,
                read_at=now,
            )
        )
        return True

    def ensure_withdrawable(self):
        if self.status != NotificationStatus.PENDING.value:
            raise ValidationError({"status": [f"Only deferred notifications can be withdrawn, not {self.status}"]})

    def _recompute_status(self, now):
        """Derive the overall status from the entries. Call inside atomic_change."""
        statuses = [entry.status for entry in self.channels]

        if all(s == NotificationStatus.SENT.value for s in statuses):
            target = NotificationStatus.SENT.value
        elif NotificationStatus.FAILED.value in statuses and not any(s in _UNSETTLED for s in statuses):
            target = NotificationStatus.FAILED.value
        else:
            return

        if self.status == target:
            return

        self.status = target
        self.processed_at = now

        if target == NotificationStatus.SENT.value:
            self.raise_(
                NotificationSent(
                    notification_id=str(self.id),
                    recipient_id=self.recipient_id,
                    notification_type=self.notification_type,
                    sent_at=now,
                )
            )
        else:
            failed = [e.channel for e in self.channels if e.status == NotificationStatus.FAILED.value]
            self.raise_(
                NotificationFailed(
                    notification_id=str(self.id),
                    recipient_id=self.recipient_id,
                    notification_type=self.notification_type,
                    failed_channels=json.dumps(failed),
                    failed_at=now,
                )
            )


def as_utc(value):
    """UTC-aware copy of a datetime; naive values are taken to be UTC.

    Bounds passed to repository datetime lookups go through this so they
    compare against stored UTC timestamps.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _comparable(value, reference):
    """Match the tz-awareness of a stored datetime to the reference instant."""
    if value.tzinfo is not None and reference.tzinfo is None:
        return value.replace(tzinfo=None)
    if value.tzinfo is None and reference.tzinfo is not None:
        return value.replace(tzinfo=UTC)
    return value


def _truncate(message, limit=1000):
    if message is None:
        return None
    message = str(message)
    return message if len(message) <= limit else message[: limit - 3] + "..."
