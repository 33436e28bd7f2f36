"""Domain events for the Notification aggregate."""

from protean.fields import DateTime, Identifier, Integer, String, Text

from notifications.domain import notifications


@notifications.event(part_of="Notification")
class NotificationCreated:
    """A notification record was created for one recipient."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier()  # None for guests
    notification_type: String(required=True)
    priority: String(required=True)
    channels: Text(required=True)  # JSON list of channel values
    subject: String(max_length=500)
    template_id: String(required=True)
    template_data: Text()  # JSON map
    custom_message: Text()
    branch_id: Identifier()
    scheduled_for: DateTime()
    created_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class NotificationQueued:
    """Channel jobs for the notification were handed to the delivery queues."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier()
    channels: Text(required=True)  # JSON list of queued outbound channels
    queued_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class ChannelDelivered:
    """A channel provider accepted the message."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier()
    channel: String(required=True)
    external_id: String()
    sent_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class ChannelRetryScheduled:
    """A delivery attempt failed and another attempt has been scheduled."""

    __version__ = 1

    notification_id: Identifier(required=True)
    channel: String(required=True)
    error: String(max_length=1000)
    retry_count: Integer(required=True)
    next_retry_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class ChannelFailed:
    """A channel entry reached its terminal failed state."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier()
    channel: String(required=True)
    error: String(max_length=1000)
    retry_count: Integer(required=True)
    failed_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class NotificationSent:
    """Every channel entry of the notification was delivered."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier()
    notification_type: String(required=True)
    sent_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class NotificationFailed:
    """All channels settled and at least one of them failed."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier()
    notification_type: String(required=True)
    failed_channels: Text(required=True)  # JSON list
    failed_at: DateTime(required=True)


@notifications.event(part_of="Notification")
class NotificationRead:
    """The recipient opened the in-app notification."""

    __version__ = 1

    notification_id: Identifier(required=True)
    recipient_id: Identifier(required=True)
    read_at: DateTime(required=True)
