"""Channel jobs: the denormalised unit a worker delivers.

A job carries everything a provider needs (contact, template, options) so a
worker never reads the notification record before attempting delivery.
"""

import json
from dataclasses import asdict, dataclass, field
from uuid import uuid4

from notifications.notification.notification import PRIORITY_WEIGHTS, NotificationChannel


@dataclass
class ChannelJob:
    notification_id: str
    channel: str
    notification_type: str
    priority: str
    template_id: str
    recipient_id: str | None = None
    email: str | None = None
    mobile: str | None = None
    push_tokens: list[dict] = field(default_factory=list)
    template_data: dict = field(default_factory=dict)
    subject: str | None = None
    custom_message: str | None = None
    options: dict = field(default_factory=dict)
    attempts_made: int = 0
    job_id: str = field(default_factory=lambda: uuid4().hex)

    @property
    def weight(self) -> int:
        return PRIORITY_WEIGHTS[self.priority]

    @property
    def channel_options(self) -> dict:
        """Options for this job's channel, e.g. ``emailOptions`` for Email."""
        key = {
            NotificationChannel.EMAIL.value: "email",
            NotificationChannel.PUSH.value: "push",
            NotificationChannel.SMS.value: "sms",
        }.get(self.channel)
        return (self.options or {}).get(key) or {}

    @classmethod
    def for_notification(cls, notification, channel, push_tokens=None) -> "ChannelJob":
        return cls(
            notification_id=str(notification.id),
            channel=channel,
            notification_type=notification.notification_type,
            priority=notification.priority,
            template_id=notification.template_id,
            recipient_id=notification.recipient_id,
            email=notification.recipient_email,
            mobile=notification.recipient_mobile,
            push_tokens=list(push_tokens or []),
            template_data=notification.template_context(),
            subject=notification.subject,
            custom_message=notification.custom_message,
            options=notification.options(),
        )

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ChannelJob":
        return cls(**data)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)

    @classmethod
    def from_json(cls, payload: str) -> "ChannelJob":
        return cls.from_dict(json.loads(payload))
