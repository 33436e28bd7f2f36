"""Fake push provider: records push notifications for testing."""

from notifications.channel.errors import MissingContactError
from notifications.channel.fake import FakeChannelProvider
from notifications.notification.notification import NotificationChannel


class FakePushProvider(FakeChannelProvider):
    channel = NotificationChannel.PUSH.value
    message_prefix = "push"
    default_failure = "Push delivery failed"

    @property
    def sent_pushes(self):
        return self.sent

    def check_contact(self, job):
        if not job.push_tokens:
            raise MissingContactError(f"No push tokens registered for recipient {job.recipient_id}")

    def record(self, job, rendered, message_id):
        options = job.channel_options
        return {
            "message_id": message_id,
            "notification_id": job.notification_id,
            "device_tokens": [t["token"] for t in job.push_tokens],
            "title": rendered.get("subject") or "",
            "body": rendered["body"],
            "badge": options.get("badge"),
            "sound": options.get("sound", "default"),
            "click_action": options.get("click_action"),
            "data": {"notification_id": job.notification_id, "type": job.notification_type, **options.get("data", {})},
        }
