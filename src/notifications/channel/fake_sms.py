"""Fake SMS provider: records sent messages for testing."""

from notifications.channel.errors import MissingContactError
from notifications.channel.fake import FakeChannelProvider
from notifications.notification.notification import NotificationChannel

_SMS_MAX_LENGTH = 1600


class FakeSMSProvider(FakeChannelProvider):
    channel = NotificationChannel.SMS.value
    message_prefix = "sms"
    default_failure = "SMS delivery failed"

    @property
    def sent_messages(self):
        return self.sent

    def check_contact(self, job):
        if not job.mobile:
            raise MissingContactError(f"Notification {job.notification_id} has no mobile number")

    def record(self, job, rendered, message_id):
        return {
            "message_id": message_id,
            "notification_id": job.notification_id,
            "to": job.mobile,
            "body": rendered["body"][:_SMS_MAX_LENGTH],
            "sender_id": job.channel_options.get("sender_id"),
        }
