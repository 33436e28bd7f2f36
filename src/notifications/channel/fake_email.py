"""Fake email provider: records sent emails for testing."""

from notifications.channel.errors import MissingContactError
from notifications.channel.fake import FakeChannelProvider
from notifications.notification.notification import NotificationChannel


class FakeEmailProvider(FakeChannelProvider):
    channel = NotificationChannel.EMAIL.value
    message_prefix = "email"
    default_failure = "Email delivery failed"

    @property
    def sent_emails(self):
        return self.sent

    def check_contact(self, job):
        if not job.email:
            raise MissingContactError(f"Notification {job.notification_id} has no email address")

    def record(self, job, rendered, message_id):
        options = job.channel_options
        return {
            "message_id": message_id,
            "notification_id": job.notification_id,
            "to": job.email,
            "subject": rendered.get("subject") or "",
            "body": rendered["body"],
            "cc": options.get("cc", []),
            "bcc": options.get("bcc", []),
            "reply_to": options.get("reply_to"),
            "attachments": options.get("attachments", []),
        }
