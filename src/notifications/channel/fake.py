"""Shared behaviour for the in-memory fake providers."""

import asyncio
from uuid import uuid4

from notifications.channel.base import ChannelProvider, DeliveryResult
from notifications.templates import TemplateRegistry


class FakeChannelProvider(ChannelProvider):
    """Renders the job's template, records the message and reports success.

    ``configure`` switches it into failure modes: always fail, fail the first
    ``fail_times`` attempts, raise an exception, or sleep ``delay`` seconds
    before answering (to trip the worker's timeout).
    """

    message_prefix = "msg"
    default_failure = "Delivery failed"

    def __init__(self, templates: TemplateRegistry | None = None):
        self.templates = templates or TemplateRegistry()
        self.sent: list[dict] = []
        self.attempts: list = []
        self.reset()

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str | None = None,
        fail_times: int = 0,
        delay: float = 0.0,
        raise_error: Exception | None = None,
    ):
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason or self.default_failure
        self._failures_left = fail_times
        self.delay = delay
        self.raise_error = raise_error

    def reset(self):
        """Clear recorded messages and restore default behaviour."""
        self.sent.clear()
        self.attempts.clear()
        self.configure()

    def attempts_for(self, notification_id):
        return [job for job in self.attempts if job.notification_id == notification_id]

    def render(self, job) -> dict:
        if job.custom_message:
            return {"subject": job.subject, "body": job.custom_message}
        rendered = self.templates.render(job.template_id, job.channel, job.template_data)
        if job.subject:
            rendered["subject"] = job.subject
        return rendered

    def check_contact(self, job):
        """Raise MissingContactError when the job has no address for this channel."""

    def record(self, job, rendered: dict, message_id: str) -> dict:
        return {"message_id": message_id, "notification_id": job.notification_id, **rendered}

    async def send(self, job) -> DeliveryResult:
        self.attempts.append(job)
        if self.delay:
            await asyncio.sleep(self.delay)

        self.check_contact(job)
        rendered = self.render(job)

        if self.raise_error is not None:
            raise self.raise_error
        if self._failures_left > 0:
            self._failures_left -= 1
            return DeliveryResult(success=False, error=self.failure_reason)
        if not self.should_succeed:
            return DeliveryResult(success=False, error=self.failure_reason)

        message_id = f"{self.message_prefix}-{uuid4().hex[:12]}"
        self.sent.append(self.record(job, rendered, message_id))
        return DeliveryResult(success=True, external_id=message_id)


def build_fake_providers(templates: TemplateRegistry | None = None) -> dict[str, FakeChannelProvider]:
    """One fake provider per outbound channel, sharing a template registry."""
    from notifications.channel.fake_email import FakeEmailProvider
    from notifications.channel.fake_push import FakePushProvider
    from notifications.channel.fake_sms import FakeSMSProvider

    templates = templates or TemplateRegistry()
    providers = [FakeEmailProvider(templates), FakePushProvider(templates), FakeSMSProvider(templates)]
    return {provider.channel: provider for provider in providers}
