"""Notification payloads: what callers hand to the dispatcher.

Payloads are ephemeral request objects (pydantic models). Domain rules
(known type, known channels, template id present) are checked by the
dispatcher and surface as protean ValidationErrors.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from notifications.notification.notification import NotificationPriority


class RecipientSpec(BaseModel):
    """Who to notify. Every populated field contributes recipients."""

    user_id: str | None = None
    user_ids: list[str] = Field(default_factory=list)
    role: str | None = None
    roles: list[str] = Field(default_factory=list)
    branch_id: str | None = None
    email: str | None = None
    mobile: str | None = None


class EmailOptions(BaseModel):
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)
    reply_to: str | None = None
    attachments: list[dict] = Field(default_factory=list)


class PushOptions(BaseModel):
    badge: int | None = None
    sound: str | None = None
    click_action: str | None = None
    data: dict[str, str] = Field(default_factory=dict)


class SmsOptions(BaseModel):
    sender_id: str | None = None


class DeliveryOptions(BaseModel):
    email: EmailOptions | None = None
    push: PushOptions | None = None
    sms: SmsOptions | None = None


class PayloadMetadata(BaseModel):
    resource_type: str | None = None
    resource_id: str | None = None
    branch_id: str | None = None
    triggered_by: str | None = None
    triggered_by_action: str | None = None
    expires_at: datetime | None = None


class NotificationPayload(BaseModel):
    type: str
    channels: list[str] = Field(default_factory=list)
    priority: str = NotificationPriority.MEDIUM.value
    recipients: RecipientSpec = Field(default_factory=RecipientSpec)
    template_id: str | None = None
    template_data: dict = Field(default_factory=dict)
    subject: str | None = None
    custom_message: str | None = None
    metadata: PayloadMetadata | None = None
    scheduled_for: datetime | None = None
    options: DeliveryOptions | None = None

    def for_recipients(self, **spec) -> "NotificationPayload":
        """Copy of this payload addressed to a different recipient spec."""
        return self.model_copy(update={"recipients": RecipientSpec(**spec)})

    def with_branch(self, branch_id) -> "NotificationPayload":
        metadata = (self.metadata or PayloadMetadata()).model_copy(update={"branch_id": branch_id})
        return self.model_copy(update={"metadata": metadata})
