"""Pydantic request/response models for the Notifications API.

API schemas are separate from Protean commands (anti-corruption pattern).
The admin send endpoint accepts a NotificationPayload directly.
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------
class UpdateChannelsRequest(BaseModel):
    email_enabled: bool | None = None
    push_enabled: bool | None = None
    sms_enabled: bool | None = None
    in_app_enabled: bool | None = None


class SetQuietHoursRequest(BaseModel):
    enabled: bool = True
    start: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$", examples=["22:00"])
    end: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$", examples=["08:00"])
    timezone: str | None = Field(default=None, examples=["Asia/Kolkata"])


class SetTypePreferenceRequest(BaseModel):
    enabled: bool = True
    channels: list[str] | None = Field(
        default=None,
        description="Restrict this type to these channels; omit for no restriction",
    )


class RegisterPushTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: str = Field(..., examples=["android"])
    device_id: str | None = None


class ProcessScheduledRequest(BaseModel):
    as_of: datetime | None = None


class PurgeRequest(BaseModel):
    older_than_days: int = Field(default=180, ge=1)


class WithdrawRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class TypePreferenceResponse(BaseModel):
    notification_type: str
    enabled: bool
    channels: list[str] = []


class QuietHoursResponse(BaseModel):
    enabled: bool
    start: str
    end: str
    timezone: str


class PushTokenResponse(BaseModel):
    token: str
    platform: str
    device_id: str | None = None
    added_at: datetime | None = None
    last_used: datetime | None = None


class PreferencesResponse(BaseModel):
    user_id: str
    email_enabled: bool
    push_enabled: bool
    sms_enabled: bool
    in_app_enabled: bool
    type_preferences: list[TypePreferenceResponse] = []
    quiet_hours: QuietHoursResponse
    push_tokens: list[PushTokenResponse] = []


class InboxItemResponse(BaseModel):
    notification_id: str
    notification_type: str
    priority: str | None = None
    status: str
    title: str | None = None
    body: str | None = None
    is_read: bool
    read_at: datetime | None = None
    created_at: datetime | None = None


class InboxResponse(BaseModel):
    notifications: list[InboxItemResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAllReadResponse(BaseModel):
    marked: int


class SendResponse(BaseModel):
    notification_ids: list[str]


class ProcessScheduledResponse(BaseModel):
    promoted: list[str]


class PurgeResponse(BaseModel):
    purged: int


class TypeSummary(BaseModel):
    notification_type: str
    total: int
    sent: int
    failed: int
    read: int


class AnalyticsResponse(BaseModel):
    start: datetime
    end: datetime
    summary: list[TypeSummary]
