"""FastAPI routes for the Notifications domain.

Thin adapters that translate HTTP requests into domain commands and
projection queries. The dispatcher and scheduler are long-lived runtime
objects and are read from ``app.state``.
"""

import json
import math
from datetime import UTC, datetime, timedelta

from fastapi import APIRouter, Query, Request
from protean.utils.globals import current_domain

from notifications.api.schemas import (
    AnalyticsResponse,
    InboxItemResponse,
    InboxResponse,
    MarkAllReadResponse,
    PreferencesResponse,
    ProcessScheduledRequest,
    ProcessScheduledResponse,
    PurgeRequest,
    PurgeResponse,
    PushTokenResponse,
    QuietHoursResponse,
    RegisterPushTokenRequest,
    SendResponse,
    SetQuietHoursRequest,
    SetTypePreferenceRequest,
    StatusResponse,
    TypePreferenceResponse,
    TypeSummary,
    UnreadCountResponse,
    UpdateChannelsRequest,
    WithdrawRequest,
)
from notifications.notification.inbox import MarkAllNotificationsRead, MarkNotificationRead
from notifications.notification.payload import NotificationPayload
from notifications.notification.retention import PurgeNotifications
from notifications.notification.withdrawal import WithdrawScheduledNotification
from notifications.preference.gate import load_preference
from notifications.preference.management import (
    ClearTypePreference,
    RegisterPushToken,
    RemovePushToken,
    SetQuietHours,
    SetTypePreference,
    UpdateChannelPreferences,
)
from notifications.preference.preference import NotificationPreference
from notifications.projections.delivery_log import summarize_deliveries
from notifications.projections.in_app_inbox import list_inbox, unread_count

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ---------------------------------------------------------------------------
# Preferences
# ---------------------------------------------------------------------------
def _preferences_response(preference) -> PreferencesResponse:
    quiet_hours = preference.quiet_hours
    return PreferencesResponse(
        user_id=str(preference.user_id),
        email_enabled=preference.email_enabled,
        push_enabled=preference.push_enabled,
        sms_enabled=preference.sms_enabled,
        in_app_enabled=preference.in_app_enabled,
        type_preferences=[
            TypePreferenceResponse(
                notification_type=tp.notification_type,
                enabled=tp.enabled,
                channels=tp.allowed_channels(),
            )
            for tp in preference.type_preferences
        ],
        quiet_hours=QuietHoursResponse(
            enabled=quiet_hours.enabled,
            start=quiet_hours.start,
            end=quiet_hours.end,
            timezone=quiet_hours.timezone,
        ),
        push_tokens=[
            PushTokenResponse(
                token=pt.token,
                platform=pt.platform,
                device_id=pt.device_id,
                added_at=pt.added_at,
                last_used=pt.last_used,
            )
            for pt in preference.push_tokens
        ],
    )


@router.get("/preferences/{user_id}", response_model=PreferencesResponse)
async def get_preferences(user_id: str) -> PreferencesResponse:
    """Get a user's notification preferences (defaults if never stored)."""
    preference = load_preference(user_id, create=False) or NotificationPreference.create_default(user_id=user_id)
    return _preferences_response(preference)


@router.put("/preferences/{user_id}", response_model=StatusResponse)
async def update_channels(user_id: str, body: UpdateChannelsRequest) -> StatusResponse:
    """Toggle a user's channel flags."""
    command = UpdateChannelPreferences(user_id=user_id, **body.model_dump())
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/preferences/{user_id}/quiet-hours", response_model=StatusResponse)
async def set_quiet_hours(user_id: str, body: SetQuietHoursRequest) -> StatusResponse:
    command = SetQuietHours(user_id=user_id, **body.model_dump())
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/preferences/{user_id}/types/{notification_type}", response_model=StatusResponse)
async def set_type_preference(user_id: str, notification_type: str, body: SetTypePreferenceRequest) -> StatusResponse:
    """Enable/disable a notification type or restrict its channels."""
    command = SetTypePreference(
        user_id=user_id,
        notification_type=notification_type,
        enabled=body.enabled,
        channels=json.dumps(body.channels) if body.channels is not None else None,
    )
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.delete("/preferences/{user_id}/types/{notification_type}", response_model=StatusResponse)
async def clear_type_preference(user_id: str, notification_type: str) -> StatusResponse:
    command = ClearTypePreference(user_id=user_id, notification_type=notification_type)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.post("/preferences/{user_id}/push-tokens", status_code=201, response_model=StatusResponse)
async def register_push_token(user_id: str, body: RegisterPushTokenRequest) -> StatusResponse:
    """Register (or refresh) a device push token."""
    command = RegisterPushToken(user_id=user_id, **body.model_dump())
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.delete("/preferences/{user_id}/push-tokens/{token}", response_model=StatusResponse)
async def remove_push_token(user_id: str, token: str) -> StatusResponse:
    command = RemovePushToken(user_id=user_id, token=token)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# In-app inbox
# ---------------------------------------------------------------------------
@router.get("/users/{user_id}", response_model=InboxResponse)
async def list_notifications(
    user_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: str | None = None,
    notification_type: str | None = Query(None, alias="type"),
) -> InboxResponse:
    """A user's in-app notifications, newest first."""
    items, total = list_inbox(user_id, page=page, limit=limit, status=status, notification_type=notification_type)
    return InboxResponse(
        notifications=[
            InboxItemResponse(
                notification_id=str(item.notification_id),
                notification_type=item.notification_type,
                priority=item.priority,
                status=item.status,
                title=item.title,
                body=item.body,
                is_read=bool(item.is_read),
                read_at=item.read_at,
                created_at=item.created_at,
            )
            for item in items
        ],
        total=total,
        page=page,
        limit=limit,
        total_pages=math.ceil(total / limit) if total else 0,
    )


@router.get("/users/{user_id}/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(user_id: str) -> UnreadCountResponse:
    return UnreadCountResponse(unread=unread_count(user_id))


@router.put("/users/{user_id}/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(user_id: str) -> MarkAllReadResponse:
    marked = current_domain.process(MarkAllNotificationsRead(user_id=user_id), asynchronous=False)
    return MarkAllReadResponse(marked=marked or 0)


@router.put("/users/{user_id}/{notification_id}/read", response_model=StatusResponse)
async def mark_read(user_id: str, notification_id: str) -> StatusResponse:
    """Mark one of the user's own notifications as read."""
    command = MarkNotificationRead(notification_id=notification_id, user_id=user_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Admin
# ---------------------------------------------------------------------------
@router.post("/send", status_code=201, response_model=SendResponse)
async def send_notification(request: Request, body: NotificationPayload) -> SendResponse:
    """Send a custom notification through the dispatcher."""
    notification_ids = await request.app.state.dispatcher.send(body)
    return SendResponse(notification_ids=notification_ids)


@router.get("/analytics", response_model=AnalyticsResponse)
async def delivery_analytics(
    start: datetime | None = None,
    end: datetime | None = None,
    notification_type: str | None = Query(None, alias="type"),
    branch_id: str | None = None,
) -> AnalyticsResponse:
    """Total/sent/failed/read counts per type. Defaults to the last 30 days."""
    end = end or datetime.now(UTC)
    start = start or end - timedelta(days=30)
    summary = summarize_deliveries(start, end, notification_type=notification_type, branch_id=branch_id)
    return AnalyticsResponse(start=start, end=end, summary=[TypeSummary(**row) for row in summary])


# ---------------------------------------------------------------------------
# Maintenance: periodic background job endpoints
# ---------------------------------------------------------------------------
@router.post("/maintenance/process-scheduled", response_model=ProcessScheduledResponse)
async def process_scheduled(request: Request, body: ProcessScheduledRequest | None = None) -> ProcessScheduledResponse:
    """Queue deferred notifications whose time has come.

    Designed to be called periodically by an external scheduler when the
    server's own scheduler loop is not running.
    """
    promoted = await request.app.state.scheduler.promote_due(as_of=body.as_of if body else None)
    return ProcessScheduledResponse(promoted=promoted)


@router.post("/maintenance/purge", response_model=PurgeResponse)
async def purge_notifications(body: PurgeRequest | None = None) -> PurgeResponse:
    command = PurgeNotifications(older_than_days=body.older_than_days if body else 180)
    purged = current_domain.process(command, asynchronous=False)
    return PurgeResponse(purged=purged or 0)


# ---------------------------------------------------------------------------
# Withdrawal
# ---------------------------------------------------------------------------
@router.delete("/{notification_id}", response_model=StatusResponse)
async def withdraw_notification(notification_id: str, body: WithdrawRequest | None = None) -> StatusResponse:
    """Withdraw a deferred notification before it is queued."""
    command = WithdrawScheduledNotification(notification_id=notification_id, reason=body.reason if body else None)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()
