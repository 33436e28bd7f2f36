"""NotificationPreference aggregate (CQRS): per-user delivery preferences.

One preference record per user: global channel flags, per-type overrides,
a quiet-hours window and registered push devices. Records are created
lazily with defaults the first time a user is notified and are never
hard-deleted.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, String, Text, ValueObject

from notifications.domain import notifications
from notifications.notification.notification import (
    NotificationChannel,
    validate_channels,
    validate_notification_type,
)
from notifications.preference.events import (
    ChannelsUpdated,
    PreferencesCreated,
    PushTokenRegistered,
    PushTokenRemoved,
    QuietHoursUpdated,
    TypePreferenceCleared,
    TypePreferenceSet,
)
from notifications.preference.quiet_hours import is_within, load_zone, next_window_end, parse_clock

DEFAULT_QUIET_START = "22:00"
DEFAULT_QUIET_END = "08:00"
DEFAULT_TIMEZONE = "Asia/Kolkata"

# Global channel flags of a fresh preference record
DEFAULT_CHANNEL_FLAGS = {
    NotificationChannel.EMAIL.value: True,
    NotificationChannel.PUSH.value: True,
    NotificationChannel.SMS.value: False,
    NotificationChannel.IN_APP.value: True,
}


class PushPlatform(Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


@notifications.value_object(part_of="NotificationPreference")
class QuietHours:
    """Do-not-disturb window in the user's local time."""

    enabled: Boolean(default=False)
    start: String(max_length=5, default=DEFAULT_QUIET_START)
    end: String(max_length=5, default=DEFAULT_QUIET_END)
    timezone: String(max_length=64, default=DEFAULT_TIMEZONE)

    @invariant.post
    def window_must_be_valid(self):
        for label, value in (("start", self.start), ("end", self.end)):
            try:
                parse_clock(value)
            except ValueError as exc:
                raise ValidationError({f"quiet_hours_{label}": [str(exc)]}) from None
        try:
            load_zone(self.timezone)
        except ValueError as exc:
            raise ValidationError({"quiet_hours_timezone": [str(exc)]}) from None

    def covers(self, now):
        return bool(self.enabled) and is_within(self.start, self.end, self.timezone, now)

    def ends_after(self, now):
        return next_window_end(self.end, self.timezone, now)


@notifications.entity(part_of="NotificationPreference")
class TypePreference:
    """Override for one notification type.

    ``channels`` holds a JSON list; null or an empty list means the type is
    not restricted to a channel subset.
    """

    notification_type: String(required=True, max_length=50)
    enabled: Boolean(default=True)
    channels: Text()

    def allowed_channels(self):
        return json.loads(self.channels) if self.channels else []


@notifications.entity(part_of="NotificationPreference")
class PushToken:
    token: String(required=True, max_length=512)
    platform: String(choices=PushPlatform, required=True)
    device_id: String(max_length=255)
    added_at: DateTime()
    last_used: DateTime()


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@notifications.aggregate
class NotificationPreference:
    """A user's notification preferences."""

    user_id: Identifier(required=True, unique=True)

    # Global channel flags
    email_enabled: Boolean(default=DEFAULT_CHANNEL_FLAGS[NotificationChannel.EMAIL.value])
    push_enabled: Boolean(default=DEFAULT_CHANNEL_FLAGS[NotificationChannel.PUSH.value])
    sms_enabled: Boolean(default=DEFAULT_CHANNEL_FLAGS[NotificationChannel.SMS.value])
    in_app_enabled: Boolean(default=DEFAULT_CHANNEL_FLAGS[NotificationChannel.IN_APP.value])

    type_preferences: HasMany(TypePreference)
    quiet_hours: ValueObject(QuietHours)
    push_tokens: HasMany(PushToken)

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create_default(cls, user_id, now=None):
        """Email, Push and In-App on; SMS off; quiet hours disabled."""
        now = now or datetime.now(UTC)
        flags = {
            "email_enabled": DEFAULT_CHANNEL_FLAGS[NotificationChannel.EMAIL.value],
            "push_enabled": DEFAULT_CHANNEL_FLAGS[NotificationChannel.PUSH.value],
            "sms_enabled": DEFAULT_CHANNEL_FLAGS[NotificationChannel.SMS.value],
            "in_app_enabled": DEFAULT_CHANNEL_FLAGS[NotificationChannel.IN_APP.value],
        }

        preference = cls(
            user_id=user_id,
            **flags,
            quiet_hours=QuietHours(),
            created_at=now,
            updated_at=now,
        )

        preference.raise_(
            PreferencesCreated(
                preference_id=str(preference.id),
                user_id=str(user_id),
                **flags,
                created_at=now,
            )
        )

        return preference

    # -------------------------------------------------------------------
    # Query helpers
    # -------------------------------------------------------------------
    def channel_enabled(self, channel):
        return {
            NotificationChannel.EMAIL.value: self.email_enabled,
            NotificationChannel.PUSH.value: self.push_enabled,
            NotificationChannel.SMS.value: self.sms_enabled,
            NotificationChannel.IN_APP.value: self.in_app_enabled,
        }.get(channel, False)

    def type_preference_for(self, notification_type):
        return next((tp for tp in self.type_preferences if tp.notification_type == notification_type), None)

    def allowed_channels(self, notification_type, requested):
        """Filter requested channels through the global flags and the type override."""
        override = self.type_preference_for(notification_type)
        if override is not None and not override.enabled:
            return []

        restricted = override.allowed_channels() if override is not None else []
        return [
            channel
            for channel in validate_channels(requested)
            if self.channel_enabled(channel) and (not restricted or channel in restricted)
        ]

    def in_quiet_hours(self, now):
        return self.quiet_hours is not None and self.quiet_hours.covers(now)

    def active_push_tokens(self):
        return [
            {"token": pt.token, "platform": pt.platform, "device_id": pt.device_id}
            for pt in self.push_tokens
        ]

    # -------------------------------------------------------------------
    # Channel flags
    # -------------------------------------------------------------------
    def update_channels(self, email=None, push=None, sms=None, in_app=None, now=None):
        """Update global channel flags. Pass None to keep a flag unchanged."""
        if email is None and push is None and sms is None and in_app is None:
            raise ValidationError({"channels": ["At least one channel preference must be provided"]})

        now = now or datetime.now(UTC)

        if email is not None:
            self.email_enabled = email
        if push is not None:
            self.push_enabled = push
        if sms is not None:
            self.sms_enabled = sms
        if in_app is not None:
            self.in_app_enabled = in_app
        self.updated_at = now

        self.raise_(
            ChannelsUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                email_enabled=self.email_enabled,
                push_enabled=self.push_enabled,
                sms_enabled=self.sms_enabled,
                in_app_enabled=self.in_app_enabled,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Per-type overrides
    # -------------------------------------------------------------------
    def set_type_preference(self, notification_type, enabled=True, channels=None, now=None):
        """Create or replace the override for a notification type."""
        notification_type = validate_notification_type(notification_type)
        channels = validate_channels(channels)
        encoded = json.dumps(channels) if channels else None
        now = now or datetime.now(UTC)

        existing = self.type_preference_for(notification_type)
        if existing is not None:
            existing.enabled = enabled
            existing.channels = encoded
        else:
            self.add_type_preferences(
                TypePreference(notification_type=notification_type, enabled=enabled, channels=encoded)
            )
        self.updated_at = now

        self.raise_(
            TypePreferenceSet(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                notification_type=notification_type,
                enabled=enabled,
                channels=encoded,
                updated_at=now,
            )
        )

    def clear_type_preference(self, notification_type, now=None):
        notification_type = validate_notification_type(notification_type)
        existing = self.type_preference_for(notification_type)
        if existing is None:
            raise ValidationError({"type_preferences": [f"No override set for {notification_type}"]})

        now = now or datetime.now(UTC)
        self.remove_type_preferences(existing)
        self.updated_at = now

        self.raise_(
            TypePreferenceCleared(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                notification_type=notification_type,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Quiet hours
    # -------------------------------------------------------------------
    def set_quiet_hours(self, enabled, start=None, end=None, timezone=None, now=None):
        """Replace the quiet-hours window. Omitted parts keep their current value."""
        current = self.quiet_hours or QuietHours()
        window = QuietHours(
            enabled=enabled,
            start=start or current.start,
            end=end or current.end,
            timezone=timezone or current.timezone,
        )
        now = now or datetime.now(UTC)
        self.quiet_hours = window
        self.updated_at = now

        self.raise_(
            QuietHoursUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                enabled=window.enabled,
                start=window.start,
                end=window.end,
                timezone=window.timezone,
                updated_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Push devices
    # -------------------------------------------------------------------
    def register_push_token(self, token, platform, device_id=None, now=None):
        """Add a device token; re-registering a known token refreshes it."""
        if not token:
            raise ValidationError({"token": ["Push token is required"]})

        now = now or datetime.now(UTC)
        existing = next((pt for pt in self.push_tokens if pt.token == token), None)
        if existing is not None:
            existing.platform = platform
            existing.device_id = device_id or existing.device_id
            existing.last_used = now
        else:
            self.add_push_tokens(
                PushToken(token=token, platform=platform, device_id=device_id, added_at=now, last_used=now)
            )
        self.updated_at = now

        self.raise_(
            PushTokenRegistered(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                platform=platform,
                device_id=device_id,
                registered_at=now,
            )
        )

    def remove_push_token(self, token, now=None):
        existing = next((pt for pt in self.push_tokens if pt.token == token), None)
        if existing is None:
            raise ValidationError({"token": ["Push token is not registered"]})

        now = now or datetime.now(UTC)
        self.remove_push_tokens(existing)
        self.updated_at = now

        self.raise_(
            PushTokenRemoved(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                platform=existing.platform,
                device_id=existing.device_id,
                removed_at=now,
            )
        )
