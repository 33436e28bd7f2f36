"""Domain events for the NotificationPreference aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String, Text

from notifications.domain import notifications


@notifications.event(part_of="NotificationPreference")
class PreferencesCreated:
    """Default preferences were created for a user."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    email_enabled: Boolean(required=True)
    push_enabled: Boolean(required=True)
    sms_enabled: Boolean(required=True)
    in_app_enabled: Boolean(required=True)
    created_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class ChannelsUpdated:
    """Global channel flags changed."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    email_enabled: Boolean(required=True)
    push_enabled: Boolean(required=True)
    sms_enabled: Boolean(required=True)
    in_app_enabled: Boolean(required=True)
    updated_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class TypePreferenceSet:
    """A per-type override was created or replaced."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    notification_type: String(required=True)
    enabled: Boolean(required=True)
    channels: Text()  # JSON list, absent when unrestricted
    updated_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class TypePreferenceCleared:
    """A per-type override was removed."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    notification_type: String(required=True)
    updated_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class QuietHoursUpdated:
    """The quiet-hours window changed."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    enabled: Boolean(required=True)
    start: String(required=True)
    end: String(required=True)
    timezone: String(required=True)
    updated_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class PushTokenRegistered:
    """A device push token was registered (or refreshed)."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    platform: String(required=True)
    device_id: String()
    registered_at: DateTime(required=True)


@notifications.event(part_of="NotificationPreference")
class PushTokenRemoved:
    """A device push token was removed."""

    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    platform: String(required=True)
    device_id: String()
    removed_at: DateTime(required=True)
