"""Preference management commands + handlers.

Every handler works on the user's preference record, creating it with
defaults first when the user has never been notified.
"""

import json

from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from notifications.domain import notifications
from notifications.preference.gate import load_preference
from notifications.preference.preference import NotificationPreference


@notifications.command(part_of="NotificationPreference")
class UpdateChannelPreferences:
    """Toggle a user's global channel flags."""

    user_id: Identifier(required=True)
    email_enabled: Boolean()
    push_enabled: Boolean()
    sms_enabled: Boolean()
    in_app_enabled: Boolean()


@notifications.command(part_of="NotificationPreference")
class SetTypePreference:
    """Enable/disable a notification type, optionally restricting its channels."""

    user_id: Identifier(required=True)
    notification_type: String(required=True, max_length=50)
    enabled: Boolean(default=True)
    channels: Text()  # JSON list of channel values


@notifications.command(part_of="NotificationPreference")
class ClearTypePreference:
    user_id: Identifier(required=True)
    notification_type: String(required=True, max_length=50)


@notifications.command(part_of="NotificationPreference")
class SetQuietHours:
    """Replace a user's quiet-hours window."""

    user_id: Identifier(required=True)
    enabled: Boolean(default=True)
    start: String(max_length=5)
    end: String(max_length=5)
    timezone: String(max_length=64)


@notifications.command(part_of="NotificationPreference")
class RegisterPushToken:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=512)
    platform: String(required=True, max_length=10)
    device_id: String(max_length=255)


@notifications.command(part_of="NotificationPreference")
class RemovePushToken:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=512)


@notifications.command_handler(part_of=NotificationPreference)
class ManagePreferencesHandler:
    @handle(UpdateChannelPreferences)
    def update_channels(self, command: UpdateChannelPreferences):
        preference = load_preference(command.user_id)
        preference.update_channels(
            email=command.email_enabled,
            push=command.push_enabled,
            sms=command.sms_enabled,
            in_app=command.in_app_enabled,
        )
        current_domain.repository_for(NotificationPreference).add(preference)

    @handle(SetTypePreference)
    def set_type_preference(self, command: SetTypePreference):
        preference = load_preference(command.user_id)
        preference.set_type_preference(
            command.notification_type,
            enabled=command.enabled,
            channels=json.loads(command.channels) if command.channels else None,
        )
        current_domain.repository_for(NotificationPreference).add(preference)

    @handle(ClearTypePreference)
    def clear_type_preference(self, command: ClearTypePreference):
        preference = load_preference(command.user_id)
        preference.clear_type_preference(command.notification_type)
        current_domain.repository_for(NotificationPreference).add(preference)

    @handle(SetQuietHours)
    def set_quiet_hours(self, command: SetQuietHours):
        preference = load_preference(command.user_id)
        preference.set_quiet_hours(
            enabled=command.enabled,
            start=command.start,
            end=command.end,
            timezone=command.timezone,
        )
        current_domain.repository_for(NotificationPreference).add(preference)

    @handle(RegisterPushToken)
    def register_push_token(self, command: RegisterPushToken):
        preference = load_preference(command.user_id)
        preference.register_push_token(command.token, command.platform, device_id=command.device_id)
        current_domain.repository_for(NotificationPreference).add(preference)

    @handle(RemovePushToken)
    def remove_push_token(self, command: RemovePushToken):
        preference = load_preference(command.user_id)
        preference.remove_push_token(command.token)
        current_domain.repository_for(NotificationPreference).add(preference)
