"""Shared BDD fixtures and step definitions for the Notifications domain."""

from datetime import UTC, datetime

import pytest
from pytest_bdd import given, parsers, then

from notifications.notification.events import (
    ChannelDelivered,
    ChannelFailed,
    ChannelRetryScheduled,
    NotificationCreated,
    NotificationFailed,
    NotificationQueued,
    NotificationRead,
    NotificationSent,
)
from notifications.notification.notification import Notification, NotificationStatus
from notifications.preference.preference import NotificationPreference

NOW = datetime(2026, 3, 10, 6, 0, tzinfo=UTC)

_NOTIFICATION_EVENT_CLASSES = {
    "NotificationCreated": NotificationCreated,
    "NotificationQueued": NotificationQueued,
    "NotificationSent": NotificationSent,
    "NotificationFailed": NotificationFailed,
    "NotificationRead": NotificationRead,
    "ChannelDelivered": ChannelDelivered,
    "ChannelFailed": ChannelFailed,
    "ChannelRetryScheduled": ChannelRetryScheduled,
}


def _split(channels):
    return [c.strip() for c in channels.split(",") if c.strip()]


def _notification(channels):
    return Notification.create(
        notification_type="SystemAlert",
        channels=_split(channels),
        template_id="system-alert",
        recipient_id="usr-bdd",
        recipient_email="bdd@store.test",
        recipient_mobile="+919800000009",
        template_data={"title": "Till offline", "message": "Till 3 lost connection"},
        now=NOW,
    )


@pytest.fixture()
def error():
    """Container for captured validation errors."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps: notifications
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a new notification over "{channels}"'),
    target_fixture="notification",
)
def new_notification(channels):
    return _notification(channels)


@given(
    parsers.cfparse('a queued notification over "{channels}"'),
    target_fixture="notification",
)
def queued_notification(channels):
    n = _notification(channels)
    n.mark_queued(now=NOW)
    n._events.clear()
    return n


# ---------------------------------------------------------------------------
# Given steps: preferences
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a user "{user_id}" with default preferences'),
    target_fixture="preference",
)
def user_with_default_prefs(user_id):
    pref = NotificationPreference.create_default(user_id=user_id, now=NOW)
    pref._events.clear()
    return pref


# ---------------------------------------------------------------------------
# Then steps: notification status & events
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the notification status is "{status}"'))
def notification_status_is(notification, status):
    assert notification.status == status


@then(parsers.cfparse('the "{channel}" channel is "{status}"'))
def channel_status_is(notification, channel, status):
    assert notification.entry_for(channel).status == status


@then(parsers.cfparse("a {event_type} event is raised"))
def notification_event_raised(notification, event_type):
    event_cls = _NOTIFICATION_EVENT_CLASSES[event_type]
    assert any(
        isinstance(e, event_cls) for e in notification._events
    ), f"No {event_type} event found. Events: {[type(e).__name__ for e in notification._events]}"


@then("the notification is settled")
def notification_settled(notification):
    assert notification.status in (NotificationStatus.SENT.value, NotificationStatus.FAILED.value)


@then("the action fails with a validation error")
def action_fails(error):
    assert error["exc"] is not None


# ---------------------------------------------------------------------------
# Then steps: preferences
# ---------------------------------------------------------------------------
@then(parsers.cfparse("{channel} is enabled"))
def channel_enabled(preference, channel):
    assert preference.channel_enabled(channel) is True


@then(parsers.cfparse("{channel} is disabled"))
def channel_disabled(preference, channel):
    assert preference.channel_enabled(channel) is False


@then(parsers.cfparse('quiet hours are "{start}" - "{end}" in "{timezone}"'))
def quiet_hours_set(preference, start, end, timezone):
    quiet_hours = preference.quiet_hours
    assert (quiet_hours.start, quiet_hours.end, quiet_hours.timezone) == (start, end, timezone)
