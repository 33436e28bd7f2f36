"""Tests for the preference gate: channel filtering and quiet-hours deferral."""

from datetime import UTC, datetime
from unittest.mock import patch

from protean import current_domain

from notifications.notification.notification import NotificationChannel, NotificationPriority, NotificationType
from notifications.preference.gate import PreferenceGate, load_preference
from notifications.preference.preference import DEFAULT_CHANNEL_FLAGS, NotificationPreference
from notifications.recipient.resolver import Recipient

# 11:30 and 22:30 in Asia/Kolkata
DAYTIME = datetime(2026, 3, 10, 6, 0, tzinfo=UTC)
NIGHTTIME = datetime(2026, 3, 10, 17, 0, tzinfo=UTC)

EMAIL = NotificationChannel.EMAIL.value
SMS = NotificationChannel.SMS.value
PUSH = NotificationChannel.PUSH.value
IN_APP = NotificationChannel.IN_APP.value

ALERT = NotificationType.SYSTEM_ALERT.value
USER = Recipient("usr-gate", email="gate@store.test")
GUEST = Recipient(None, email="walkin@mail.test", mobile="+919811111111")


def _evaluate(recipient, channels, priority=NotificationPriority.MEDIUM.value, now=DAYTIME):
    return PreferenceGate().evaluate(recipient, channels, ALERT, priority, now=now)


def _save(preference):
    current_domain.repository_for(NotificationPreference).add(preference)


def _enable_quiet_hours(user_id):
    preference = load_preference(user_id)
    preference.set_quiet_hours(True)
    _save(preference)


class TestLazyPreferences:
    def test_first_evaluation_creates_default_record(self):
        assert load_preference("usr-gate", create=False) is None
        _evaluate(USER, [EMAIL])
        assert load_preference("usr-gate", create=False) is not None

    def test_load_preference_returns_existing_record(self):
        first = load_preference("usr-gate")
        assert load_preference("usr-gate").id == first.id

    def test_guest_preferences_are_not_persisted(self):
        _evaluate(GUEST, [EMAIL])
        assert current_domain.repository_for(NotificationPreference)._dao.query.all().total == 0

    def test_guest_evaluation_builds_no_preference_record(self):
        with patch.object(NotificationPreference, "create_default") as factory:
            decision = _evaluate(GUEST, [EMAIL, SMS, PUSH, IN_APP])

        factory.assert_not_called()
        assert decision.channels == [EMAIL]

    def test_default_record_matches_the_guest_flag_table(self):
        preference = NotificationPreference.create_default(user_id="usr-gate")
        assert {channel: preference.channel_enabled(channel) for channel in DEFAULT_CHANNEL_FLAGS} == (
            DEFAULT_CHANNEL_FLAGS
        )


class TestChannelFiltering:
    def test_default_filters_sms(self):
        assert _evaluate(USER, [EMAIL, SMS, IN_APP]).channels == [EMAIL, IN_APP]

    def test_guest_keeps_contact_channels_only(self):
        # Guest defaults still have SMS off
        assert _evaluate(GUEST, [EMAIL, SMS, PUSH, IN_APP]).channels == [EMAIL]

    def test_type_override_is_applied(self):
        preference = load_preference("usr-gate")
        preference.set_type_preference(ALERT, enabled=False)
        _save(preference)
        assert _evaluate(USER, [EMAIL, IN_APP]).channels == []

    def test_push_tokens_only_when_push_allowed(self):
        preference = load_preference("usr-gate")
        preference.register_push_token("tok-1", "android")
        _save(preference)

        assert _evaluate(USER, [PUSH]).push_tokens == [{"token": "tok-1", "platform": "android", "device_id": None}]
        assert _evaluate(USER, [EMAIL]).push_tokens == []


class TestQuietHours:
    def test_disabled_quiet_hours_never_defer(self):
        assert not _evaluate(USER, [EMAIL], now=NIGHTTIME).is_deferred

    def test_defers_until_window_end(self):
        _enable_quiet_hours("usr-gate")
        decision = _evaluate(USER, [EMAIL], now=NIGHTTIME)
        assert decision.deferred_until == datetime(2026, 3, 11, 2, 30, tzinfo=UTC)
        assert decision.channels == [EMAIL]

    def test_outside_window_is_not_deferred(self):
        _enable_quiet_hours("usr-gate")
        assert not _evaluate(USER, [EMAIL], now=DAYTIME).is_deferred

    def test_critical_bypasses_quiet_hours(self):
        _enable_quiet_hours("usr-gate")
        decision = _evaluate(USER, [EMAIL], priority=NotificationPriority.CRITICAL.value, now=NIGHTTIME)
        assert not decision.is_deferred

    def test_guests_have_no_quiet_hours(self):
        assert not _evaluate(GUEST, [EMAIL], now=NIGHTTIME).is_deferred
