"""Application tests for the notification dispatcher."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from notifications.notification.dispatch import NotificationDispatcher
from notifications.notification.notification import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)
from notifications.notification.payload import NotificationPayload, RecipientSpec
from notifications.preference.gate import load_preference
from notifications.preference.preference import NotificationPreference
from notifications.recipient.directory import DirectoryUser, InMemoryUserDirectory

EMAIL = NotificationChannel.EMAIL.value
SMS = NotificationChannel.SMS.value
PUSH = NotificationChannel.PUSH.value
IN_APP = NotificationChannel.IN_APP.value

NIGHTTIME = datetime(2026, 3, 10, 17, 0, tzinfo=UTC)

ALERT_DATA = {"title": "Till offline", "message": "Till 3 lost connection"}


def _alert(**overrides):
    defaults = {
        "type": NotificationType.SYSTEM_ALERT.value,
        "channels": [EMAIL, IN_APP],
        "recipients": RecipientSpec(user_id="usr-cashier"),
        "template_id": "system-alert",
        "template_data": ALERT_DATA,
    }
    defaults.update(overrides)
    return NotificationPayload(**defaults)


def _receipt(**overrides):
    defaults = {
        "type": NotificationType.BILL_CREATED.value,
        "channels": [EMAIL, SMS],
        "priority": NotificationPriority.HIGH.value,
        "recipients": RecipientSpec(email="walkin@mail.test", mobile="+919811111111"),
        "template_id": "bill-created",
        "template_data": {
            "customer_name": "Asha",
            "bill_number": "B-1001",
            "amount": "2499.00",
            "store_name": "Indiranagar",
            "bill_date": "2026-03-10",
        },
    }
    defaults.update(overrides)
    return NotificationPayload(**defaults)


def _get(notification_id):
    return current_domain.repository_for(Notification).get(notification_id)


def _all_notifications():
    return current_domain.repository_for(Notification)._dao.query.all().items


class TestSend:
    @pytest.mark.asyncio
    async def test_creates_one_record_per_recipient(self, dispatcher):
        ids = await dispatcher.send(_alert(recipients=RecipientSpec(branch_id="branch-1")))
        assert len(ids) == 2
        assert sorted(str(_get(i).recipient_id) for i in ids) == ["usr-cashier", "usr-manager"]

    @pytest.mark.asyncio
    async def test_record_is_queued_and_jobs_enqueued(self, dispatcher, runtime):
        [notification_id] = await dispatcher.send(_alert())

        notification = _get(notification_id)
        assert notification.status == NotificationStatus.QUEUED.value
        assert notification.entry_for(EMAIL).status == NotificationStatus.QUEUED.value
        assert notification.entry_for(IN_APP).status == NotificationStatus.SENT.value
        assert await runtime.pending() == {EMAIL: 1, PUSH: 0, SMS: 0}

    @pytest.mark.asyncio
    async def test_preferences_filter_channels(self, dispatcher):
        [notification_id] = await dispatcher.send(_alert(channels=[EMAIL, SMS]))
        assert _get(notification_id).channel_values() == [EMAIL]

    @pytest.mark.asyncio
    async def test_preferences_created_on_first_send(self, dispatcher):
        await dispatcher.send(_alert())
        assert load_preference("usr-cashier", create=False) is not None

    @pytest.mark.asyncio
    async def test_guest_receipt(self, dispatcher):
        [notification_id] = await dispatcher.send(_receipt())
        notification = _get(notification_id)

        assert notification.recipient_id is None
        assert notification.recipient_email == "walkin@mail.test"
        # Guests get the default channel flags, so SMS is dropped
        assert notification.channel_values() == [EMAIL]
        assert current_domain.repository_for(NotificationPreference)._dao.query.all().total == 0

    @pytest.mark.asyncio
    async def test_no_surviving_channels_creates_no_record(self, dispatcher):
        assert await dispatcher.send(_alert(channels=[SMS])) == []
        assert _all_notifications() == []

    @pytest.mark.asyncio
    async def test_delivery_options_are_stored(self, dispatcher):
        payload = _alert(channels=[EMAIL], options={"email": {"cc": ["ops@store.test"]}})
        [notification_id] = await dispatcher.send(payload)
        assert _get(notification_id).options() == {"email": {"cc": ["ops@store.test"], "bcc": [], "attachments": []}}

    @pytest.mark.asyncio
    async def test_accepts_plain_dicts(self, dispatcher):
        ids = await dispatcher.send(
            {
                "type": "SystemAlert",
                "channels": ["InApp"],
                "recipients": {"user_id": "usr-admin"},
                "template_id": "system-alert",
                "template_data": ALERT_DATA,
            }
        )
        assert _get(ids[0]).status == NotificationStatus.SENT.value


class TestSendValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"type": "Marketing"}, "notification_type"),
            ({"channels": []}, "channels"),
            ({"channels": ["Fax"]}, "channels"),
            ({"template_id": None}, "template_id"),
            ({"priority": "Urgent"}, "priority"),
            ({"recipients": RecipientSpec(role="AUDITOR")}, "recipients"),
        ],
    )
    async def test_invalid_payload_creates_nothing(self, dispatcher, overrides, field):
        with pytest.raises(ValidationError) as exc:
            await dispatcher.send(_alert(**overrides))
        assert field in exc.value.messages
        assert _all_notifications() == []

    @pytest.mark.asyncio
    async def test_errors_are_reported_together(self, dispatcher):
        with pytest.raises(ValidationError) as exc:
            await dispatcher.send(_alert(type="Marketing", template_id=None))
        assert {"notification_type", "template_id"} <= set(exc.value.messages)


class TestDeferral:
    @pytest.mark.asyncio
    async def test_quiet_hours_defer_delivery(self, dispatcher, runtime, clock):
        preference = load_preference("usr-cashier")
        preference.set_quiet_hours(True)
        current_domain.repository_for(NotificationPreference).add(preference)
        clock.now = NIGHTTIME

        [notification_id] = await dispatcher.send(_alert())
        notification = _get(notification_id)

        assert notification.status == NotificationStatus.PENDING.value
        assert notification.scheduled_for == datetime(2026, 3, 11, 2, 30, tzinfo=UTC)
        assert all(e.status == NotificationStatus.PENDING.value for e in notification.channels)
        assert await runtime.pending() == {EMAIL: 0, PUSH: 0, SMS: 0}

    @pytest.mark.asyncio
    async def test_critical_ignores_quiet_hours(self, dispatcher, clock):
        preference = load_preference("usr-cashier")
        preference.set_quiet_hours(True)
        current_domain.repository_for(NotificationPreference).add(preference)
        clock.now = NIGHTTIME

        [notification_id] = await dispatcher.send(_alert(priority=NotificationPriority.CRITICAL.value))
        assert _get(notification_id).status == NotificationStatus.QUEUED.value

    @pytest.mark.asyncio
    async def test_future_schedule_defers(self, dispatcher, clock):
        later = clock.now + timedelta(days=1)
        [notification_id] = await dispatcher.send(_alert(scheduled_for=later))
        notification = _get(notification_id)
        assert notification.status == NotificationStatus.PENDING.value
        assert notification.scheduled_for == later

    @pytest.mark.asyncio
    async def test_past_schedule_sends_now(self, dispatcher, clock):
        [notification_id] = await dispatcher.send(_alert(scheduled_for=clock.now - timedelta(hours=1)))
        assert _get(notification_id).status == NotificationStatus.QUEUED.value

    @pytest.mark.asyncio
    async def test_later_of_schedule_and_quiet_hours_wins(self, dispatcher, clock):
        preference = load_preference("usr-cashier")
        preference.set_quiet_hours(True)
        current_domain.repository_for(NotificationPreference).add(preference)
        clock.now = NIGHTTIME
        much_later = NIGHTTIME + timedelta(days=2)

        [notification_id] = await dispatcher.send(_alert(scheduled_for=much_later))
        assert _get(notification_id).scheduled_for == much_later


class TestFanOut:
    @pytest.mark.asyncio
    async def test_send_to_role(self, dispatcher):
        ids = await dispatcher.send_to_role("BRANCH_MANAGER", _alert())
        assert sorted(str(_get(i).recipient_id) for i in ids) == ["usr-manager", "usr-other-manager"]

    @pytest.mark.asyncio
    async def test_send_to_branch_stamps_branch(self, dispatcher):
        ids = await dispatcher.send_to_branch("branch-1", _alert())
        assert len(ids) == 2
        assert {_get(i).source.branch_id for i in ids} == {"branch-1"}

    @pytest.mark.asyncio
    async def test_unknown_role_raises(self, dispatcher):
        with pytest.raises(ValidationError):
            await dispatcher.send_to_role("AUDITOR", _alert())

    @pytest.mark.asyncio
    async def test_fan_out_runs_in_chunks(self, runtime, directory, clock):
        dispatcher = NotificationDispatcher(runtime.publisher, directory, clock=clock, chunk_size=1)
        ids = await dispatcher.send_to_branch("branch-1", _alert())
        assert len(ids) == 2

    @pytest.mark.asyncio
    async def test_large_branch_is_split_and_failures_are_dropped(self, runtime, clock):
        staff = InMemoryUserDirectory()
        for n in range(150):
            staff.add(DirectoryUser(user_id=f"usr-{n:03d}", email=f"staff{n}@store.test", branch_ids=("branch-big",)))
        dispatcher = NotificationDispatcher(runtime.publisher, staff, clock=clock)

        original = dispatcher.gate.evaluate

        def flaky(recipient, *args, **kwargs):
            if recipient.user_id == "usr-120":
                raise RuntimeError("preference store unavailable")
            return original(recipient, *args, **kwargs)

        dispatcher.gate.evaluate = flaky
        with patch.object(NotificationDispatcher, "_collect", wraps=NotificationDispatcher._collect) as collect:
            ids = await dispatcher.send_to_branch("branch-big", _alert())

        assert [len(c.args[0]) for c in collect.call_args_list] == [100, 50]
        assert len(ids) == 149
        assert "usr-120" not in {str(_get(i).recipient_id) for i in ids}


class TestSendBatch:
    @pytest.mark.asyncio
    async def test_failed_payloads_are_dropped(self, dispatcher):
        payloads = [_alert(), _alert(type="Marketing"), _receipt()]
        ids = await dispatcher.send_batch(payloads)
        assert len(ids) == 2
        assert len(_all_notifications()) == 2

    @pytest.mark.asyncio
    async def test_one_failing_recipient_does_not_stop_the_chunk(self, dispatcher):
        original = dispatcher.gate.evaluate

        def flaky(recipient, *args, **kwargs):
            if recipient.user_id == "usr-manager":
                raise RuntimeError("preference store unavailable")
            return original(recipient, *args, **kwargs)

        dispatcher.gate.evaluate = flaky
        ids = await dispatcher.send_to_branch("branch-1", _alert())
        assert [str(_get(i).recipient_id) for i in ids] == ["usr-cashier"]
