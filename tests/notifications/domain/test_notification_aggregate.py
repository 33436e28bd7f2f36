"""Tests for the Notification aggregate: creation, channel entries and derived status."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

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
from notifications.notification.notification import (
    EXPIRED_MESSAGE,
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationSource,
    NotificationStatus,
    NotificationType,
)

EMAIL = NotificationChannel.EMAIL.value
SMS = NotificationChannel.SMS.value
PUSH = NotificationChannel.PUSH.value
IN_APP = NotificationChannel.IN_APP.value

NOW = datetime(2026, 3, 10, 6, 0, tzinfo=UTC)


def _make_notification(**overrides):
    defaults = {
        "notification_type": NotificationType.BILL_CREATED.value,
        "channels": [EMAIL, SMS],
        "template_id": "bill-created",
        "recipient_email": "customer@store.test",
        "recipient_mobile": "+919811111111",
        "template_data": {"customer_name": "Asha", "bill_number": "B-1"},
        "now": NOW,
    }
    defaults.update(overrides)
    return Notification.create(**defaults)


def _queued(**overrides):
    n = _make_notification(**overrides)
    n.mark_queued(now=NOW)
    n._events.clear()
    return n


class TestNotificationCreation:
    def test_create_sets_pending_status(self):
        n = _make_notification()
        assert n.status == NotificationStatus.PENDING.value

    def test_create_adds_one_pending_entry_per_channel(self):
        n = _make_notification(channels=[EMAIL, SMS, IN_APP])
        assert n.channel_values() == [EMAIL, SMS, IN_APP]
        assert all(e.status == NotificationStatus.PENDING.value for e in n.channels)
        assert all(e.retry_count == 0 for e in n.channels)

    def test_duplicate_channels_collapse(self):
        n = _make_notification(channels=[EMAIL, EMAIL, SMS])
        assert n.channel_values() == [EMAIL, SMS]

    def test_priority_defaults_to_medium(self):
        assert _make_notification().priority == NotificationPriority.MEDIUM.value

    def test_template_data_round_trips(self):
        n = _make_notification(template_data={"amount": "120.00"})
        assert n.template_context() == {"amount": "120.00"}

    def test_create_sets_timestamps(self):
        n = _make_notification()
        assert n.created_at == NOW
        assert n.updated_at == NOW

    def test_create_raises_created_event(self):
        n = _make_notification(source=NotificationSource(branch_id="branch-1", resource_type="Bill"))
        event = n._events[-1]
        assert isinstance(event, NotificationCreated)
        assert event.template_id == "bill-created"
        assert event.branch_id == "branch-1"

    def test_empty_channels_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_notification(channels=[])
        assert "channels" in exc.value.messages

    def test_unknown_channel_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_notification(channels=["Fax"])
        assert "channels" in exc.value.messages

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_notification(notification_type="OrderShipped")
        assert "notification_type" in exc.value.messages

    def test_missing_template_rejected(self):
        with pytest.raises(ValidationError) as exc:
            _make_notification(template_id=None)
        assert "template_id" in exc.value.messages


class TestMarkQueued:
    def test_outbound_entries_become_queued(self):
        n = _make_notification()
        n.mark_queued(now=NOW)
        assert n.status == NotificationStatus.QUEUED.value
        assert [e.status for e in n.channels] == [NotificationStatus.QUEUED.value] * 2

    def test_in_app_entry_is_sent_immediately(self):
        n = _make_notification(channels=[EMAIL, IN_APP])
        n.mark_queued(now=NOW)

        assert n.entry_for(IN_APP).status == NotificationStatus.SENT.value
        assert n.entry_for(IN_APP).sent_at == NOW
        assert n.status == NotificationStatus.QUEUED.value
        assert any(isinstance(e, ChannelDelivered) and e.channel == IN_APP for e in n._events)

    def test_in_app_only_notification_is_sent(self):
        n = _make_notification(channels=[IN_APP], recipient_id="usr-1")
        n.mark_queued(now=NOW)
        assert n.status == NotificationStatus.SENT.value
        assert n.processed_at == NOW
        assert any(isinstance(e, NotificationSent) for e in n._events)

    def test_queued_event_lists_outbound_channels_only(self):
        n = _make_notification(channels=[EMAIL, IN_APP])
        n.mark_queued(now=NOW)
        queued = next(e for e in n._events if isinstance(e, NotificationQueued))
        assert queued.channels == '["Email"]'

    def test_outbound_entries(self):
        n = _queued(channels=[EMAIL, PUSH, IN_APP])
        assert [e.channel for e in n.outbound_entries()] == [EMAIL, PUSH]

    def test_cannot_queue_twice(self):
        n = _queued()
        with pytest.raises(ValidationError):
            n.mark_queued(now=NOW)


class TestChannelOutcomes:
    def test_one_delivery_keeps_record_queued(self):
        n = _queued()
        assert n.record_delivery(EMAIL, "email-1", now=NOW) is True
        assert n.entry_for(EMAIL).status == NotificationStatus.SENT.value
        assert n.entry_for(EMAIL).external_id == "email-1"
        assert n.status == NotificationStatus.QUEUED.value

    def test_all_delivered_makes_record_sent(self):
        n = _queued()
        n.record_delivery(EMAIL, "email-1", now=NOW)
        n.record_delivery(SMS, "sms-1", now=NOW)
        assert n.status == NotificationStatus.SENT.value
        assert isinstance(n._events[-1], ChannelDelivered)
        assert any(isinstance(e, NotificationSent) for e in n._events)

    def test_failure_with_sibling_unsettled_keeps_record_queued(self):
        n = _queued()
        n.record_failure(SMS, "gateway down", now=NOW)
        assert n.status == NotificationStatus.QUEUED.value

    def test_settled_with_a_failure_makes_record_failed(self):
        n = _queued()
        n.record_delivery(EMAIL, "email-1", now=NOW)
        n.record_failure(SMS, "gateway down", now=NOW)

        assert n.status == NotificationStatus.FAILED.value
        assert n.entry_for(EMAIL).status == NotificationStatus.SENT.value
        failed = next(e for e in n._events if isinstance(e, NotificationFailed))
        assert failed.failed_channels == '["SMS"]'

    def test_retry_increments_count_and_stays_queued(self):
        n = _queued()
        next_at = NOW + timedelta(seconds=2)
        assert n.record_retry(EMAIL, "timeout", next_at, now=NOW) is True

        entry = n.entry_for(EMAIL)
        assert entry.status == NotificationStatus.QUEUED.value
        assert entry.retry_count == 1
        assert entry.next_retry_at == next_at
        assert entry.error_message == "timeout"
        assert isinstance(n._events[-1], ChannelRetryScheduled)

    def test_duplicate_delivery_is_noop(self):
        n = _queued()
        n.record_delivery(EMAIL, "email-1", now=NOW)
        n._events.clear()

        assert n.record_delivery(EMAIL, "email-2", now=NOW) is False
        assert n.entry_for(EMAIL).external_id == "email-1"
        assert n._events == []

    def test_failure_after_delivery_is_ignored(self):
        n = _queued()
        n.record_delivery(EMAIL, "email-1", now=NOW)
        assert n.record_failure(EMAIL, "late failure", now=NOW) is False
        assert n.entry_for(EMAIL).status == NotificationStatus.SENT.value

    def test_retry_after_failure_is_ignored(self):
        n = _queued()
        n.record_failure(EMAIL, "bounced", now=NOW)
        assert n.record_retry(EMAIL, "again", NOW, now=NOW) is False

    def test_failure_event_carries_retry_count(self):
        n = _queued()
        n.record_retry(EMAIL, "timeout", NOW, now=NOW)
        n.record_retry(EMAIL, "timeout", NOW, now=NOW)
        n.record_failure(EMAIL, "timeout", now=NOW)
        failed = next(e for e in n._events if isinstance(e, ChannelFailed))
        assert failed.retry_count == 2

    def test_long_errors_are_truncated(self):
        n = _queued()
        n.record_failure(EMAIL, "x" * 5000, now=NOW)
        assert len(n.entry_for(EMAIL).error_message) == 1000

    def test_unknown_channel_entry(self):
        n = _queued()
        with pytest.raises(ValidationError):
            n.record_delivery(PUSH, "push-1")


class TestStatusInvariant:
    def test_sent_status_with_unsettled_entries_is_rejected(self):
        n = _queued()
        with pytest.raises(ValidationError):
            n.status = NotificationStatus.SENT.value


class TestScheduling:
    def test_unscheduled_is_due(self):
        assert _make_notification().is_due(NOW)

    def test_future_schedule_is_not_due(self):
        n = _make_notification(scheduled_for=NOW + timedelta(hours=1))
        assert not n.is_due(NOW)
        assert n.is_due(NOW + timedelta(hours=1))

    def test_expiry(self):
        n = _make_notification(expires_at=NOW + timedelta(minutes=5))
        assert not n.is_expired(NOW)
        assert n.is_expired(NOW + timedelta(minutes=5))

    def test_expire_fails_every_entry(self):
        n = _make_notification(scheduled_for=NOW + timedelta(hours=1))
        n.expire(now=NOW)
        assert n.status == NotificationStatus.FAILED.value
        assert {e.error_message for e in n.channels} == {EXPIRED_MESSAGE}

    def test_pending_notification_is_withdrawable(self):
        _make_notification(scheduled_for=NOW + timedelta(hours=1)).ensure_withdrawable()

    def test_queued_notification_is_not_withdrawable(self):
        with pytest.raises(ValidationError):
            _queued().ensure_withdrawable()


class TestMarkRead:
    def test_mark_read_stamps_read_at(self):
        n = _queued(channels=[IN_APP], recipient_id="usr-1")
        assert n.mark_read(now=NOW) is True
        assert n.read_at == NOW
        assert isinstance(n._events[-1], NotificationRead)

    def test_second_read_is_noop(self):
        n = _queued(channels=[IN_APP], recipient_id="usr-1")
        n.mark_read(now=NOW)
        assert n.mark_read(now=NOW + timedelta(minutes=1)) is False
        assert n.read_at == NOW

    def test_only_in_app_can_be_read(self):
        with pytest.raises(ValidationError):
            _queued().mark_read(now=NOW)
