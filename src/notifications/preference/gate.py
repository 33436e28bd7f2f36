"""Preference gate: which requested channels survive for a recipient, and when.

For each recipient the gate loads (or lazily creates) the user's preference,
filters the requested channels, and decides whether delivery is deferred by
quiet hours. Guests get default preferences without anything being
persisted, no quiet hours, and only contact-addressed channels.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from notifications.notification.notification import NotificationChannel, NotificationPriority, validate_channels
from notifications.preference.preference import DEFAULT_CHANNEL_FLAGS, NotificationPreference

logger = structlog.get_logger(__name__)

# Channels that need a user account behind the recipient
_USER_SCOPED_CHANNELS = (NotificationChannel.PUSH.value, NotificationChannel.IN_APP.value)


@dataclass(frozen=True)
class GateDecision:
    channels: list[str]
    deferred_until: datetime | None = None
    push_tokens: list[dict] = field(default_factory=list)

    @property
    def is_deferred(self):
        return self.deferred_until is not None


def load_preference(user_id, create=True, now=None):
    """Fetch a user's preference, creating the default record on first use."""
    repo = current_domain.repository_for(NotificationPreference)
    found = repo._dao.query.filter(user_id=str(user_id)).all().items
    if found:
        return found[0]
    if not create:
        return None

    preference = NotificationPreference.create_default(user_id=str(user_id), now=now)
    try:
        repo.add(preference)
    except ValidationError:
        # Lost a race with a concurrent first send; the other record wins
        found = repo._dao.query.filter(user_id=str(user_id)).all().items
        if not found:
            raise
        return found[0]

    logger.info("Default notification preferences created", user_id=str(user_id))
    return preference


def guest_channels(channels):
    """Requested channels a guest can receive: the default flags, minus user-scoped channels."""
    return [
        channel
        for channel in validate_channels(channels)
        if DEFAULT_CHANNEL_FLAGS[channel] and channel not in _USER_SCOPED_CHANNELS
    ]


class PreferenceGate:
    def __init__(self, clock=None):
        self.clock = clock or (lambda: datetime.now(UTC))

    def evaluate(self, recipient, channels, notification_type, priority, now=None) -> GateDecision:
        now = now or self.clock()

        if recipient.is_guest:
            return GateDecision(channels=guest_channels(channels))

        preference = load_preference(recipient.user_id, now=now)
        allowed = preference.allowed_channels(notification_type, channels)

        deferred_until = None
        if allowed and priority != NotificationPriority.CRITICAL.value and preference.in_quiet_hours(now):
            deferred_until = preference.quiet_hours.ends_after(now)
            logger.info(
                "Delivery deferred by quiet hours",
                user_id=recipient.user_id,
                notification_type=notification_type,
                deferred_until=deferred_until.isoformat(),
            )

        if len(allowed) < len(channels):
            logger.debug(
                "Channels filtered by preferences",
                user_id=recipient.user_id,
                requested=list(channels),
                allowed=allowed,
            )

        push_tokens = preference.active_push_tokens() if NotificationChannel.PUSH.value in allowed else []
        return GateDecision(channels=allowed, deferred_until=deferred_until, push_tokens=push_tokens)
