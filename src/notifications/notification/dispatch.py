"""Notification dispatcher: the entry point for sending notifications.

send() resolves recipients, runs each one through the preference gate,
creates one Notification per surviving recipient and, unless delivery is
deferred, queues its channel jobs. It returns as soon as the jobs are
enqueued; delivery happens on the channel workers.

Recipient fan-out for large audiences (batches, roles, branches) runs in
chunks. Within a chunk every send runs concurrently and a failure in one
does not affect the others. Failed entries are logged and left out of the
returned ids.
"""

import asyncio
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from notifications.notification.notification import (
    Notification,
    NotificationPriority,
    NotificationSource,
    as_utc,
    validate_channels,
    validate_notification_type,
)
from notifications.notification.payload import NotificationPayload
from notifications.preference.gate import PreferenceGate
from notifications.recipient.resolver import RecipientResolver

logger = structlog.get_logger(__name__)

DEFAULT_CHUNK_SIZE = 100


def _chunks(items, size):
    for start in range(0, len(items), size):
        yield items[start : start + size]


class NotificationDispatcher:
    def __init__(self, publisher, directory, gate=None, clock=None, chunk_size=DEFAULT_CHUNK_SIZE):
        self.publisher = publisher
        self.resolver = RecipientResolver(directory)
        self.clock = clock or (lambda: datetime.now(UTC))
        self.gate = gate or PreferenceGate(clock=self.clock)
        self.chunk_size = chunk_size

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def send(self, payload) -> list[str]:
        """Create and queue notifications for every recipient of the payload.

        Raises ValidationError when the payload is invalid or resolves to no
        recipients; no record is created in that case.
        """
        payload = self._validate(payload)
        recipients = await self.resolver.resolve_or_raise(payload.recipients)

        notification_ids = []
        for recipient in recipients:
            notification_id = await self._deliver_to(recipient, payload)
            if notification_id:
                notification_ids.append(notification_id)

        logger.info(
            "Notification send completed",
            notification_type=payload.type,
            recipients=len(recipients),
            created=len(notification_ids),
        )
        return notification_ids

    async def send_batch(self, payloads) -> list[str]:
        """Send many payloads; failures are logged and dropped from the result."""
        all_ids = []
        for chunk_number, chunk in enumerate(_chunks(list(payloads), self.chunk_size), start=1):
            results = await asyncio.gather(*(self.send(p) for p in chunk), return_exceptions=True)
            all_ids.extend(self._collect(results, chunk_number, kind="payload"))
        return all_ids

    async def send_to_role(self, role, payload) -> list[str]:
        payload = self._validate(payload).for_recipients(role=role)
        return await self._fan_out(payload)

    async def send_to_branch(self, branch_id, payload) -> list[str]:
        payload = self._validate(payload).for_recipients(branch_id=branch_id).with_branch(branch_id)
        return await self._fan_out(payload)

    # -------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------
    def _validate(self, payload) -> NotificationPayload:
        if not isinstance(payload, NotificationPayload):
            payload = NotificationPayload.model_validate(payload)

        errors = {}
        try:
            validate_notification_type(payload.type)
        except ValidationError as exc:
            errors.update(exc.messages)
        try:
            if not validate_channels(payload.channels):
                errors["channels"] = ["At least one channel is required"]
        except ValidationError as exc:
            errors.update(exc.messages)
        if not payload.template_id:
            errors["template_id"] = ["Template id is required"]
        if payload.priority not in {p.value for p in NotificationPriority}:
            errors["priority"] = [f"Unknown priority: {payload.priority}"]

        if errors:
            raise ValidationError(errors)
        return payload

    async def _fan_out(self, payload) -> list[str]:
        recipients = await self.resolver.resolve_or_raise(payload.recipients)

        notification_ids = []
        for chunk_number, chunk in enumerate(_chunks(recipients, self.chunk_size), start=1):
            results = await asyncio.gather(
                *(self._deliver_to(recipient, payload) for recipient in chunk),
                return_exceptions=True,
            )
            notification_ids.extend(self._collect(results, chunk_number, kind="recipient"))

        logger.info(
            "Notification fan-out completed",
            notification_type=payload.type,
            recipients=len(recipients),
            created=len(notification_ids),
        )
        return notification_ids

    @staticmethod
    def _collect(results, chunk_number, kind):
        collected = []
        for result in results:
            if isinstance(result, BaseException):
                logger.error(
                    "Notification send failed within chunk",
                    chunk=chunk_number,
                    kind=kind,
                    error=str(result),
                    exc_type=type(result).__name__,
                )
            elif isinstance(result, list):
                collected.extend(result)
            elif result:
                collected.append(result)
        return collected

    def _schedule_for(self, payload, decision, now):
        """The later of the caller's future schedule and the quiet-hours end."""
        candidates = [decision.deferred_until]
        requested = as_utc(payload.scheduled_for)
        if requested is not None and requested > now:
            candidates.append(requested)
        candidates = [c for c in candidates if c is not None]
        return max(candidates) if candidates else None

    async def _deliver_to(self, recipient, payload) -> str | None:
        now = self.clock()
        # Preference reads and record writes block, so they run on a worker thread
        decision = await asyncio.to_thread(
            self.gate.evaluate, recipient, payload.channels, payload.type, payload.priority, now=now
        )
        if not decision.channels:
            logger.info(
                "No channels left after preferences",
                recipient=recipient.key,
                notification_type=payload.type,
            )
            return None

        scheduled_for = self._schedule_for(payload, decision, now)
        metadata = payload.metadata
        source = None
        if metadata is not None:
            source = NotificationSource(
                resource_type=metadata.resource_type,
                resource_id=metadata.resource_id,
                branch_id=metadata.branch_id,
                triggered_by=metadata.triggered_by,
                triggered_by_action=metadata.triggered_by_action,
            )

        notification = Notification.create(
            notification_type=payload.type,
            channels=decision.channels,
            template_id=payload.template_id,
            priority=payload.priority,
            recipient_id=recipient.user_id,
            recipient_email=recipient.email,
            recipient_mobile=recipient.mobile,
            template_data=payload.template_data,
            subject=payload.subject,
            custom_message=payload.custom_message,
            delivery_options=payload.options.model_dump(exclude_none=True) if payload.options else None,
            source=source,
            scheduled_for=scheduled_for,
            expires_at=as_utc(metadata.expires_at) if metadata else None,
            now=now,
        )
        if scheduled_for is None:
            notification.mark_queued(now=now)

        await asyncio.to_thread(current_domain.repository_for(Notification).add, notification)

        if scheduled_for is None:
            await self.publisher.publish(notification, decision.push_tokens)
        else:
            logger.info(
                "Notification deferred",
                notification_id=str(notification.id),
                recipient=recipient.key,
                scheduled_for=scheduled_for.isoformat(),
            )

        return str(notification.id)
