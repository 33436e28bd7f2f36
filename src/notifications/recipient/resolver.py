"""Recipient resolution: turn a recipient spec into concrete contacts."""

from dataclasses import dataclass

import structlog
from protean.exceptions import ValidationError

from notifications.recipient.directory import DirectoryUser, UserDirectory

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Recipient:
    """A resolved contact. ``user_id`` is None for guests."""

    user_id: str | None
    email: str | None = None
    mobile: str | None = None

    @property
    def is_guest(self):
        return self.user_id is None

    @property
    def key(self):
        # Guests are keyed by contact so distinct guests are never merged
        if self.is_guest:
            return f"guest:{self.email or ''}|{self.mobile or ''}"
        return self.user_id

    @classmethod
    def from_user(cls, user: DirectoryUser) -> "Recipient":
        return cls(user_id=user.user_id, email=user.email, mobile=user.mobile)


class RecipientResolver:
    """Resolves each populated field of a recipient spec independently and unions the results."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    async def resolve(self, spec) -> list[Recipient]:
        users: list[DirectoryUser] = []

        user_ids = [*([spec.user_id] if spec.user_id else []), *(spec.user_ids or [])]
        if user_ids:
            users.extend(await self.directory.find_by_ids(user_ids))

        roles = [*([spec.role] if spec.role else []), *(spec.roles or [])]
        if roles:
            users.extend(await self.directory.find_by_roles(roles))

        if spec.branch_id:
            users.extend(await self.directory.find_by_branch(spec.branch_id))

        recipients = [Recipient.from_user(u) for u in users]
        if spec.email or spec.mobile:
            recipients.append(Recipient(user_id=None, email=spec.email, mobile=spec.mobile))

        seen: dict[str, Recipient] = {}
        for recipient in recipients:
            seen.setdefault(recipient.key, recipient)
        unique = list(seen.values())

        logger.debug("Recipients resolved", requested=spec.model_dump(exclude_none=True), resolved=len(unique))
        return unique

    async def resolve_or_raise(self, spec) -> list[Recipient]:
        recipients = await self.resolve(spec)
        if not recipients:
            raise ValidationError({"recipients": ["No valid recipients found"]})
        return recipients
