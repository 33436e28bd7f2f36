"""Active-user directory port.

The directory belongs to the surrounding POS system (users, roles and
branches). The dispatch engine only reads it to resolve recipients.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class DirectoryUser:
    user_id: str
    email: str | None = None
    mobile: str | None = None
    roles: tuple[str, ...] = ()
    branch_ids: tuple[str, ...] = ()
    is_active: bool = True


class UserDirectory(ABC):
    """Lookups over active users. Inactive users are never returned."""

    @abstractmethod
    async def find_by_ids(self, user_ids: list[str]) -> list[DirectoryUser]: ...

    @abstractmethod
    async def find_by_roles(self, roles: list[str]) -> list[DirectoryUser]: ...

    @abstractmethod
    async def find_by_branch(self, branch_id: str) -> list[DirectoryUser]: ...


@dataclass
class InMemoryUserDirectory(UserDirectory):
    """Directory backed by a dict, for tests and local runs."""

    users: dict[str, DirectoryUser] = field(default_factory=dict)

    def add(self, user: DirectoryUser) -> DirectoryUser:
        self.users[user.user_id] = user
        return user

    def _active(self):
        return [u for u in self.users.values() if u.is_active]

    async def find_by_ids(self, user_ids):
        wanted = set(user_ids)
        return [u for u in self._active() if u.user_id in wanted]

    async def find_by_roles(self, roles):
        wanted = set(roles)
        return [u for u in self._active() if wanted.intersection(u.roles)]

    async def find_by_branch(self, branch_id):
        return [u for u in self._active() if branch_id in u.branch_ids]
