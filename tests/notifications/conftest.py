from collections import defaultdict
from datetime import UTC, datetime

import pytest
from protean.integrations.pytest import DomainFixture

from notifications.recipient.directory import DirectoryUser, InMemoryUserDirectory

# 11:30 in Asia/Kolkata, outside the default 22:00-08:00 quiet hours
DAYTIME = datetime(2026, 3, 10, 6, 0, tzinfo=UTC)
# 22:30 in Asia/Kolkata, inside the default quiet hours
NIGHTTIME = datetime(2026, 3, 10, 17, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def notifications_bed():
    from notifications.domain import notifications

    bed = DomainFixture(notifications)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(notifications_bed):
    with notifications_bed.domain_context():
        yield


@pytest.fixture()
def now():
    return DAYTIME


@pytest.fixture()
def clock(now):
    """A settable wall clock: ``clock.now`` is returned until changed."""

    class _Clock:
        def __init__(self, value):
            self.now = value

        def __call__(self):
            return self.now

    return _Clock(now)


@pytest.fixture()
def directory():
    return InMemoryUserDirectory(
        users={
            "usr-cashier": DirectoryUser(
                user_id="usr-cashier",
                email="cashier@store.test",
                mobile="+919800000001",
                roles=("CASHIER",),
                branch_ids=("branch-1",),
            ),
            "usr-manager": DirectoryUser(
                user_id="usr-manager",
                email="manager@store.test",
                mobile="+919800000002",
                roles=("BRANCH_MANAGER",),
                branch_ids=("branch-1",),
            ),
            "usr-admin": DirectoryUser(
                user_id="usr-admin",
                email="admin@store.test",
                roles=("TENANT_SUPER_ADMIN",),
            ),
            "usr-other-manager": DirectoryUser(
                user_id="usr-other-manager",
                email="other@store.test",
                roles=("BRANCH_MANAGER",),
                branch_ids=("branch-2",),
            ),
            "usr-inactive": DirectoryUser(
                user_id="usr-inactive",
                email="gone@store.test",
                roles=("BRANCH_MANAGER",),
                branch_ids=("branch-1",),
                is_active=False,
            ),
        }
    )


@pytest.fixture()
def runtime(clock):
    from notifications.delivery.runtime import DeliveryRuntime
    from notifications.domain import notifications

    return DeliveryRuntime.in_memory(notifications, clock=clock)


@pytest.fixture()
def providers(runtime):
    return runtime.providers


@pytest.fixture()
def dispatcher(runtime, directory, clock):
    from notifications.notification.dispatch import NotificationDispatcher

    return NotificationDispatcher(runtime.publisher, directory, clock=clock)


class SortedSetRedis:
    """The slice of the redis client the channel queue uses, held in dicts.

    ``register_script`` only knows the queue's move script and applies it
    in Python.
    """

    def __init__(self):
        self.zsets = defaultdict(dict)
        self.counters = defaultdict(int)
        self.closed = False

    def _ordered(self, key):
        return [member for member, _ in sorted(self.zsets[key].items(), key=lambda item: (item[1], item[0]))]

    async def incr(self, key):
        self.counters[key] += 1
        return self.counters[key]

    async def zadd(self, key, mapping):
        self.zsets[key].update({member: float(score) for member, score in mapping.items()})
        return len(mapping)

    async def zrem(self, key, member):
        return 1 if self.zsets[key].pop(member, None) is not None else 0

    async def zrange(self, key, start, end):
        return self._ordered(key)[start : end + 1]

    async def zrangebyscore(self, key, min, max, start=0, num=None):
        due = [m for m in self._ordered(key) if self.zsets[key][m] <= float(max)]
        return due[start : start + num if num is not None else None]

    async def zcard(self, key):
        return len(self.zsets[key])

    def register_script(self, source):
        async def move(keys, args):
            source_key, target_key = keys
            member, score = args
            if await self.zrem(source_key, member):
                await self.zadd(target_key, {member: score})
                return 1
            return 0

        return move

    async def aclose(self):
        self.closed = True


@pytest.fixture()
def redis_client():
    return SortedSetRedis()
