import pytest
import redis

from storefront.services.lock_service import LockService
from storefront.services.notification_service import NotificationService, send_order_notification_task


class FakeRedis:
    """Just enough of SET NX EX and the compare-and-delete script."""

    def __init__(self):
        self.data = {}
        self.ttl = {}
        self.failures = 0

    def set(self, name, value, nx=False, ex=None):
        if self.failures:
            self.failures -= 1
            raise redis.ConnectionError("connection reset")
        if nx and name in self.data:
            return None
        self.data[name] = value
        self.ttl[name] = ex
        return True

    def eval(self, script, numkeys, key, owner):
        if self.data.get(key) == owner:
            del self.data[key]
            return 1
        return 0


@pytest.fixture
def locks():
    service = LockService("redis://localhost:6379/0")
    service.redis = FakeRedis()
    return service


def test_merge_lock_is_exclusive(locks):
    assert locks.acquire_merge_lock(5, 1, 30) is True
    assert locks.acquire_merge_lock(5, 2, 30) is False
    assert locks.redis.data == {"cart:5:merge": "1"}
    assert locks.redis.ttl["cart:5:merge"] == 30


def test_only_the_holder_releases(locks):
    locks.acquire_merge_lock(5, 1, 30)

    assert locks.release_merge_lock(5, 2) is False
    assert locks.release_merge_lock(5, 1) is True
    assert locks.acquire_merge_lock(5, 2, 30) is True


def test_transient_redis_errors_are_retried(locks):
    locks.redis.failures = 2
    assert locks.acquire_merge_lock(5, 1, 30) is True


def test_notification_task_runs_inline():
    result = send_order_notification_task.delay(1, "ORD-1-ABCD", "placed")

    assert result.get() == {
        "user_id": 1,
        "order_number": "ORD-1-ABCD",
        "event": "placed",
        "status": "sent",
    }

    # fire and forget from the service side
    assert NotificationService().send_order_notification(1, "ORD-1-ABCD", "cancelled") is None
