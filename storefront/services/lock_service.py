import redis
from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

#LUA compare and delete, atomic
_RELEASE_LUA = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
else
    return 0
end
"""

#redis runs the lua script as one uninterruptible operation
#nobody can get between GET and DEL, so a lock is only released by its owner


class LockService:
    """
    -merge lock per guest cart (two logins cannot merge the same guest cart)
    -releasing the lock
    -atomicity via lua
    """

    def __init__(self, url: str | None = None):
        self.redis = redis.Redis.from_url(
            url or REDIS_URL,
            decode_responses=True,
        )

    @staticmethod
    def _merge_key(guest_cart_id: int) -> str:
        return f"cart:{guest_cart_id}:merge"

    @redis_retry()
    def acquire_merge_lock(self, guest_cart_id: int, user_id: int, ttl: int) -> bool:
        key = self._merge_key(guest_cart_id)
        logger.info(f"Acquire lock {key} for user {user_id}")
        #SET cart:1:merge "42" NX EX 30
        return bool(
            self.redis.set(
                name=key,
                value=str(user_id),
                nx=True, #only if the key does not exist yet
                ex=ttl, #expires by itself if the holder dies
            )
        )

    @redis_retry()
    def release_merge_lock(self, guest_cart_id: int, user_id: int) -> bool:
        key = self._merge_key(guest_cart_id)
        logger.info(f"Release lock {key} for user {user_id}")
        res = self.redis.eval(_RELEASE_LUA, 1, key, str(user_id))
        return bool(res)
