import time
import redis
from typing import Optional
from loguru import logger


class Idem:
    """Redis-based guard so a retried intake webhook does not store the lead twice."""

    def __init__(self, redis_url: Optional[str] = None, prefix: str = "idem:intake"):
        self.prefix = prefix
        self._memory_keys = set()
        self.r = None

        if not redis_url:
            logger.info("No REDIS_URL configured, idempotency keys kept in memory")
            return

        try:
            self.r = redis.from_url(redis_url)
            self.r.ping()
            logger.info("Redis connection established successfully")
        except Exception as e:
            logger.error(f"Redis connection failed: {e}")
            # In-memory keys only cover this process
            self.r = None

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key}"

    def check_and_set(self, key: str, ttl: int = 86400) -> bool:
        """
        Claim a key if nobody has claimed it yet.

        Args:
            key: Client-supplied event id
            ttl: Time to live in seconds (default: 1 day)

        Returns:
            True if the key was claimed now, False if it was seen before
        """
        if not key:
            logger.warning("Empty key provided to idempotency check")
            return False

        if self.r is None:
            if key in self._memory_keys:
                return False
            self._memory_keys.add(key)
            return True

        try:
            result = self.r.set(name=self._key(key), value=int(time.time()), ex=ttl, nx=True)
            return result is True
        except Exception as e:
            logger.error(f"Idempotency check failed: {e}")
            # Fail open so submissions are not lost while Redis is down
            return True

    def release(self, key: str) -> None:
        """Forget a key, used when the guarded operation failed and may be retried."""
        if not key:
            return
        if self.r is None:
            self._memory_keys.discard(key)
            return
        try:
            self.r.delete(self._key(key))
        except Exception as e:
            logger.error(f"Failed to release idempotency key {key}: {e}")
