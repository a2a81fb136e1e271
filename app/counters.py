"""
Windowed counters kept in Redis.

Each counter key expires `window_minutes` after its last increment, so a burst
of failed logins or forced-completion clicks is forgotten once it goes quiet.
"""
from app.config import settings
from app.redis_client import get_redis_client


class RedisCounter:
    """Per-identifier counter with a sliding expiry and a limit"""

    def __init__(self, prefix: str, window_minutes: int, limit: int):
        self.prefix = prefix
        self.window_minutes = window_minutes
        self.limit = limit

    @property
    def redis(self):
        return get_redis_client()

    def _get_key(self, identifier) -> str:
        return f"{self.prefix}:{identifier}"

    def increment(self, identifier) -> int:
        """Record one hit and return the running count"""
        key = self._get_key(identifier)
        pipe = self.redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_minutes * 60)
        result = pipe.execute()
        return int(result[0])

    def get(self, identifier) -> int:
        value = self.redis.get(self._get_key(identifier))
        return int(value) if value else 0

    def reached(self, identifier) -> bool:
        return self.get(identifier) >= self.limit

    def remaining(self, count: int) -> int:
        return max(0, self.limit - count)

    def reset(self, identifier):
        self.redis.delete(self._get_key(identifier))


# Failed logins per email; the email is blocked once the limit is reached
login_failures = RedisCounter(
    "rate_limit:login",
    settings.rate_limit_window_minutes,
    settings.rate_limit_failed_logins,
)

# Forced-completion requests per order id
force_complete_clicks = RedisCounter(
    "force_complete:clicks",
    settings.force_complete_window_minutes,
    settings.force_complete_clicks,
)
