import redis
from typing import Optional

from app.config import settings

# Shared Redis client for counters and rate limits
redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """Get or create the process-wide Redis client"""
    global redis_client
    if redis_client is None:
        redis_client = redis.Redis.from_url(
            settings.redis_url,
            decode_responses=True,  # Automatically decode bytes to strings
            socket_connect_timeout=5,
            socket_timeout=5,
        )
    return redis_client


def close_redis():
    """Close Redis connection"""
    global redis_client
    if redis_client:
        redis_client.close()
        redis_client = None
