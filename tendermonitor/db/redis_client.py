"""
Reusable Redis client for the shared section cache.
"""
import redis
from tendermonitor.config import settings

def get_redis_client() -> redis.Redis:
    """
    Returns a Redis client instance connected to the configured Redis server.
    """
    return redis.Redis(
        host=settings.REDIS_HOST,
        port=settings.REDIS_PORT,
        db=settings.REDIS_DB,
        decode_responses=True  # Cache entries are stored as JSON strings
    )
