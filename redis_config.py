"""
Redis client for response caching (Upstash or any Redis URL).
Caching is disabled when REDIS_URL is not set.
"""
import redis

from config import settings

redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True) if settings.REDIS_URL else None
