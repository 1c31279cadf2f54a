"""
Utility functions for caching using Upstash Redis.
"""
import json
import logging

import redis_config

logger = logging.getLogger(__name__)


def set_cache(key: str, value, ttl: int = 3600):
    """
    Set a value in the Redis cache with an optional TTL (time-to-live).

    Args:
        key (str): The key under which the value will be stored.
        value: The value to be cached.
        ttl (int): Time-to-live in seconds (default: 3600 seconds / 1 hour).
    """
    if redis_config.redis_client is None:
        return False
    try:
        # Convert the value to a JSON string if it's not already a string
        if not isinstance(value, str):
            value = json.dumps(value)

        redis_config.redis_client.set(key, value, ex=ttl)
        return True
    except Exception as e:
        logger.warning(f"Error setting cache for key {key}: {e}")
        return False


def get_cache(key: str):
    """
    Retrieve a value from the Redis cache.

    Args:
        key (str): The key for the cached value.

    Returns:
        The cached value if found, otherwise None.
    """
    if redis_config.redis_client is None:
        return None
    try:
        value = redis_config.redis_client.get(key)
        if value is not None:
            # Attempt to parse the value as JSON
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                return value
        return None
    except Exception as e:
        logger.warning(f"Error getting cache for key {key}: {e}")
        return None


def delete_cache(key: str):
    """
    Delete a value from the Redis cache.

    Args:
        key (str): The key for the cached value to delete.

    Returns:
        True if the key was deleted, False otherwise.
    """
    if redis_config.redis_client is None:
        return False
    try:
        redis_config.redis_client.delete(key)
        return True
    except Exception as e:
        logger.warning(f"Error deleting cache for key {key}: {e}")
        return False
