import redis.asyncio as redis


def get_redis(redis_url: str | None):
    """
    Returns an asyncio redis client, or None when no URL is configured
    (callers treat None as "feature disabled").
    """
    if not redis_url:
        return None
    return redis.from_url(redis_url, decode_responses=True)
