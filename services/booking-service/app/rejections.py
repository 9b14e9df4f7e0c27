from .config import REJECTION_WINDOW_SECONDS


def _key(provider_id: str) -> str:
    return f"direct_rejections:{provider_id}"


async def record_rejection(redis_client, provider_id: str, window_seconds: int = REJECTION_WINDOW_SECONDS) -> int:
    """
    Count a direct-request rejection for `provider_id`. The window opens on
    the first rejection and closes `window_seconds` later. Returns the count
    inside the current window, or 0 when tracking is disabled.
    """
    if redis_client is None or not provider_id:
        return 0
    key = _key(provider_id)
    count = await redis_client.incr(key)
    if count == 1:
        await redis_client.expire(key, window_seconds)
    return count
