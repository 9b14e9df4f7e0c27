import json

IDEMPOTENCY_TTL_SECONDS = 60 * 60 * 24


def _key(scope: str, idempotency_key: str) -> str:
    return f"idempotency:{scope}:{idempotency_key}"


async def get_cached_response(redis_client, scope: str, idempotency_key: str) -> dict | None:
    if redis_client is None or not idempotency_key:
        return None
    raw = await redis_client.get(_key(scope, idempotency_key))
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


async def store_response(
    redis_client,
    scope: str,
    idempotency_key: str,
    body: dict,
    ttl_seconds: int = IDEMPOTENCY_TTL_SECONDS,
):
    if redis_client is None or not idempotency_key:
        return
    await redis_client.set(_key(scope, idempotency_key), json.dumps(body, default=str), ex=ttl_seconds)
