import logging

import httpx

from .config import HTTP_TIMEOUT, USER_SERVICE_URL

logger = logging.getLogger(__name__)


class IdentityClient:
    """
    Read-only lookup of display attributes (name, rating) from the user
    service. Lookups are best effort: any failure yields None.
    """

    def __init__(self, base_url: str = USER_SERVICE_URL, timeout: float = HTTP_TIMEOUT, transport=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch_profile(self, user_id: str | None, request_id: str | None = None) -> dict | None:
        if not user_id:
            return None

        headers = {}
        if request_id:
            headers["X-Request-Id"] = request_id

        url = f"{self.base_url}/users/{user_id}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.get(url, headers=headers)
                resp.raise_for_status()
                data = resp.json()
        except httpx.TimeoutException:
            logger.warning("timeout fetching profile %s", user_id)
            return None
        except httpx.HTTPStatusError as e:
            logger.warning("user service returned %s for %s", e.response.status_code, user_id)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("could not fetch profile %s: %s", user_id, e)
            return None

        if not isinstance(data, dict):
            return None
        return {
            "id": user_id,
            "name": data.get("name"),
            "rating": data.get("rating"),
        }

    async def parties(self, booking, request_id: str | None = None) -> dict:
        operator = None
        if booking.operator_id and booking.operator_id != booking.provider_id:
            operator = await self.fetch_profile(booking.operator_id, request_id)
        return {
            "booking_id": booking.booking_id,
            "requester": await self.fetch_profile(booking.requester_id, request_id),
            "provider": await self.fetch_profile(booking.provider_id, request_id),
            "operator": operator,
        }
