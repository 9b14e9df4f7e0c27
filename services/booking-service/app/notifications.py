import logging

from shared.events import build_event, to_json

from .config import SERVICE_NAME

logger = logging.getLogger(__name__)

ADMIN_RECIPIENT = "admin"

NOTIFICATION_ROUTING_KEY = "notification.requested"
STATUS_CHANGED_ROUTING_KEY = "booking.status_changed"


def short_id(booking_id: str) -> str:
    return booking_id[:5]


class Notifier:
    """
    Hands lifecycle events to the message bus. Delivery is fire-and-forget:
    a broker problem is logged and never fails the booking operation that
    already committed.
    """

    def __init__(self, publisher, source: str = SERVICE_NAME):
        self.publisher = publisher
        self.source = source

    async def _publish(self, routing_key: str, data: dict):
        try:
            await self.publisher.publish(routing_key, to_json(build_event(routing_key, data, self.source)))
        except Exception as e:
            logger.warning("dropping %s event: %s", routing_key, e)

    async def notify(self, recipient_id: str | None, message: str, category: str = "booking"):
        if not recipient_id:
            return
        await self._publish(
            NOTIFICATION_ROUTING_KEY,
            {"recipient_id": recipient_id, "message": message, "category": category},
        )

    async def notify_admins(self, message: str):
        await self.notify(ADMIN_RECIPIENT, message, category="admin")

    async def status_changed(self, booking, previous_status: str | None):
        await self._publish(
            STATUS_CHANGED_ROUTING_KEY,
            {
                "booking_id": booking.booking_id,
                "previous_status": previous_status,
                "status": booking.status,
                "version": booking.version,
                "requester_id": booking.requester_id,
                "provider_id": booking.provider_id,
                "item_id": booking.item_id,
            },
        )

    async def transition(self, booking, previous_status: str | None, messages=()):
        """Change-feed event for `booking` plus one notification per (recipient, text)."""
        await self.status_changed(booking, previous_status)
        for recipient_id, message in messages:
            await self.notify(recipient_id, message)
