import pytest

from app.notifications import (
    ADMIN_RECIPIENT,
    NOTIFICATION_ROUTING_KEY,
    STATUS_CHANGED_ROUTING_KEY,
    Notifier,
    short_id,
)


class ExplodingPublisher:
    async def publish(self, routing_key, body):
        raise ConnectionError("broker down")


class Booking:
    booking_id = "abcdef-123"
    status = "Confirmed"
    version = 2
    requester_id = "farmer-1"
    provider_id = "supplier-1"
    item_id = "tractor-x"


class TestNotifier:
    def test_short_id(self):
        assert short_id("abcdef-123") == "abcde"

    @pytest.mark.asyncio
    async def test_transition_publishes_change_then_messages(self, publisher):
        notifier = Notifier(publisher)

        await notifier.transition(Booking, "Searching", [("farmer-1", "hello"), ("supplier-1", "hi")])

        keys = [key for key, _ in publisher.published]
        assert keys == [STATUS_CHANGED_ROUTING_KEY, NOTIFICATION_ROUTING_KEY, NOTIFICATION_ROUTING_KEY]
        change = publisher.status_changes()[0]
        assert change["previous_status"] == "Searching"
        assert change["status"] == "Confirmed"
        assert change["version"] == 2
        envelope = publisher.published[0][1]
        assert envelope["event_type"] == STATUS_CHANGED_ROUTING_KEY
        assert envelope["event_id"]
        assert envelope["occurred_at"]
        assert envelope["source"] == "booking-service"

    @pytest.mark.asyncio
    async def test_empty_recipient_is_skipped(self, publisher):
        await Notifier(publisher).notify(None, "nobody home")

        assert publisher.published == []

    @pytest.mark.asyncio
    async def test_admin_notifications(self, publisher):
        await Notifier(publisher).notify_admins("look at this")

        [note] = publisher.notifications(ADMIN_RECIPIENT)
        assert note["category"] == "admin"

    @pytest.mark.asyncio
    async def test_broker_failure_is_swallowed(self):
        notifier = Notifier(ExplodingPublisher())

        await notifier.transition(Booking, "Searching", [("farmer-1", "hello")])
