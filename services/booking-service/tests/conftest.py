"""
Shared fixtures: a throwaway SQLite database per test, a publisher that
records what would have gone to RabbitMQ and an in-memory Redis stand-in.
"""
import json
import os
from datetime import datetime, timedelta, timezone

os.environ.setdefault("BOOKING_DB", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio

from shared.database import create_schema, get_engine, get_session

from app.acceptance import AcceptanceEngine
from app.lifecycle import BookingLifecycle
from app.notifications import NOTIFICATION_ROUTING_KEY, STATUS_CHANGED_ROUTING_KEY, Notifier
from app.verification import WorkVerificationGate

NOW = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc)


class FakePublisher:
    enabled = True

    def __init__(self):
        self.published = []

    async def publish(self, routing_key: str, body: str):
        self.published.append((routing_key, json.loads(body)))

    def notifications(self, recipient_id=None):
        return [
            payload["data"]
            for key, payload in self.published
            if key == NOTIFICATION_ROUTING_KEY
            and (recipient_id is None or payload["data"]["recipient_id"] == recipient_id)
        ]

    def status_changes(self, booking_id=None):
        return [
            payload["data"]
            for key, payload in self.published
            if key == STATUS_CHANGED_ROUTING_KEY
            and (booking_id is None or payload["data"]["booking_id"] == booking_id)
        ]


class FakeRedis:
    def __init__(self):
        self.values = {}
        self.ttls = {}

    async def get(self, key):
        return self.values.get(key)

    async def set(self, key, value, ex=None):
        self.values[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def incr(self, key):
        self.values[key] = int(self.values.get(key, 0)) + 1
        return self.values[key]

    async def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    async def aclose(self):
        pass


class FakeClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta):
        self.now = self.now + timedelta(**delta)
        return self.now


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = get_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookings.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def sessions(engine):
    return get_session(engine)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def notifier(publisher):
    return Notifier(publisher)


@pytest.fixture
def lifecycle(sessions, notifier, clock, fake_redis):
    return BookingLifecycle(sessions, notifier, clock=clock, redis_client=fake_redis)


@pytest.fixture
def acceptance(sessions, notifier):
    return AcceptanceEngine(sessions, notifier)


@pytest.fixture
def verification(sessions, notifier, clock):
    return WorkVerificationGate(sessions, notifier, clock=clock, code_factory=lambda: "482913")


async def add_item(lifecycle, item_id, **overrides):
    values = {
        "owner_id": "supplier-1",
        "name": "Mahindra 575",
        "category": "Tractors",
        "purposes": [{"name": "Rotavator", "price": 1200}],
        "operator_charge": 300,
        "latitude": 17.385,
        "longitude": 78.4867,
    }
    values.update(overrides)
    return await lifecycle.upsert_item(item_id, **values)


async def add_booking(lifecycle, **overrides):
    values = {
        "requester_id": "farmer-1",
        "item_category": "Tractors",
        "date": "2026-03-12",
        "start_time": "09:00",
        "work_purpose": "Rotavator",
        "estimated_duration_hours": 3,
        "requester_latitude": 17.385,
        "requester_longitude": 78.4867,
    }
    values.update(overrides)
    return await lifecycle.create_booking(**values)
