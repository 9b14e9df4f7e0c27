from shared.rabbitmq import RabbitPublisher
from shared.redis import get_redis

from .acceptance import AcceptanceEngine
from .config import RABBIT_URL, REDIS_URL, SERVICE_NAME
from .db import SessionLocal
from .identity import IdentityClient
from .lifecycle import BookingLifecycle
from .notifications import Notifier
from .sweeper import BookingSweeper
from .verification import WorkVerificationGate

publisher = RabbitPublisher(RABBIT_URL, SERVICE_NAME)
redis_client = get_redis(REDIS_URL)

notifier = Notifier(publisher)

lifecycle = BookingLifecycle(SessionLocal, notifier, redis_client=redis_client)
acceptance = AcceptanceEngine(SessionLocal, notifier)
verification = WorkVerificationGate(SessionLocal, notifier)
sweeper = BookingSweeper(SessionLocal, lifecycle, notifier)
identity = IdentityClient()
