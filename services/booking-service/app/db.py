from shared.database import Base, get_engine, get_session

from .config import BOOKING_DB

if not BOOKING_DB:
    raise RuntimeError("BOOKING_DB environment variable is not set")

engine = get_engine(BOOKING_DB)

SessionLocal = get_session(engine)

__all__ = ["Base", "engine", "SessionLocal"]
