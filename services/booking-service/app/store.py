"""
Persistence helpers for bookings and items.

Every booking write goes through `compare_and_set`, which only lands when the
row still carries the status and version the caller read. Callers run these
inside one `session.begin()` block so a failed guard rolls back everything
written earlier in the same unit of work.
"""
import uuid

from sqlalchemy import func, select, update

from .errors import NotFound, StaleWrite
from .models import Booking, Item
from .states import BookingStatus, assert_transition

# columns a split sibling inherits from the booking it was carved out of
_NOT_INHERITED = {"id", "booking_id", "version", "status", "created_at", "updated_at"}
_LEDGER_COLUMNS = frozenset({"available", "quantity_available", "capacity"})


def new_booking_id() -> str:
    return str(uuid.uuid4())


async def get_booking(db, booking_id: str, fresh: bool = False) -> Booking:
    stmt = select(Booking).where(Booking.booking_id == booking_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    res = await db.execute(stmt)
    booking = res.scalar_one_or_none()
    if not booking:
        raise NotFound(f"Booking {booking_id} not found")
    return booking


async def find_item(db, item_id: str, fresh: bool = False) -> Item | None:
    stmt = select(Item).where(Item.item_id == item_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    res = await db.execute(stmt)
    return res.scalar_one_or_none()


async def get_item(db, item_id: str, fresh: bool = False) -> Item:
    item = await find_item(db, item_id, fresh=fresh)
    if not item:
        raise NotFound(f"Item {item_id} not found")
    return item


async def list_bookings(
    db,
    statuses=None,
    requester_id: str | None = None,
    provider_id: str | None = None,
    item_id: str | None = None,
) -> list[Booking]:
    stmt = select(Booking)
    if statuses:
        stmt = stmt.where(Booking.status.in_([BookingStatus(s).value for s in statuses]))
    if requester_id:
        stmt = stmt.where(Booking.requester_id == requester_id)
    if provider_id:
        stmt = stmt.where(Booking.provider_id == provider_id)
    if item_id:
        stmt = stmt.where(Booking.item_id == item_id)
    stmt = stmt.order_by(Booking.id).execution_options(populate_existing=True)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def insert_booking(db, **values) -> Booking:
    values.setdefault("booking_id", new_booking_id())
    values["version"] = 1
    status = values.get("status")
    if isinstance(status, BookingStatus):
        values["status"] = status.value
    booking = Booking(**values)
    db.add(booking)
    await db.flush()
    return booking


def inherited_values(booking: Booking) -> dict:
    return {
        col.name: getattr(booking, col.name)
        for col in Booking.__table__.columns
        if col.name not in _NOT_INHERITED
    }


async def compare_and_set(db, booking: Booking, status: BookingStatus | None = None, **values) -> None:
    """
    Write `values` (and optionally a new status) only if the stored row still
    has the status and version `booking` was read with. Raises
    InvalidStateTransition for an illegal target and StaleWrite when another
    writer got there first.
    """
    if status is not None:
        values["status"] = assert_transition(booking.status, status).value

    stmt = (
        update(Booking)
        .where(
            Booking.booking_id == booking.booking_id,
            Booking.status == booking.status,
            Booking.version == booking.version,
        )
        .values(version=Booking.version + 1, updated_at=func.now(), **values)
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    if res.rowcount != 1:
        raise StaleWrite(f"Booking {booking.booking_id} changed while it was being updated")


async def insert_item(db, item_id: str, **values) -> Item:
    item = Item(item_id=item_id, **values)
    db.add(item)
    await db.flush()
    return item


async def update_listing(db, item: Item, **values) -> Item:
    """
    Rewrite the descriptive columns of a listed item. The ledger columns
    (`available`, `quantity_available`, `capacity`) belong to ledger.py and
    are refused here.
    """
    ledger_columns = _LEDGER_COLUMNS.intersection(values)
    if ledger_columns:
        raise ValueError(f"ledger columns cannot be written as listing data: {sorted(ledger_columns)}")
    for key, value in values.items():
        setattr(item, key, value)
    await db.flush()
    return item
