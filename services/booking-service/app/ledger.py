"""
Capacity ledger: per-item available units.

Consumption is a single conditional UPDATE, so the availability check and
the decrement cannot be split by a concurrent writer. A zero rowcount means
the units were not there when the statement ran.
"""
import logging

from sqlalchemy import case, update

from .errors import InsufficientCapacity
from .models import Booking, Item

logger = logging.getLogger(__name__)


def available_units(item: Item) -> int:
    if not item.available:
        return 0
    if item.quantity_available is None:
        return 1
    return max(0, item.quantity_available)


async def consume(db, item: Item, units: int) -> None:
    if units < 1:
        raise InsufficientCapacity(f"Cannot reserve {units} units")

    if item.quantity_available is None:
        if units != 1:
            raise InsufficientCapacity(f"Item {item.item_id} is a single unit; {units} requested")
        stmt = (
            update(Item)
            .where(Item.item_id == item.item_id, Item.available.is_(True))
            .values(available=False)
        )
    else:
        remaining = Item.quantity_available - units
        stmt = (
            update(Item)
            .where(
                Item.item_id == item.item_id,
                Item.available.is_(True),
                Item.quantity_available >= units,
            )
            .values(
                quantity_available=remaining,
                available=case((remaining > 0, True), else_=False),
            )
        )

    res = await db.execute(stmt.execution_options(synchronize_session=False))
    if res.rowcount != 1:
        raise InsufficientCapacity(f"Item {item.item_id} does not have {units} units available")


async def release(db, item_id: str, units: int) -> None:
    if not item_id or units < 1:
        return
    restored = Item.quantity_available + units
    stmt = (
        update(Item)
        .where(Item.item_id == item_id)
        .values(
            # NULL (unit item) stays NULL
            quantity_available=restored,
            available=case(
                (Item.quantity_available.is_(None), True),
                (restored > 0, True),
                else_=Item.available,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    await db.execute(stmt)


async def release_hold(db, booking: Booking) -> dict:
    """
    Give back everything `booking` holds: its reserved units on the bound
    item and the driver taken by an operator hand-off. Returns the booking
    column values the caller must write alongside its status change.
    """
    if booking.reserved_units:
        await release(db, booking.item_id, booking.reserved_units)
        logger.info("released %s unit(s) of item %s from booking %s", booking.reserved_units, booking.item_id, booking.booking_id)
    if booking.operator_item_id:
        await release(db, booking.operator_item_id, 1)
    return {"reserved_units": 0}


async def resize(db, item: Item, capacity: int) -> None:
    """
    Change the total units of a quantity item. Only the difference is
    applied to `quantity_available`, so units held by bookings stay held.
    Shrinking below what is currently reserved raises InsufficientCapacity.
    """
    if item.quantity_available is None:
        raise InsufficientCapacity(f"Item {item.item_id} is a single unit and has no capacity to resize")
    if capacity < 0:
        raise InsufficientCapacity(f"Capacity cannot be negative, got {capacity}")

    current = item.capacity if item.capacity is not None else item.quantity_available
    delta = capacity - current
    if delta == 0:
        return

    remaining = Item.quantity_available + delta
    guard = Item.capacity.is_(None) if item.capacity is None else Item.capacity == item.capacity
    stmt = (
        update(Item)
        .where(Item.item_id == item.item_id, guard, remaining >= 0)
        .values(
            capacity=capacity,
            quantity_available=remaining,
            available=case((remaining > 0, True), else_=False),
        )
        .execution_options(synchronize_session=False)
    )
    res = await db.execute(stmt)
    if res.rowcount != 1:
        raise InsufficientCapacity(
            f"Item {item.item_id} has units reserved by bookings; capacity cannot drop to {capacity}"
        )
    logger.info("item %s capacity %s -> %s", item.item_id, current, capacity)
