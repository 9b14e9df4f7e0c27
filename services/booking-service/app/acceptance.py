"""
Acceptance / matching engine.

Binds an open request to a concrete provider and item. Three shapes are
handled:

  - an `Awaiting Operator` booking taken by a driver (operator hand-off)
  - a `Pending Confirmation` direct request confirmed by its bound provider
  - an open `Searching` broadcast, which may hand the job to a separate
    operator, confirm it whole, or split off a partially fulfilled sibling

The booking compare-and-set, the capacity decrement and the sibling insert
run in one transaction. Rejections come back as an AcceptanceResult with a
failure kind rather than as exceptions.
"""
import logging
from dataclasses import dataclass, field

from . import ledger, store
from .catalog import MACHINE_CATEGORIES, OPERATOR_CATEGORY, allows_purpose, parse_category
from .config import DISTANCE_RATE_PER_KM
from .errors import BookingError, ErrorKind, InsufficientCapacity, InvalidRequest, InvalidStateTransition
from .models import Booking, Item
from .pricing import distance_charge, estimate_price
from .states import OPEN_FOR_ACCEPTANCE, BookingStatus

logger = logging.getLogger(__name__)


@dataclass
class AcceptOptions:
    operate_self: bool | None = None
    quantity_to_provide: int | None = None


@dataclass
class AcceptanceResult:
    accepted: bool
    booking: Booking | None = None
    sibling: Booking | None = None
    failure: ErrorKind | None = None
    detail: str | None = None

    @classmethod
    def rejected(cls, error: BookingError) -> "AcceptanceResult":
        return cls(accepted=False, failure=error.kind, detail=error.detail)


@dataclass
class _Outcome:
    previous_status: str
    sibling_id: str | None = None
    messages: list = field(default_factory=list)


def _needs_operator(booking: Booking) -> bool:
    return parse_category(booking.item_category) in MACHINE_CATEGORIES and bool(booking.operator_required)


class AcceptanceEngine:
    def __init__(self, sessions, notifier, rate_per_km: float = DISTANCE_RATE_PER_KM):
        self.sessions = sessions
        self.notifier = notifier
        self.rate_per_km = rate_per_km

    async def accept(
        self,
        booking_id: str,
        provider_id: str,
        item_id: str,
        options: AcceptOptions | None = None,
    ) -> AcceptanceResult:
        options = options or AcceptOptions()
        try:
            async with self.sessions() as db:
                async with db.begin():
                    booking = await store.get_booking(db, booking_id)
                    item = await store.get_item(db, item_id)
                    outcome = await self._apply(db, booking, item, provider_id, options)

                booking = await store.get_booking(db, booking_id, fresh=True)
                sibling = None
                if outcome.sibling_id:
                    sibling = await store.get_booking(db, outcome.sibling_id, fresh=True)
        except BookingError as e:
            logger.info(
                "accept rejected booking=%s provider=%s item=%s kind=%s: %s",
                booking_id, provider_id, item_id, e.kind.value, e.detail,
            )
            return AcceptanceResult.rejected(e)

        logger.info(
            "accepted booking=%s provider=%s item=%s status=%s sibling=%s",
            booking_id, provider_id, item_id, booking.status, outcome.sibling_id,
        )
        if sibling is not None:
            await self.notifier.transition(booking, outcome.previous_status)
            await self.notifier.transition(sibling, None, outcome.messages)
        else:
            await self.notifier.transition(booking, outcome.previous_status, outcome.messages)
        return AcceptanceResult(accepted=True, booking=booking, sibling=sibling)

    async def _apply(self, db, booking: Booking, item: Item, provider_id: str, options: AcceptOptions) -> _Outcome:
        status = BookingStatus(booking.status)
        if status not in OPEN_FOR_ACCEPTANCE:
            raise InvalidStateTransition("This job is no longer available")
        if item.owner_id != provider_id:
            raise InvalidRequest(f"Item {item.item_id} does not belong to provider {provider_id}")
        if not item.available:
            raise InsufficientCapacity("Selected item is not available")

        if status == BookingStatus.AWAITING_OPERATOR:
            return await self._hand_off_operator(db, booking, item, provider_id)
        if status == BookingStatus.PENDING_CONFIRMATION:
            return await self._confirm_direct(db, booking, item, provider_id)
        return await self._accept_broadcast(db, booking, item, provider_id, options)

    async def _hand_off_operator(self, db, booking: Booking, item: Item, provider_id: str) -> _Outcome:
        if parse_category(item.category) != OPERATOR_CATEGORY:
            raise InvalidStateTransition("Booking is waiting for an operator; only drivers can take it")

        await store.compare_and_set(
            db,
            booking,
            BookingStatus.CONFIRMED,
            operator_id=provider_id,
            operator_item_id=item.item_id,
        )
        await ledger.consume(db, item, 1)

        messages = [(booking.requester_id, "An operator has been found for your booking!")]
        if booking.provider_id:
            messages.append(
                (booking.provider_id, f"A driver has accepted the operator job for booking {booking.booking_id}.")
            )
        return _Outcome(previous_status=booking.status, messages=messages)

    async def _confirm_direct(self, db, booking: Booking, item: Item, provider_id: str) -> _Outcome:
        if booking.provider_id != provider_id or booking.item_id != item.item_id:
            raise InvalidRequest("Only the requested provider and item can confirm a direct request")
        self._require_purpose(booking, item)

        units = booking.quantity or 1
        if ledger.available_units(item) < units:
            raise InsufficientCapacity("Selected item does not have enough quantity")

        needs_operator = _needs_operator(booking)
        await store.compare_and_set(
            db,
            booking,
            BookingStatus.CONFIRMED,
            operator_id=provider_id if needs_operator else None,
            reserved_units=units,
            **self._binding_values(booking, item),
        )
        await ledger.consume(db, item, units)
        return _Outcome(
            previous_status=booking.status,
            messages=[(booking.requester_id, f"Your request for {item.name} has been confirmed!")],
        )

    async def _accept_broadcast(
        self, db, booking: Booking, item: Item, provider_id: str, options: AcceptOptions
    ) -> _Outcome:
        if item.category != booking.item_category:
            raise InvalidRequest(f"Item category {item.category} does not match {booking.item_category}")
        self._require_purpose(booking, item)

        needs_operator = _needs_operator(booking)

        if needs_operator and options.operate_self is False:
            await store.compare_and_set(
                db,
                booking,
                BookingStatus.AWAITING_OPERATOR,
                provider_id=provider_id,
                item_id=item.item_id,
                reserved_units=1,
                **self._binding_values(booking, item),
            )
            await ledger.consume(db, item, 1)
            return _Outcome(
                previous_status=booking.status,
                messages=[
                    (booking.requester_id, f"{item.name} is confirmed for your booking. We are now finding a driver.")
                ],
            )

        if booking.quantity is None and options.quantity_to_provide not in (None, 1):
            raise InvalidRequest("This request does not ask for a quantity")

        to_confirm = options.quantity_to_provide if options.quantity_to_provide is not None else (booking.quantity or 1)
        if to_confirm < 1:
            raise InvalidRequest("Quantity to provide must be at least 1")
        if booking.quantity is not None and to_confirm > booking.quantity:
            raise InvalidRequest(f"Only {booking.quantity} units were requested")
        if ledger.available_units(item) < to_confirm:
            raise InsufficientCapacity("Selected item does not have enough quantity")

        partial = booking.quantity is not None and to_confirm < booking.quantity
        if partial and not booking.allow_multiple_suppliers:
            raise InvalidRequest("This request must be fulfilled by a single supplier")

        operator_id = provider_id if needs_operator else None
        messages = [(booking.requester_id, f"Your request for {item.name} has been confirmed!")]

        if partial:
            sibling_values = store.inherited_values(booking)
            sibling_values.update(
                provider_id=provider_id,
                item_id=item.item_id,
                quantity=to_confirm,
                allow_multiple_suppliers=False,
                operator_id=operator_id,
                reserved_units=to_confirm,
                parent_booking_id=booking.booking_id,
                status=BookingStatus.CONFIRMED,
            )
            sibling_values.update(self._binding_values(booking, item))

            await store.compare_and_set(db, booking, quantity=booking.quantity - to_confirm)
            sibling = await store.insert_booking(db, **sibling_values)
            await ledger.consume(db, item, to_confirm)
            return _Outcome(previous_status=booking.status, sibling_id=sibling.booking_id, messages=messages)

        await store.compare_and_set(
            db,
            booking,
            BookingStatus.CONFIRMED,
            provider_id=provider_id,
            item_id=item.item_id,
            operator_id=operator_id,
            reserved_units=to_confirm,
            **self._binding_values(booking, item),
        )
        await ledger.consume(db, item, to_confirm)
        return _Outcome(previous_status=booking.status, messages=messages)

    @staticmethod
    def _require_purpose(booking: Booking, item: Item):
        offered = {p.get("name") for p in item.purposes or []}
        if booking.work_purpose not in offered:
            raise InvalidRequest("The selected item does not support the requested work purpose")
        category = parse_category(booking.item_category)
        if category is not None and not allows_purpose(category, booking.work_purpose):
            raise InvalidRequest(f"{booking.work_purpose} is not offered for {booking.item_category}")

    def _binding_values(self, booking: Booking, item: Item) -> dict:
        """
        Values frozen once a concrete item is bound: the travel surcharge
        (kept if the request flow already set one) and the quote.
        """
        values = {}
        charge = booking.distance_charge
        if charge is None:
            charge = distance_charge(
                booking.item_category,
                booking.requester_latitude,
                booking.requester_longitude,
                item.latitude,
                item.longitude,
                rate_per_km=self.rate_per_km,
            )
            values["distance_charge"] = charge
        if booking.estimated_duration_hours:
            values["estimated_price"] = estimate_price(
                category=booking.item_category,
                estimated_duration_hours=booking.estimated_duration_hours,
                purposes=item.purposes,
                work_purpose=booking.work_purpose,
                operator_required=booking.operator_required,
                operator_charge=item.operator_charge,
                distance_charge=charge,
            ).total
        return values
