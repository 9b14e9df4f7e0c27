"""
Booking lifecycle operations outside acceptance and OTP verification:
creation, rejection, cancellation, completion, payment, dispute/damage
flags and expiry.
"""
import logging

from . import ledger, store
from .catalog import QUANTITY_CATEGORIES, allows_purpose, parse_category
from .clock import utcnow
from .config import REJECTION_ALERT_THRESHOLD
from .errors import InvalidRequest, InvalidStateTransition, NotFound
from .notifications import short_id
from .pricing import amount_due, compute_final_price, validate_estimated_duration
from .rejections import record_rejection
from .states import BookingStatus, assert_transition

logger = logging.getLogger(__name__)

PAYMENT_METHODS = ("Cash", "Online")
ADMIN_COMMISSION = 0.0


class BookingLifecycle:
    def __init__(self, sessions, notifier, clock=utcnow, redis_client=None):
        self.sessions = sessions
        self.notifier = notifier
        self.clock = clock
        self.redis_client = redis_client

    # ---- queries ----

    async def get_booking(self, booking_id: str):
        async with self.sessions() as db:
            return await store.get_booking(db, booking_id)

    async def list_bookings(self, statuses=None, requester_id=None, provider_id=None, item_id=None):
        async with self.sessions() as db:
            return await store.list_bookings(
                db,
                statuses=statuses,
                requester_id=requester_id,
                provider_id=provider_id,
                item_id=item_id,
            )

    async def get_item(self, item_id: str):
        async with self.sessions() as db:
            return await store.get_item(db, item_id)

    async def upsert_item(self, item_id: str, **values):
        """
        Create a listing, or edit an existing one. On an edit, `available` is
        left to the ledger and `quantity_available` is read as the new total
        capacity; only its difference is applied, so held units stay held.
        """
        category = parse_category(values.get("category"))
        if category is None:
            raise InvalidRequest(f"Unknown item category: {values.get('category')}")
        values["category"] = category.value

        available = values.pop("available", True)
        qty = values.pop("quantity_available", None)
        values.pop("capacity", None)
        if qty is not None and qty < 0:
            raise InvalidRequest("quantity_available cannot be negative")

        async with self.sessions() as db:
            async with db.begin():
                item = await store.find_item(db, item_id)
                if item is None:
                    await store.insert_item(
                        db,
                        item_id,
                        available=bool(available) and qty != 0,
                        quantity_available=qty,
                        capacity=qty,
                        **values,
                    )
                else:
                    if (qty is None) != (item.quantity_available is None):
                        raise InvalidRequest(f"Item {item_id} cannot switch between single-unit and quantity listing")
                    await store.update_listing(db, item, **values)
                    if qty is not None:
                        await ledger.resize(db, item, qty)
            return await store.get_item(db, item_id, fresh=True)

    # ---- creation ----

    async def create_booking(
        self,
        *,
        requester_id: str,
        item_category: str,
        date: str,
        start_time: str,
        work_purpose: str,
        provider_id: str | None = None,
        item_id: str | None = None,
        quantity: int | None = None,
        estimated_duration_hours: float | None = None,
        **extra,
    ):
        category = parse_category(item_category)
        if category is None:
            raise InvalidRequest(f"Unknown item category: {item_category}")
        if not allows_purpose(category, work_purpose):
            raise InvalidRequest(f"{work_purpose} is not offered for {category.value}")
        if quantity is not None:
            if quantity < 1:
                raise InvalidRequest("Quantity must be at least 1")
            if category not in QUANTITY_CATEGORIES and quantity != 1:
                raise InvalidRequest(f"{category.value} bookings do not take a quantity")
        if estimated_duration_hours is not None:
            estimated_duration_hours = validate_estimated_duration(estimated_duration_hours)
        if bool(provider_id) != bool(item_id):
            raise InvalidRequest("A direct request needs both provider_id and item_id")

        status = BookingStatus.PENDING_CONFIRMATION if item_id else BookingStatus.SEARCHING

        async with self.sessions() as db:
            async with db.begin():
                if item_id:
                    item = await store.get_item(db, item_id)
                    if item.owner_id != provider_id or item.category != category.value:
                        raise InvalidRequest(f"Item {item_id} cannot serve this request")
                booking = await store.insert_booking(
                    db,
                    requester_id=requester_id,
                    item_category=category.value,
                    date=date,
                    start_time=start_time,
                    work_purpose=work_purpose,
                    provider_id=provider_id,
                    item_id=item_id,
                    quantity=quantity,
                    estimated_duration_hours=estimated_duration_hours,
                    status=status,
                    **extra,
                )
            booking = await store.get_booking(db, booking.booking_id, fresh=True)

        logger.info("booking %s created as %s", booking.booking_id, booking.status)
        messages = []
        if status == BookingStatus.PENDING_CONFIRMATION:
            messages.append((provider_id, f"New direct request for {category.value} on {date} at {start_time}."))
        await self.notifier.transition(booking, None, messages)
        return booking

    # ---- transitions ----

    async def reject(self, booking_id: str, provider_id: str):
        """Bound provider declines a direct request; it reopens as a broadcast."""
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                if booking.status != BookingStatus.PENDING_CONFIRMATION:
                    raise InvalidStateTransition("Cannot reject this booking.")
                if booking.provider_id != provider_id:
                    raise InvalidRequest("Only the requested provider can reject a direct request")
                previous = booking.status
                await store.compare_and_set(
                    db,
                    booking,
                    BookingStatus.SEARCHING,
                    is_rebroadcast=True,
                    provider_id=None,
                    item_id=None,
                    distance_charge=None,
                )
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info("booking %s rejected by %s; rebroadcast", booking_id, provider_id)
        await self.notifier.transition(
            booking,
            previous,
            [(
                booking.requester_id,
                "Your direct request was rejected and is now being sent to all suppliers. Prices may vary.",
            )],
        )

        count = await record_rejection(self.redis_client, provider_id)
        if count >= REJECTION_ALERT_THRESHOLD:
            await self.notifier.notify_admins(f"Supplier {provider_id} rejected multiple direct requests in 24h.")
        return booking

    async def cancel(self, booking_id: str):
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                previous = booking.status
                released = await self._release_for(db, booking, BookingStatus.CANCELLED)
                await store.compare_and_set(db, booking, BookingStatus.CANCELLED, **released)
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info("booking %s cancelled from %s", booking_id, previous)
        messages = []
        if booking.provider_id:
            messages.append((booking.provider_id, f"Booking #{short_id(booking_id)} was cancelled by the farmer."))
        if booking.operator_id and booking.operator_id != booking.provider_id:
            messages.append((booking.operator_id, f"Booking #{short_id(booking_id)} was cancelled by the farmer."))
        await self.notifier.transition(booking, previous, messages)
        return booking

    async def expire(self, booking_id: str):
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                previous = booking.status
                released = await self._release_for(db, booking, BookingStatus.EXPIRED)
                await store.compare_and_set(db, booking, BookingStatus.EXPIRED, **released)
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info("booking %s expired from %s", booking_id, previous)
        await self.notifier.transition(
            booking,
            previous,
            [(
                booking.requester_id,
                f"No supplier accepted your {booking.item_category} request for {booking.date}; it has been closed.",
            )],
        )
        await self.notifier.notify_admins(f"Booking {booking_id} expired without a confirmed supplier.")
        return booking

    async def complete_work(self, booking_id: str):
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                if booking.status != BookingStatus.IN_PROCESS or not booking.work_start_time:
                    raise InvalidStateTransition("Cannot complete work that hasn't started.")
                if not booking.item_id:
                    raise NotFound(f"Booking {booking_id} has no bound item to price")
                item = await store.get_item(db, booking.item_id)

                work_end = self.clock()
                price = compute_final_price(
                    category=item.category,
                    work_start=booking.work_start_time,
                    work_end=work_end,
                    purposes=item.purposes,
                    work_purpose=booking.work_purpose,
                    operator_required=booking.operator_required,
                    operator_charge=item.operator_charge,
                    distance_charge=booking.distance_charge,
                )
                previous = booking.status
                released = await ledger.release_hold(db, booking)
                await store.compare_and_set(
                    db,
                    booking,
                    BookingStatus.PENDING_PAYMENT,
                    work_end_time=work_end,
                    end_time=work_end.strftime("%H:%M"),
                    final_price=price.total,
                    supplier_payout=amount_due(price.total, booking.discount_amount),
                    admin_commission=ADMIN_COMMISSION,
                    **released,
                )
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info(
            "booking %s completed: %s h, final price %s", booking_id, price.duration_hours, price.total
        )
        await self.notifier.transition(
            booking,
            previous,
            [(
                booking.requester_id,
                f"Work for booking #{short_id(booking_id)} is complete. "
                f"Please complete the payment of ₹{amount_due(price.total, booking.discount_amount):,.0f}.",
            )],
        )
        return booking

    async def record_payment(self, booking_id: str, method: str = "Cash"):
        """Settle a `Pending Payment` booking. Payment itself is simulated."""
        if method not in PAYMENT_METHODS:
            raise InvalidRequest(f"Unsupported payment method: {method}")

        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                if booking.status != BookingStatus.PENDING_PAYMENT:
                    raise InvalidStateTransition("Cannot make final payment for this booking.")
                previous = booking.status
                stamp = int(self.clock().timestamp() * 1000)
                payment_id = f"cash_{stamp}" if method == "Cash" else f"final_pay_{stamp}"
                await store.compare_and_set(
                    db,
                    booking,
                    BookingStatus.COMPLETED,
                    payment_method=method,
                    final_payment_id=payment_id,
                    supplier_payout=amount_due(booking.final_price, booking.discount_amount),
                    admin_commission=ADMIN_COMMISSION,
                )
            booking = await store.get_booking(db, booking_id, fresh=True)

        logger.info("booking %s paid (%s)", booking_id, method)
        messages = []
        if booking.provider_id:
            messages.append((
                booking.provider_id,
                f"{method} payment received for booking #{short_id(booking_id)}.",
            ))
        await self.notifier.transition(booking, previous, messages)
        return booking

    # ---- side flags (status untouched) ----

    async def raise_dispute(self, booking_id: str):
        return await self._set_flag(
            booking_id,
            allowed=BookingStatus.COMPLETED,
            message="Dispute has been raised for booking {}. Admin will review it shortly.",
            dispute_raised=True,
        )

    async def resolve_dispute(self, booking_id: str):
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                if not booking.dispute_raised:
                    raise InvalidStateTransition("No dispute has been raised for this booking")
                if booking.dispute_resolved:
                    raise InvalidStateTransition("Dispute is already resolved")
                await store.compare_and_set(db, booking, dispute_resolved=True)
            booking = await store.get_booking(db, booking_id, fresh=True)
        await self.notifier.notify(booking.requester_id, f"Dispute for booking #{short_id(booking_id)} resolved.")
        return booking

    async def report_damage(self, booking_id: str):
        return await self._set_flag(
            booking_id,
            allowed=BookingStatus.ARRIVED,
            message="Damage reported for booking {}.",
            damage_reported=True,
        )

    async def _set_flag(self, booking_id: str, allowed: BookingStatus, message: str, **flag):
        async with self.sessions() as db:
            async with db.begin():
                booking = await store.get_booking(db, booking_id)
                if booking.status != allowed:
                    raise InvalidStateTransition(
                        f"Only possible while booking is {allowed.value}, it is {booking.status}"
                    )
                await store.compare_and_set(db, booking, **flag)
            booking = await store.get_booking(db, booking_id, fresh=True)
        await self.notifier.notify_admins(message.format(booking_id))
        return booking

    @staticmethod
    async def _release_for(db, booking, target: BookingStatus) -> dict:
        # validate before touching the ledger so an illegal move releases nothing
        assert_transition(booking.status, target)
        return await ledger.release_hold(db, booking)
