import asyncio

import pytest

from app.acceptance import AcceptOptions
from app.errors import BookingError, ErrorKind
from app.states import BookingStatus
from conftest import add_booking, add_item

WORKER_PURPOSES = [{"name": "Sowing", "price": 500}]


async def add_worker_gang(lifecycle, item_id="gang-1", owner_id="supplier-2", quantity=20):
    return await add_item(
        lifecycle,
        item_id,
        owner_id=owner_id,
        name="Sowing crew",
        category="Workers",
        purposes=WORKER_PURPOSES,
        operator_charge=None,
        quantity_available=quantity,
    )


class TestDirectRequest:
    @pytest.mark.asyncio
    async def test_provider_confirms_direct_request(self, lifecycle, acceptance, publisher):
        await add_item(lifecycle, "tractor-x")
        booking = await add_booking(lifecycle, provider_id="supplier-1", item_id="tractor-x")
        assert booking.status == BookingStatus.PENDING_CONFIRMATION

        result = await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x")

        assert result.accepted
        assert result.sibling is None
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.reserved_units == 1
        assert result.booking.version == booking.version + 1
        assert result.booking.distance_charge == 0
        assert result.booking.estimated_price == 1200 * 3

        item = await lifecycle.get_item("tractor-x")
        assert item.available is False

        assert publisher.notifications("farmer-1")[-1]["message"].startswith("Your request for Mahindra 575")
        change = publisher.status_changes(booking.booking_id)[-1]
        assert change["previous_status"] == "Pending Confirmation"
        assert change["status"] == "Confirmed"

    @pytest.mark.asyncio
    async def test_only_bound_provider_may_confirm(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        await add_item(lifecycle, "tractor-y", owner_id="supplier-9")
        booking = await add_booking(lifecycle, provider_id="supplier-1", item_id="tractor-x")

        result = await acceptance.accept(booking.booking_id, "supplier-9", "tractor-y")

        assert not result.accepted
        assert result.failure == ErrorKind.INVALID_REQUEST
        assert (await lifecycle.get_booking(booking.booking_id)).status == BookingStatus.PENDING_CONFIRMATION
        assert (await lifecycle.get_item("tractor-y")).available is True


class TestBroadcast:
    @pytest.mark.asyncio
    async def test_partial_fill_splits_off_sibling(self, lifecycle, acceptance):
        await add_worker_gang(lifecycle)
        booking = await add_booking(
            lifecycle,
            item_category="Workers",
            work_purpose="Sowing",
            quantity=10,
            allow_multiple_suppliers=True,
        )
        assert booking.status == BookingStatus.SEARCHING

        result = await acceptance.accept(
            booking.booking_id, "supplier-2", "gang-1", AcceptOptions(quantity_to_provide=4)
        )

        assert result.accepted
        assert result.booking.booking_id == booking.booking_id
        assert result.booking.status == BookingStatus.SEARCHING
        assert result.booking.quantity == 6
        assert result.booking.provider_id is None

        sibling = result.sibling
        assert sibling.booking_id != booking.booking_id
        assert sibling.status == BookingStatus.CONFIRMED
        assert sibling.quantity == 4
        assert sibling.reserved_units == 4
        assert sibling.provider_id == "supplier-2"
        assert sibling.item_id == "gang-1"
        assert sibling.parent_booking_id == booking.booking_id
        assert sibling.requester_id == booking.requester_id
        assert sibling.allow_multiple_suppliers is False

        item = await lifecycle.get_item("gang-1")
        assert item.quantity_available == 16
        assert item.available is True

    @pytest.mark.asyncio
    async def test_remaining_quantity_can_be_filled_by_another_supplier(self, lifecycle, acceptance):
        await add_worker_gang(lifecycle)
        await add_worker_gang(lifecycle, item_id="gang-2", owner_id="supplier-3", quantity=6)
        booking = await add_booking(
            lifecycle, item_category="Workers", work_purpose="Sowing", quantity=10, allow_multiple_suppliers=True
        )

        await acceptance.accept(booking.booking_id, "supplier-2", "gang-1", AcceptOptions(quantity_to_provide=4))
        result = await acceptance.accept(booking.booking_id, "supplier-3", "gang-2")

        assert result.accepted
        assert result.sibling is None
        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.quantity == 6
        assert result.booking.provider_id == "supplier-3"

        gang_2 = await lifecycle.get_item("gang-2")
        assert gang_2.quantity_available == 0
        assert gang_2.available is False

    @pytest.mark.asyncio
    async def test_partial_fill_needs_multiple_suppliers_allowed(self, lifecycle, acceptance):
        await add_worker_gang(lifecycle)
        booking = await add_booking(lifecycle, item_category="Workers", work_purpose="Sowing", quantity=10)

        result = await acceptance.accept(
            booking.booking_id, "supplier-2", "gang-1", AcceptOptions(quantity_to_provide=4)
        )

        assert not result.accepted
        assert result.failure == ErrorKind.INVALID_REQUEST
        assert (await lifecycle.get_item("gang-1")).quantity_available == 20
        assert (await lifecycle.get_booking(booking.booking_id)).quantity == 10

    @pytest.mark.asyncio
    async def test_cannot_provide_more_than_requested(self, lifecycle, acceptance):
        await add_worker_gang(lifecycle)
        booking = await add_booking(lifecycle, item_category="Workers", work_purpose="Sowing", quantity=3)

        result = await acceptance.accept(
            booking.booking_id, "supplier-2", "gang-1", AcceptOptions(quantity_to_provide=5)
        )

        assert result.failure == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_quantity_offer_needs_a_quantity_request(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        booking = await add_booking(lifecycle)

        result = await acceptance.accept(
            booking.booking_id, "supplier-1", "tractor-x", AcceptOptions(quantity_to_provide=3)
        )

        assert result.failure == ErrorKind.INVALID_REQUEST
        stored = await lifecycle.get_booking(booking.booking_id)
        assert stored.status == BookingStatus.SEARCHING
        assert stored.reserved_units == 0
        assert stored.quantity is None
        assert (await lifecycle.get_item("tractor-x")).available is True

    @pytest.mark.asyncio
    async def test_not_enough_units_is_insufficient_capacity(self, lifecycle, acceptance):
        await add_worker_gang(lifecycle, quantity=2)
        booking = await add_booking(lifecycle, item_category="Workers", work_purpose="Sowing", quantity=5)

        result = await acceptance.accept(booking.booking_id, "supplier-2", "gang-1")

        assert result.failure == ErrorKind.INSUFFICIENT_CAPACITY
        assert (await lifecycle.get_item("gang-1")).quantity_available == 2

    @pytest.mark.asyncio
    async def test_unavailable_item_is_insufficient_capacity(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x", available=False)
        booking = await add_booking(lifecycle)

        result = await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x")

        assert result.failure == ErrorKind.INSUFFICIENT_CAPACITY
        assert (await lifecycle.get_booking(booking.booking_id)).status == BookingStatus.SEARCHING

    @pytest.mark.asyncio
    async def test_item_must_offer_the_purpose(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x", purposes=[{"name": "Leveller", "price": 900}])
        booking = await add_booking(lifecycle)

        result = await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x")

        assert result.failure == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_item_must_belong_to_provider(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        booking = await add_booking(lifecycle)

        result = await acceptance.accept(booking.booking_id, "someone-else", "tractor-x")

        assert result.failure == ErrorKind.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_confirmed_booking_is_no_longer_available(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        await add_item(lifecycle, "tractor-y", owner_id="supplier-9")
        booking = await add_booking(lifecycle)
        await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x")

        result = await acceptance.accept(booking.booking_id, "supplier-9", "tractor-y")

        assert not result.accepted
        assert result.failure == ErrorKind.INVALID_STATE_TRANSITION
        assert result.detail == "This job is no longer available"
        assert (await lifecycle.get_item("tractor-y")).available is True

    @pytest.mark.asyncio
    async def test_unknown_booking_is_not_found(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")

        result = await acceptance.accept("missing", "supplier-1", "tractor-x")

        assert result.failure == ErrorKind.NOT_FOUND

    @pytest.mark.asyncio
    async def test_distance_charge_frozen_at_acceptance(self, lifecycle, acceptance):
        # item ~11 km north of the farm
        await add_item(lifecycle, "tractor-x", latitude=17.485, longitude=78.4867)
        booking = await add_booking(lifecycle)

        result = await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x")

        assert result.booking.distance_charge > 0
        assert result.booking.estimated_price == 1200 * 3 + result.booking.distance_charge


class TestOperatorHandOff:
    @pytest.mark.asyncio
    async def test_machine_then_driver(self, lifecycle, acceptance, publisher):
        await add_item(lifecycle, "tractor-x")
        await add_item(
            lifecycle,
            "driver-item",
            owner_id="driver-1",
            name="Ravi (driver)",
            category="Drivers",
            purposes=[{"name": "Transportation", "price": 250}],
            operator_charge=None,
        )
        booking = await add_booking(lifecycle, operator_required=True)

        first = await acceptance.accept(
            booking.booking_id, "supplier-1", "tractor-x", AcceptOptions(operate_self=False)
        )
        assert first.accepted
        assert first.booking.status == BookingStatus.AWAITING_OPERATOR
        assert first.booking.provider_id == "supplier-1"
        assert first.booking.operator_id is None
        machine_before = await lifecycle.get_item("tractor-x")
        assert machine_before.available is False

        second = await acceptance.accept(booking.booking_id, "driver-1", "driver-item")

        assert second.accepted
        assert second.booking.booking_id == booking.booking_id
        assert second.booking.status == BookingStatus.CONFIRMED
        assert second.booking.operator_id == "driver-1"
        assert second.booking.operator_item_id == "driver-item"
        assert second.booking.provider_id == "supplier-1"
        assert second.booking.item_id == "tractor-x"

        machine_after = await lifecycle.get_item("tractor-x")
        assert machine_after.available == machine_before.available
        assert machine_after.quantity_available == machine_before.quantity_available
        assert (await lifecycle.get_item("driver-item")).available is False
        assert publisher.notifications("farmer-1")[-1]["message"] == "An operator has been found for your booking!"

    @pytest.mark.asyncio
    async def test_self_operated_machine_confirms_directly(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        booking = await add_booking(lifecycle, operator_required=True)

        result = await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x", AcceptOptions(operate_self=True))

        assert result.booking.status == BookingStatus.CONFIRMED
        assert result.booking.operator_id == "supplier-1"
        assert result.booking.estimated_price == (1200 + 300) * 3

    @pytest.mark.asyncio
    async def test_only_drivers_take_operator_jobs(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        await add_item(lifecycle, "tractor-y", owner_id="supplier-9")
        booking = await add_booking(lifecycle, operator_required=True)
        await acceptance.accept(booking.booking_id, "supplier-1", "tractor-x", AcceptOptions(operate_self=False))

        result = await acceptance.accept(booking.booking_id, "supplier-9", "tractor-y")

        assert result.failure == ErrorKind.INVALID_STATE_TRANSITION
        assert (await lifecycle.get_booking(booking.booking_id)).status == BookingStatus.AWAITING_OPERATOR


class TestConcurrentAcceptance:
    @pytest.mark.asyncio
    async def test_racing_partial_fills_never_oversell(self, lifecycle, acceptance):
        await add_worker_gang(lifecycle, quantity=5)
        booking = await add_booking(
            lifecycle, item_category="Workers", work_purpose="Sowing", quantity=10, allow_multiple_suppliers=True
        )

        results = await asyncio.gather(
            acceptance.accept(booking.booking_id, "supplier-2", "gang-1", AcceptOptions(quantity_to_provide=4)),
            acceptance.accept(booking.booking_id, "supplier-2", "gang-1", AcceptOptions(quantity_to_provide=4)),
        )

        winners = [r for r in results if r.accepted]
        losers = [r for r in results if not r.accepted]
        assert len(winners) == 1
        assert len(losers) == 1
        assert losers[0].failure in (ErrorKind.STALE_WRITE, ErrorKind.INSUFFICIENT_CAPACITY)

        item = await lifecycle.get_item("gang-1")
        assert item.quantity_available == 1
        siblings = [
            b for b in await lifecycle.list_bookings(statuses=[BookingStatus.CONFIRMED])
            if b.parent_booking_id == booking.booking_id
        ]
        assert len(siblings) == 1
        assert (await lifecycle.get_booking(booking.booking_id)).quantity == 6

    @pytest.mark.asyncio
    async def test_two_providers_race_for_one_broadcast(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        await add_item(lifecycle, "tractor-y", owner_id="supplier-9")
        booking = await add_booking(lifecycle)

        results = await asyncio.gather(
            acceptance.accept(booking.booking_id, "supplier-1", "tractor-x"),
            acceptance.accept(booking.booking_id, "supplier-9", "tractor-y"),
        )

        winners = [r for r in results if r.accepted]
        assert len(winners) == 1
        loser = next(r for r in results if not r.accepted)
        assert loser.failure in (ErrorKind.STALE_WRITE, ErrorKind.INVALID_STATE_TRANSITION)

        stored = await lifecycle.get_booking(booking.booking_id)
        assert stored.status == BookingStatus.CONFIRMED
        assert stored.version == 2
        items = [await lifecycle.get_item("tractor-x"), await lifecycle.get_item("tractor-y")]
        # exactly the winner's item is held
        assert sorted(i.available for i in items) == [False, True]
        assert (await lifecycle.get_item(stored.item_id)).available is False

    @pytest.mark.asyncio
    async def test_accept_racing_cancel_leaves_item_consistent(self, lifecycle, acceptance):
        await add_item(lifecycle, "tractor-x")
        booking = await add_booking(lifecycle)

        accepted, cancelled = await asyncio.gather(
            acceptance.accept(booking.booking_id, "supplier-1", "tractor-x"),
            lifecycle.cancel(booking.booking_id),
            return_exceptions=True,
        )

        cancel_won = not isinstance(cancelled, BaseException)
        assert accepted.accepted or cancel_won
        if not accepted.accepted:
            assert accepted.failure in (ErrorKind.STALE_WRITE, ErrorKind.INVALID_STATE_TRANSITION)
        if not cancel_won:
            assert isinstance(cancelled, BookingError)
            assert cancelled.kind in (ErrorKind.STALE_WRITE, ErrorKind.INVALID_STATE_TRANSITION)

        stored = await lifecycle.get_booking(booking.booking_id)
        item = await lifecycle.get_item("tractor-x")
        if stored.status == BookingStatus.CANCELLED:
            assert cancel_won
            assert stored.reserved_units == 0
            assert item.available is True
        else:
            assert stored.status == BookingStatus.CONFIRMED
            assert stored.item_id == "tractor-x"
            assert item.available is False
