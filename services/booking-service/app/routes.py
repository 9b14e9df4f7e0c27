from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse

from shared.idempotency import get_cached_response, store_response

from . import services
from .acceptance import AcceptOptions
from .config import IDEMPOTENCY_TTL_SECONDS
from .errors import HTTP_STATUS
from .schemas import (
    AcceptBookingRequest,
    AcceptBookingResponse,
    BookingPartiesResponse,
    BookingResponse,
    CreateBookingRequest,
    ItemResponse,
    PaymentRequest,
    RejectBookingRequest,
    UpsertItemRequest,
    VerifyOtpRequest,
)
from .states import BookingStatus

router = APIRouter()


def get_lifecycle():
    return services.lifecycle


def get_acceptance():
    return services.acceptance


def get_verification():
    return services.verification


def get_identity():
    return services.identity


def get_redis_client():
    return services.redis_client


# -------- ITEMS --------

@router.put("/items/{item_id}", response_model=ItemResponse)
async def upsert_item(item_id: str, data: UpsertItemRequest, lifecycle=Depends(get_lifecycle)):
    item = await lifecycle.upsert_item(item_id, **data.model_dump())
    return ItemResponse.model_validate(item)


@router.get("/items/{item_id}", response_model=ItemResponse)
async def get_item(item_id: str, lifecycle=Depends(get_lifecycle)):
    return ItemResponse.model_validate(await lifecycle.get_item(item_id))


# -------- BOOKINGS --------

@router.post("/bookings", response_model=BookingResponse)
async def create_booking(data: CreateBookingRequest, lifecycle=Depends(get_lifecycle)):
    booking = await lifecycle.create_booking(**data.model_dump())
    return BookingResponse.model_validate(booking)


@router.get("/bookings", response_model=list[BookingResponse])
async def list_bookings(
    status: list[BookingStatus] | None = Query(default=None),
    requester_id: str | None = None,
    provider_id: str | None = None,
    item_id: str | None = None,
    lifecycle=Depends(get_lifecycle),
):
    bookings = await lifecycle.list_bookings(
        statuses=status,
        requester_id=requester_id,
        provider_id=provider_id,
        item_id=item_id,
    )
    return [BookingResponse.model_validate(b) for b in bookings]


@router.get("/bookings/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: str, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.get_booking(booking_id))


@router.get("/bookings/{booking_id}/parties", response_model=BookingPartiesResponse)
async def get_booking_parties(
    booking_id: str,
    request: Request,
    lifecycle=Depends(get_lifecycle),
    identity=Depends(get_identity),
):
    booking = await lifecycle.get_booking(booking_id)
    request_id = getattr(request.state, "request_id", None)
    return await identity.parties(booking, request_id)


@router.post("/bookings/{booking_id}/accept", response_model=AcceptBookingResponse)
async def accept_booking(
    booking_id: str,
    data: AcceptBookingRequest,
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
    acceptance=Depends(get_acceptance),
    redis_client=Depends(get_redis_client),
):
    scope = f"accept:{booking_id}"
    cached = await get_cached_response(redis_client, scope, idempotency_key)
    if cached is not None:
        return cached

    result = await acceptance.accept(
        booking_id,
        data.provider_id,
        data.item_id,
        AcceptOptions(operate_self=data.operate_self, quantity_to_provide=data.quantity_to_provide),
    )
    if not result.accepted:
        return JSONResponse(
            status_code=HTTP_STATUS[result.failure],
            content={"detail": result.detail, "kind": result.failure.value},
        )

    body = AcceptBookingResponse(
        accepted=True,
        booking=BookingResponse.model_validate(result.booking),
        sibling=BookingResponse.model_validate(result.sibling) if result.sibling else None,
    ).model_dump(mode="json")
    await store_response(redis_client, scope, idempotency_key, body, IDEMPOTENCY_TTL_SECONDS)
    return body


@router.post("/bookings/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(booking_id: str, data: RejectBookingRequest, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.reject(booking_id, data.provider_id))


@router.post("/bookings/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(booking_id: str, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.cancel(booking_id))


@router.post("/bookings/{booking_id}/arrive", response_model=BookingResponse)
async def mark_arrived(booking_id: str, verification=Depends(get_verification)):
    return BookingResponse.model_validate(await verification.mark_arrived(booking_id))


@router.post("/bookings/{booking_id}/verify-otp", response_model=BookingResponse)
async def verify_otp(booking_id: str, data: VerifyOtpRequest, verification=Depends(get_verification)):
    return BookingResponse.model_validate(await verification.verify(booking_id, data.otp))


@router.post("/bookings/{booking_id}/complete", response_model=BookingResponse)
async def complete_work(booking_id: str, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.complete_work(booking_id))


@router.post("/bookings/{booking_id}/payment", response_model=BookingResponse)
async def record_payment(booking_id: str, data: PaymentRequest, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.record_payment(booking_id, data.method))


@router.post("/bookings/{booking_id}/dispute", response_model=BookingResponse)
async def raise_dispute(booking_id: str, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.raise_dispute(booking_id))


@router.post("/bookings/{booking_id}/dispute/resolve", response_model=BookingResponse)
async def resolve_dispute(booking_id: str, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.resolve_dispute(booking_id))


@router.post("/bookings/{booking_id}/damage", response_model=BookingResponse)
async def report_damage(booking_id: str, lifecycle=Depends(get_lifecycle)):
    return BookingResponse.model_validate(await lifecycle.report_damage(booking_id))
