from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class WorkPurpose(BaseModel):
    name: str
    price: float


class UpsertItemRequest(BaseModel):
    owner_id: str
    name: str
    category: str
    purposes: list[WorkPurpose] = Field(default_factory=list)
    # only read when the listing is first created
    available: bool = True
    # total units; omit for single-unit items
    quantity_available: int | None = None
    operator_charge: float | None = None
    latitude: float | None = None
    longitude: float | None = None


class ItemResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: str
    owner_id: str
    name: str
    category: str
    available: bool
    quantity_available: int | None = None
    capacity: int | None = None
    purposes: list[WorkPurpose]
    operator_charge: float | None = None
    latitude: float | None = None
    longitude: float | None = None


class CreateBookingRequest(BaseModel):
    requester_id: str
    item_category: str
    date: str  # YYYY-MM-DD
    start_time: str  # HH:MM
    work_purpose: str

    # direct request when both are set, broadcast otherwise
    provider_id: str | None = None
    item_id: str | None = None

    quantity: int | None = None
    allow_multiple_suppliers: bool = False
    operator_required: bool = False
    preferred_model: str | None = None
    estimated_duration_hours: float | None = None
    advance_amount: float = 0
    distance_charge: float | None = None

    requester_latitude: float | None = None
    requester_longitude: float | None = None


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_id: str
    version: int
    status: str
    requester_id: str
    provider_id: str | None = None
    item_id: str | None = None
    item_category: str
    date: str
    start_time: str
    end_time: str | None = None
    work_purpose: str
    quantity: int | None = None
    allow_multiple_suppliers: bool
    operator_required: bool
    operator_id: str | None = None
    reserved_units: int
    parent_booking_id: str | None = None
    estimated_duration_hours: float | None = None
    distance_charge: float | None = None
    advance_amount: float
    estimated_price: float | None = None
    final_price: float | None = None
    otp_verified: bool
    work_start_time: datetime | None = None
    work_end_time: datetime | None = None
    payment_method: str | None = None
    final_payment_id: str | None = None
    dispute_raised: bool
    dispute_resolved: bool
    damage_reported: bool
    is_rebroadcast: bool


class AcceptBookingRequest(BaseModel):
    provider_id: str
    item_id: str
    operate_self: bool | None = None
    quantity_to_provide: int | None = None


class AcceptBookingResponse(BaseModel):
    accepted: bool
    booking: BookingResponse | None = None
    sibling: BookingResponse | None = None
    failure: str | None = None
    detail: str | None = None


class RejectBookingRequest(BaseModel):
    provider_id: str


class VerifyOtpRequest(BaseModel):
    otp: str


class PaymentRequest(BaseModel):
    method: str = "Cash"


class PartyProfile(BaseModel):
    id: str
    name: str | None = None
    rating: float | None = None


class BookingPartiesResponse(BaseModel):
    booking_id: str
    requester: PartyProfile | None = None
    provider: PartyProfile | None = None
    operator: PartyProfile | None = None
