from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime, Float, Integer, String, func

from shared.database import Base


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True)
    booking_id = Column(String, unique=True, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    requester_id = Column(String, nullable=False, index=True)
    provider_id = Column(String, nullable=True, index=True)
    item_id = Column(String, nullable=True, index=True)
    item_category = Column(String, nullable=False)

    status = Column(String, nullable=False, index=True)

    date = Column(String, nullable=False)  # YYYY-MM-DD
    start_time = Column(String, nullable=False)  # HH:MM
    end_time = Column(String, nullable=True)
    estimated_duration_hours = Column(Float, nullable=True)

    work_purpose = Column(String, nullable=False)
    quantity = Column(Integer, nullable=True)
    allow_multiple_suppliers = Column(Boolean, nullable=False, default=False)
    operator_required = Column(Boolean, nullable=False, default=False)
    operator_id = Column(String, nullable=True)
    operator_item_id = Column(String, nullable=True)
    preferred_model = Column(String, nullable=True)

    requester_latitude = Column(Float, nullable=True)
    requester_longitude = Column(Float, nullable=True)

    reserved_units = Column(Integer, nullable=False, default=0)
    parent_booking_id = Column(String, nullable=True, index=True)

    distance_charge = Column(Float, nullable=True)
    advance_amount = Column(Float, nullable=False, default=0)
    estimated_price = Column(Float, nullable=True)
    final_price = Column(Float, nullable=True)

    otp_code = Column(String, nullable=True)
    otp_verified = Column(Boolean, nullable=False, default=False)
    otp_issued_at = Column(DateTime(timezone=True), nullable=True)
    work_start_time = Column(DateTime(timezone=True), nullable=True)
    work_end_time = Column(DateTime(timezone=True), nullable=True)

    payment_method = Column(String, nullable=True)  # Cash/Online
    final_payment_id = Column(String, nullable=True)
    supplier_payout = Column(Float, nullable=True)
    admin_commission = Column(Float, nullable=True)

    dispute_raised = Column(Boolean, nullable=False, default=False)
    dispute_resolved = Column(Boolean, nullable=False, default=False)
    damage_reported = Column(Boolean, nullable=False, default=False)
    is_rebroadcast = Column(Boolean, nullable=False, default=False)

    search_timeout_notified = Column(Boolean, nullable=False, default=False)
    reminder_sent = Column(Boolean, nullable=False, default=False)
    admin_alert_count = Column(Integer, nullable=False, default=0)
    last_admin_alert_time = Column(DateTime(timezone=True), nullable=True)
    discount_amount = Column(Float, nullable=True)  # delay compensation

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True)


class Item(Base):
    """
    Capacity ledger row for a listed item. `quantity_available` is NULL for
    unit items (one tractor, one drone) and a count for gangs of workers.
    """

    __tablename__ = "items"
    __table_args__ = (
        CheckConstraint("quantity_available IS NULL OR quantity_available >= 0", name="ck_items_quantity_non_negative"),
    )

    id = Column(Integer, primary_key=True)
    item_id = Column(String, unique=True, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    category = Column(String, nullable=False, index=True)

    available = Column(Boolean, nullable=False, default=True)
    quantity_available = Column(Integer, nullable=True)
    capacity = Column(Integer, nullable=True)

    purposes = Column(JSON, nullable=False)  # [{"name": ..., "price": ...}]
    operator_charge = Column(Float, nullable=True)

    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
