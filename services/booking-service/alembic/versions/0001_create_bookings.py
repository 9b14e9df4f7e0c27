from alembic import op
import sqlalchemy as sa

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_id", sa.String(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("requester_id", sa.String(), nullable=False),
        sa.Column("provider_id", sa.String(), nullable=True),
        sa.Column("item_id", sa.String(), nullable=True),
        sa.Column("item_category", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("start_time", sa.String(), nullable=False),
        sa.Column("end_time", sa.String(), nullable=True),
        sa.Column("estimated_duration_hours", sa.Float(), nullable=True),
        sa.Column("work_purpose", sa.String(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("allow_multiple_suppliers", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("operator_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("operator_id", sa.String(), nullable=True),
        sa.Column("operator_item_id", sa.String(), nullable=True),
        sa.Column("preferred_model", sa.String(), nullable=True),
        sa.Column("requester_latitude", sa.Float(), nullable=True),
        sa.Column("requester_longitude", sa.Float(), nullable=True),
        sa.Column("reserved_units", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("parent_booking_id", sa.String(), nullable=True),
        sa.Column("distance_charge", sa.Float(), nullable=True),
        sa.Column("advance_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("estimated_price", sa.Float(), nullable=True),
        sa.Column("final_price", sa.Float(), nullable=True),
        sa.Column("otp_code", sa.String(), nullable=True),
        sa.Column("otp_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("otp_issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_start_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_end_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("final_payment_id", sa.String(), nullable=True),
        sa.Column("supplier_payout", sa.Float(), nullable=True),
        sa.Column("admin_commission", sa.Float(), nullable=True),
        sa.Column("dispute_raised", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("dispute_resolved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("damage_reported", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_rebroadcast", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("search_timeout_notified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_bookings_booking_id", "bookings", ["booking_id"], unique=True)
    op.create_index("ix_bookings_requester_id", "bookings", ["requester_id"], unique=False)
    op.create_index("ix_bookings_provider_id", "bookings", ["provider_id"], unique=False)
    op.create_index("ix_bookings_item_id", "bookings", ["item_id"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.create_index("ix_bookings_parent_booking_id", "bookings", ["parent_booking_id"], unique=False)

def downgrade():
    op.drop_index("ix_bookings_parent_booking_id", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_item_id", table_name="bookings")
    op.drop_index("ix_bookings_provider_id", table_name="bookings")
    op.drop_index("ix_bookings_requester_id", table_name="bookings")
    op.drop_index("ix_bookings_booking_id", table_name="bookings")
    op.drop_table("bookings")
