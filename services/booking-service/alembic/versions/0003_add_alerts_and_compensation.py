from alembic import op
import sqlalchemy as sa

revision = "0003"
down_revision = "0002"
branch_labels = None
depends_on = None

def upgrade():
    op.add_column("bookings", sa.Column("admin_alert_count", sa.Integer(), nullable=False, server_default="0"))
    op.add_column("bookings", sa.Column("last_admin_alert_time", sa.DateTime(timezone=True), nullable=True))
    op.add_column("bookings", sa.Column("discount_amount", sa.Float(), nullable=True))

def downgrade():
    op.drop_column("bookings", "discount_amount")
    op.drop_column("bookings", "last_admin_alert_time")
    op.drop_column("bookings", "admin_alert_count")
