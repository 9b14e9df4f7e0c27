from alembic import op
import sqlalchemy as sa

revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.String(), nullable=False),
        sa.Column("owner_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("available", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("quantity_available", sa.Integer(), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("purposes", sa.JSON(), nullable=False),
        sa.Column("operator_charge", sa.Float(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.CheckConstraint("quantity_available IS NULL OR quantity_available >= 0", name="ck_items_quantity_non_negative"),
    )
    op.create_index("ix_items_item_id", "items", ["item_id"], unique=True)
    op.create_index("ix_items_owner_id", "items", ["owner_id"], unique=False)
    op.create_index("ix_items_category", "items", ["category"], unique=False)

def downgrade():
    op.drop_index("ix_items_category", table_name="items")
    op.drop_index("ix_items_owner_id", table_name="items")
    op.drop_index("ix_items_item_id", table_name="items")
    op.drop_table("items")
