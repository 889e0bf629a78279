"""Create load and booking tables

Revision ID: 20261017_000001
Revises:
Create Date: 2026-10-17 09:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_000001"
down_revision = None
branch_labels = None
depends_on = None

LOAD_STATUSES = ("POSTED", "BOOKED", "CANCELLED")
BOOKING_STATUSES = ("PENDING", "ACCEPTED", "REJECTED")


def upgrade() -> None:
    op.create_table(
        "load",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("shipper_id", sa.String(), nullable=False),
        sa.Column("loading_point", sa.String(), nullable=False),
        sa.Column("unloading_point", sa.String(), nullable=False),
        sa.Column("loading_date", sa.DateTime(), nullable=False),
        sa.Column("unloading_date", sa.DateTime(), nullable=False),
        sa.Column("product_type", sa.String(), nullable=False),
        sa.Column("truck_type", sa.String(), nullable=False),
        sa.Column("no_of_trucks", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("comment", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.Enum(*LOAD_STATUSES, name="load_status"), nullable=False),
        sa.Column("date_posted", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_load"),
    )
    op.create_index("ix_load_shipper_id", "load", ["shipper_id"])
    op.create_index("ix_load_truck_type", "load", ["truck_type"])
    op.create_index("ix_load_status", "load", ["status"])

    op.create_table(
        "booking",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("load_id", sa.String(), sa.ForeignKey("load.id", ondelete="CASCADE", name="fk_booking_load_id_load"), nullable=False),
        sa.Column("transporter_id", sa.String(), nullable=False),
        sa.Column("proposed_rate", sa.Float(), nullable=False),
        sa.Column("comment", sa.String(length=1000), nullable=True),
        sa.Column("status", sa.Enum(*BOOKING_STATUSES, name="booking_status"), nullable=False),
        sa.Column("requested_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name="pk_booking"),
        sa.UniqueConstraint("load_id", "transporter_id", name="uq_booking_load_transporter"),
    )
    op.create_index("ix_booking_load_id", "booking", ["load_id"])
    op.create_index("ix_booking_transporter_id", "booking", ["transporter_id"])
    op.create_index("ix_booking_status", "booking", ["status"])


def downgrade() -> None:
    op.drop_index("ix_booking_status", table_name="booking")
    op.drop_index("ix_booking_transporter_id", table_name="booking")
    op.drop_index("ix_booking_load_id", table_name="booking")
    op.drop_table("booking")
    op.drop_index("ix_load_status", table_name="load")
    op.drop_index("ix_load_truck_type", table_name="load")
    op.drop_index("ix_load_shipper_id", table_name="load")
    op.drop_table("load")
    sa.Enum(name="booking_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="load_status").drop(op.get_bind(), checkfirst=True)
