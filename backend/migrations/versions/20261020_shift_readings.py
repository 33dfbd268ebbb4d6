"""Recorded shift readings

Revision ID: 20261020_shift_readings
Revises: 20261019_hotel_pos
Create Date: 2026-10-20
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261020_shift_readings"
down_revision = "20261019_hotel_pos"
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "shift_readings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=False),
        sa.Column("reading_type", sa.String(8), nullable=False),
        sa.Column("reading_number", sa.Integer(), nullable=False),
        sa.Column("order_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_sales", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("cash_sales", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("card_sales", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("room_charge_sales", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("other_sales", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("void_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("void_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_total", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("expected_cash", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("generated_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"]),
        sa.ForeignKeyConstraint(["generated_by_user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shift_id", "reading_number", name="uq_shift_readings_number"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shift_readings", schema=None) as batch_op:
        batch_op.create_index("ix_shift_readings_shift_id", ["shift_id"], unique=False)


def downgrade():
    with op.batch_alter_table("shift_readings", schema=None) as batch_op:
        batch_op.drop_index("ix_shift_readings_shift_id")
    op.drop_table("shift_readings")
