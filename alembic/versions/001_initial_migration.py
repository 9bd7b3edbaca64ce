"""Initial migration - create users and appointments tables.

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Read model of the identity service's users
    op.create_table(
        "users",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("email", sa.Text(), nullable=False),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("role", sa.Text(), server_default=sa.text("'patient'"), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("specialization", sa.String(length=200), nullable=True),
        sa.Column(
            "consultation_fee",
            sa.Numeric(precision=10, scale=2),
            server_default=sa.text("0"),
            nullable=False,
        ),
        sa.Column("availability", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.CheckConstraint("role IN ('patient', 'doctor', 'admin')", name="users_role_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "appointments",
        sa.Column("id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("doctor_id", postgresql.UUID(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.VARCHAR(length=5), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), server_default=sa.text("30"), nullable=False),
        sa.Column("status", sa.Text(), server_default="scheduled", nullable=False),
        sa.Column("reason", sa.String(length=500), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        sa.Column("doctor_notes", sa.String(length=1000), nullable=True),
        sa.Column("prescription", sa.JSON(), nullable=True),
        sa.Column("payment_amount", sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column("payment_status", sa.Text(), server_default="pending", nullable=False),
        sa.Column("payment_method", sa.Text(), nullable=True),
        sa.Column("payment_transaction_id", sa.Text(), nullable=True),
        sa.Column("paid_at", postgresql.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("reminders", sa.JSON(), nullable=True),
        sa.Column("cancelled_by", postgresql.UUID(), nullable=True),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=False), nullable=True),
        sa.Column("rating", sa.SmallInteger(), nullable=True),
        sa.Column("review", sa.String(length=500), nullable=True),
        sa.Column("created_at", postgresql.TIMESTAMP(timezone=False), nullable=False),
        sa.Column("updated_at", postgresql.TIMESTAMP(timezone=False), nullable=False),
        sa.Column("deleted_at", postgresql.TIMESTAMP(timezone=False), nullable=True),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'cancelled', 'completed', 'no-show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded')",
            name="appointments_payment_status_check",
        ),
        sa.CheckConstraint(
            "rating IS NULL OR rating BETWEEN 1 AND 5", name="appointments_rating_check"
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create indexes
    op.create_index("idx_appointments_patient_date", "appointments", ["patient_id", "date"])
    op.create_index("idx_appointments_doctor_date", "appointments", ["doctor_id", "date"])
    op.create_index("idx_appointments_status", "appointments", ["status"])

    # At most one active booking per doctor slot
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["doctor_id", "date", "time"],
        unique=True,
        postgresql_where=sa.text(
            "status IN ('scheduled', 'confirmed') AND deleted_at IS NULL"
        ),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_index("idx_appointments_status", table_name="appointments")
    op.drop_index("idx_appointments_doctor_date", table_name="appointments")
    op.drop_index("idx_appointments_patient_date", table_name="appointments")
    op.drop_table("appointments")

    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
