"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Date,
    Index,
    Integer,
    MetaData,
    Numeric,
    SmallInteger,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID, VARCHAR

# Metadata for all tables
metadata = MetaData()

ACTIVE_STATUS_SQL = "status IN ('scheduled', 'confirmed')"

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True),
    # Parties (users are owned by the identity service)
    Column("patient_id", UUID(as_uuid=True), nullable=False),
    Column("doctor_id", UUID(as_uuid=True), nullable=False),
    # Schedule, clinic-local wall clock
    Column("date", Date, nullable=False),
    Column("time", VARCHAR(5), nullable=False),
    Column("duration_minutes", Integer, nullable=False, server_default=text("30")),
    # Status management
    Column("status", Text, nullable=False, server_default="scheduled"),
    # Clinical
    Column("reason", String(500), nullable=False),
    Column("notes", String(1000), nullable=True),
    Column("doctor_notes", String(1000), nullable=True),
    Column("prescription", JSON, nullable=True),
    # Payment
    Column("payment_amount", Numeric(10, 2), nullable=False),
    Column("payment_status", Text, nullable=False, server_default="pending"),
    Column("payment_method", Text, nullable=True),
    Column("payment_transaction_id", Text, nullable=True),
    Column("paid_at", TIMESTAMP(timezone=False), nullable=True),
    Column("reminders", JSON, nullable=True),
    # Cancellation / completion
    Column("cancelled_by", UUID(as_uuid=True), nullable=True),
    Column("cancelled_at", TIMESTAMP(timezone=False), nullable=True),
    Column("cancellation_reason", Text, nullable=True),
    Column("completed_at", TIMESTAMP(timezone=False), nullable=True),
    # Post-visit feedback
    Column("rating", SmallInteger, nullable=True),
    Column("review", String(500), nullable=True),
    # Audit fields
    Column("created_at", TIMESTAMP(timezone=False), nullable=False),
    Column("updated_at", TIMESTAMP(timezone=False), nullable=False),
    # Administrative soft delete
    Column("deleted_at", TIMESTAMP(timezone=False), nullable=True),
    # Constraints
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'cancelled', 'completed', 'no-show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "payment_status IN ('pending', 'paid', 'refunded')",
        name="appointments_payment_status_check",
    ),
    CheckConstraint("rating IS NULL OR rating BETWEEN 1 AND 5", name="appointments_rating_check"),
    Index("idx_appointments_patient_date", "patient_id", "date"),
    Index("idx_appointments_doctor_date", "doctor_id", "date"),
    Index("idx_appointments_status", "status"),
    # At most one active booking per doctor slot
    Index(
        "uq_appointments_active_slot",
        "doctor_id",
        "date",
        "time",
        unique=True,
        postgresql_where=text(f"{ACTIVE_STATUS_SQL} AND deleted_at IS NULL"),
    ),
)
