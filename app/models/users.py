"""User model definition using SQLAlchemy Core.

Users are owned by the identity service; the scheduling core only reads the
columns it needs to validate doctors and label reports.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import UUID

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("email", Text, nullable=False, index=True),
    Column("full_name", Text),
    Column("role", Text, nullable=False, server_default=text("'patient'")),
    Column("is_active", Boolean, nullable=False, server_default=text("true")),
    # Doctor specific
    Column("specialization", String(200)),
    Column("consultation_fee", Numeric(10, 2), nullable=False, server_default=text("0")),
    # {"monday": [{"start": "09:00", "end": "12:00"}], ...}
    Column("availability", JSON),
    # Audit
    Column("created_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", DateTime(timezone=True), nullable=False, server_default=text("NOW()")),
)
