"""Database models."""

from app.models.appointments import appointments
from app.models.users import users

__all__ = [
    "appointments",
    "users",
]
