"""Seed demo doctors with weekly availability into the users table."""

import asyncio

from sqlalchemy import insert, select

from app.database import get_engine
from app.models.users import users

WEEKDAY_HOURS = [{"start": "09:00", "end": "12:00"}, {"start": "14:00", "end": "17:00"}]

DOCTORS = [
    ("richard.james@medbook.com", "Dr. Richard James", "General physician", 50),
    ("emily.larson@medbook.com", "Dr. Emily Larson", "Gynecologist", 60),
    ("sarah.patel@medbook.com", "Dr. Sarah Patel", "Dermatologist", 30),
    ("christopher.lee@medbook.com", "Dr. Christopher Lee", "Pediatricians", 40),
    ("jennifer.garcia@medbook.com", "Dr. Jennifer Garcia", "Neurologist", 50),
]


def _availability() -> dict[str, list[dict[str, str]]]:
    week = {day: WEEKDAY_HOURS for day in ("monday", "tuesday", "wednesday", "thursday", "friday")}
    week["saturday"] = [{"start": "10:00", "end": "13:00"}]
    week["sunday"] = []
    return week


async def seed() -> None:
    """Insert the demo doctors, skipping emails that already exist."""
    engine = get_engine()
    async with engine.begin() as conn:
        existing = set((await conn.execute(select(users.c.email))).scalars())
        rows = [
            {
                "email": email,
                "full_name": name,
                "role": "doctor",
                "is_active": True,
                "specialization": specialization,
                "consultation_fee": fee,
                "availability": _availability(),
            }
            for email, name, specialization, fee in DOCTORS
            if email not in existing
        ]
        if rows:
            await conn.execute(insert(users), rows)

    await engine.dispose()
    print(f"Seeded {len(rows)} doctors ({len(DOCTORS) - len(rows)} already present)")


if __name__ == "__main__":
    asyncio.run(seed())
