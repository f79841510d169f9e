"""Seed the database with PlayHub development data.

Run with: python -m scripts.seed
Creates one owner with two establishments and their courts, plus two customers.
"""

import asyncio
from datetime import time

from sqlalchemy import select

from playhub.core.database import async_session_factory, engine
from playhub.models import Base, Court, Establishment, User, UserRole

# Prices in cents per hour. Discount applies to bookings of 90 minutes or more.
ESTABLISHMENTS = [
    {
        "name": "Arena Vila Madalena",
        "opening_time": time(7, 0),
        "closing_time": time(23, 0),
        "open_weekdays": [0, 1, 2, 3, 4, 5, 6],
        # Shorter hours at the weekend
        "opening_time_by_weekday": [None, None, None, None, None, "08:00", "08:00"],
        "closing_time_by_weekday": [None, None, None, None, None, "20:00", "18:00"],
        "booking_buffer_minutes": 10,
        "requires_booking_confirmation": True,
        "cancel_min_hours": 24,
        "cancel_fee_percent": 50,
        "cancel_fee_fixed_cents": 2000,
        "courts": [
            {"name": "Quadra de Areia 1", "price_per_hour_cents": 12000, "discount_percent_over_90min": 10, "monthly_price_cents": 40000},
            {"name": "Quadra de Areia 2", "price_per_hour_cents": 12000, "discount_percent_over_90min": 10},
            {"name": "Quadra Society", "price_per_hour_cents": 25000, "discount_percent_over_90min": 5},
        ],
    },
    {
        "name": "Clube Pinheiros Padel",
        "opening_time": time(6, 0),
        "closing_time": time(22, 0),
        "open_weekdays": [0, 1, 2, 3, 4, 5],
        "booking_buffer_minutes": 0,
        "requires_booking_confirmation": False,
        "cancel_min_hours": 6,
        "cancel_fee_percent": 100,
        "cancel_fee_fixed_cents": 0,
        "courts": [
            {"name": "Padel 1", "price_per_hour_cents": 16000},
            {"name": "Padel 2", "price_per_hour_cents": 16000},
            # Closed for resurfacing, kept for history
            {"name": "Padel 3", "price_per_hour_cents": 16000, "is_active": False, "inactive_reason": "Reforma"},
        ],
    },
]


async def seed():
    # Create tables (in dev; production uses Alembic migrations)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with async_session_factory() as db:
        # Check if already seeded
        result = await db.execute(select(User).where(User.email == "owner@playhub.dev"))
        if result.scalar_one_or_none():
            print("Database already seeded, skipping.")
            return

        owner = User(email="owner@playhub.dev", name="Dev Owner", phone="11999990000", role=UserRole.OWNER)
        db.add(owner)
        await db.flush()

        total_courts = 0
        for establishment_data in ESTABLISHMENTS:
            courts = establishment_data.pop("courts")
            establishment = Establishment(owner_id=owner.id, **establishment_data)
            db.add(establishment)
            await db.flush()

            for court_data in courts:
                db.add(Court(establishment_id=establishment.id, **court_data))
                total_courts += 1

        db.add_all([
            User(email="ana@example.com", name="Ana Souza", phone="11988887777", role=UserRole.CUSTOMER),
            User(email="bruno@example.com", name="Bruno Lima", phone="11977776666", role=UserRole.CUSTOMER),
        ])

        await db.commit()

        print(f"Seeded {len(ESTABLISHMENTS)} establishments, {total_courts} courts")
        print("  owner@playhub.dev (owner)")
        print("  ana@example.com, bruno@example.com (customers)")
        print("Issue tokens with playhub.core.auth.create_access_token(str(user_id)).")


if __name__ == "__main__":
    asyncio.run(seed())
