"""Shared test fixtures.

Each test gets its own file-backed SQLite database. Transactions start with
BEGIN IMMEDIATE so that concurrent writers queue on the database write lock,
the way they queue on the court row lock under PostgreSQL.
"""

from datetime import datetime, time, timedelta
from types import SimpleNamespace

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from playhub.models import Base, Booking, BookingStatus, Court, Establishment, User, UserRole
from playhub.services.collaborators import PaymentSession
from playhub.services.context import Actor, BookingContext, ReservationPolicy

# Monday 2 March 2026, 08:00 local time
NOW = datetime(2026, 3, 2, 8, 0)


def at(days: int, hour: int, minute: int = 0) -> datetime:
    """A wall-clock instant days after NOW's date."""
    return datetime.combine(NOW.date() + timedelta(days=days), time(hour, minute))


class FrozenClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class RecordingCollaborators:
    """Notification sink, email queue, payment gateway and audit sink in one, recording calls."""

    def __init__(self):
        self.notifications: list[dict] = []
        self.emails: list[dict] = []
        self.payments: list[tuple] = []
        self.audits: list[dict] = []

    async def notify(self, user_id, kind, title, body, booking_id=None):
        self.notifications.append({"user_id": user_id, "kind": kind, "title": title, "body": body, "booking_id": booking_id})

    async def enqueue_email(self, to, subject, text, html, dedupe_key):
        self.emails.append({"to": to, "subject": subject, "text": text, "html": html, "dedupe_key": dedupe_key})
        return len(self.emails)

    async def start_payment(self, booking_id, provider):
        self.payments.append(("start", booking_id, provider))
        return PaymentSession(booking_id=booking_id, payment_id=f"pay_{booking_id}", checkout_url=f"https://pay.test/{booking_id}")

    async def mark_paid(self, payment_id):
        self.payments.append(("mark_paid", payment_id))

    async def mark_authorized(self, payment_id):
        self.payments.append(("mark_authorized", payment_id))

    async def mark_refunded(self, payment_id):
        self.payments.append(("mark_refunded", payment_id))

    async def record_audit(self, actor_id, action, entity_type, entity_id, metadata):
        self.audits.append(
            {"actor_id": actor_id, "action": action, "entity_type": entity_type, "entity_id": entity_id, "metadata": metadata}
        )

    @property
    def audit_actions(self) -> list[str]:
        return [a["action"] for a in self.audits]


def make_engine(url, timeout: float = 30):
    """An aiosqlite engine whose transactions take the write lock up front, waiting at most timeout seconds."""
    engine = create_async_engine(url, connect_args={"timeout": timeout})

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        # Let the "begin" hook below emit BEGIN itself
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


@pytest.fixture
async def engine(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'playhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def recorder():
    return RecordingCollaborators()


@pytest.fixture
def ctx(session_factory, recorder, clock):
    return BookingContext(
        session_factory=session_factory,
        policy=ReservationPolicy(),
        notifier=recorder,
        emails=recorder,
        gateway=recorder,
        audit=recorder,
        clock=clock,
    )


@pytest.fixture
async def seed(session_factory):
    """An owner, two customers, one establishment open 08:00-22:00 daily and two courts."""
    async with session_factory() as db:
        owner = User(email="owner@arena.test", name="Olga Owner", phone="11999990000", role=UserRole.OWNER)
        alice = User(email="alice@example.com", name="Alice", phone="11988887777", role=UserRole.CUSTOMER)
        bob = User(email="bob@example.com", name="Bob", phone="11977776666", role=UserRole.CUSTOMER)
        db.add_all([owner, alice, bob])
        await db.flush()

        establishment = Establishment(
            owner_id=owner.id,
            name="Arena Central",
            open_weekdays=[0, 1, 2, 3, 4, 5, 6],
            opening_time=time(8, 0),
            closing_time=time(22, 0),
            booking_buffer_minutes=0,
            requires_booking_confirmation=True,
            cancel_min_hours=2,
            cancel_fee_percent=50,
            cancel_fee_fixed_cents=0,
        )
        db.add(establishment)
        await db.flush()

        court = Court(
            establishment_id=establishment.id,
            name="Quadra 1",
            price_per_hour_cents=10000,
            discount_percent_over_90min=10,
            monthly_price_cents=30000,
        )
        court2 = Court(
            establishment_id=establishment.id,
            name="Quadra 2",
            price_per_hour_cents=8000,
            discount_percent_over_90min=0,
        )
        db.add_all([court, court2])
        await db.commit()

    return SimpleNamespace(
        owner=owner,
        alice=alice,
        bob=bob,
        establishment=establishment,
        court=court,
        court2=court2,
        owner_actor=Actor(id=owner.id, role=UserRole.OWNER),
        alice_actor=Actor(id=alice.id, role=UserRole.CUSTOMER),
        bob_actor=Actor(id=bob.id, role=UserRole.CUSTOMER),
    )


async def update_establishment(session_factory, establishment_id: int, **values) -> None:
    async with session_factory() as db:
        establishment = await db.get(Establishment, establishment_id)
        for key, value in values.items():
            setattr(establishment, key, value)
        await db.commit()


async def update_court(session_factory, court_id: int, **values) -> None:
    async with session_factory() as db:
        court = await db.get(Court, court_id)
        for key, value in values.items():
            setattr(court, key, value)
        await db.commit()


async def insert_booking(session_factory, court_id, customer_id, start, end, status=BookingStatus.PENDING, **extra) -> Booking:
    """Write a booking directly, bypassing the reservation checks (pre-existing data)."""
    async with session_factory() as db:
        booking = Booking(
            court_id=court_id,
            customer_id=customer_id,
            start_time=start,
            end_time=end,
            status=status,
            total_price_cents=extra.pop("total_price_cents", 10000),
            created_at=extra.pop("created_at", NOW - timedelta(hours=1)),
            **extra,
        )
        db.add(booking)
        await db.commit()
        return booking


async def add_customer(session_factory, email: str, name: str) -> Actor:
    async with session_factory() as db:
        user = User(email=email, name=name, phone="11900000000", role=UserRole.CUSTOMER)
        db.add(user)
        await db.commit()
        return Actor(id=user.id, role=UserRole.CUSTOMER)
