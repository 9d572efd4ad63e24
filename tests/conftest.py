from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, time, timedelta

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from parkb.config import Settings
from parkb.core.clock import ManualClock
from parkb.core.dependencies import get_db, get_facility
from parkb.core.facility import Facility
from parkb.database import Base
from parkb.main import app
from parkb.models.reservation import Reservation
from parkb.models.spot import Spot
from parkb.models.user import User
from parkb.utils.constants import BookingKind, ReservationState, UserRole

TEST_DATABASE_URL = "sqlite+aiosqlite:///./test_parkb.db"

# Monday morning; every test starts here unless it moves the clock
NOW = datetime(2026, 10, 19, 10, 0)

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
test_session_maker = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with test_session_maker() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def clock() -> ManualClock:
    return ManualClock(NOW)


@pytest_asyncio.fixture
async def facility(clock: ManualClock) -> Facility:
    settings = Settings(total_spots=10, scheduler_enabled=False, auto_cancel_interval_seconds=0.05)
    return Facility(settings=settings, clock=clock, session_maker=test_session_maker)


@pytest_asyncio.fixture
async def spots(db_session: AsyncSession, facility: Facility) -> list[Spot]:
    spots = [Spot(id=i, is_occupied=False) for i in range(1, facility.settings.total_spots + 1)]
    db_session.add_all(spots)
    await db_session.commit()
    return spots


@pytest_asyncio.fixture
async def subscriber(db_session: AsyncSession) -> User:
    user = User(username="dana", full_name="Dana Levi", email="dana@example.com")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def other_subscriber(db_session: AsyncSession) -> User:
    user = User(username="omer", full_name="Omer Katz")
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def attendant(db_session: AsyncSession) -> User:
    user = User(username="gate", full_name="Gate Attendant", role=UserRole.ATTENDANT)
    db_session.add(user)
    await db_session.commit()
    return user


@pytest_asyncio.fixture
async def occupy(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    async def _occupy(*spot_ids: int) -> None:
        for spot_id in spot_ids:
            spot = await db_session.get(Spot, spot_id)
            spot.is_occupied = True
        await db_session.commit()

    return _occupy


@pytest_asyncio.fixture
async def add_reservation(
    db_session: AsyncSession, subscriber: User
) -> Callable[..., Awaitable[Reservation]]:
    """Insert a reservation directly, bypassing the booking rules."""
    codes = iter(range(200000, 300000))

    async def _add(
        spot_id: int | None,
        start: datetime,
        hours: int = 4,
        state: ReservationState = ReservationState.PREORDER,
        kind: BookingKind = BookingKind.PRECISION,
        code: int | None = None,
        user: User | None = None,
    ) -> Reservation:
        if kind == BookingKind.STANDARD:
            start_time = end_time = time(0, 0)
        else:
            start_time = start.time()
            end_time = (start + timedelta(hours=hours)).time()
        reservation = Reservation(
            code=code or next(codes),
            user_id=(user or subscriber).id,
            spot_id=spot_id,
            reservation_date=start.date(),
            start_time=start_time,
            end_time=end_time,
            placed_at=NOW - timedelta(days=2),
            state=state,
            kind=kind,
        )
        db_session.add(reservation)
        await db_session.commit()
        return reservation

    return _add


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, facility: Facility) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_facility] = lambda: facility

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
