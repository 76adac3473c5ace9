# tests/conftest.py
import os

os.environ["APP_ENV"] = "test"
os.environ["DB_URL"] = "sqlite+aiosqlite://"
os.environ["ATTENDANCE_SWEEP_INTERVAL_SECONDS"] = "0"
os.environ.pop("INTERNAL_API_KEY", None)

from datetime import datetime, time, timedelta

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from huddle.api.dependencies.context import get_clock, get_grid
from huddle.db.session import get_db, init_db
from huddle.main import create_app
from huddle.services.meeting_locks import MeetingLocks
from huddle.services.slot_grid import SlotGrid


class FrozenClock:
    """
    Callable clock that only moves when told to.
    """

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FrozenClock:
    # Monday 2026-10-19, 13:00 local
    return FrozenClock(datetime(2026, 10, 19, 13, 0, 0))


@pytest.fixture
def grid() -> SlotGrid:
    return SlotGrid(day_start=time(9, 0), day_end=time(23, 0), slot_minutes=30)


@pytest.fixture
def locks() -> MeetingLocks:
    return MeetingLocks()


@pytest_asyncio.fixture
async def engine(tmp_path):
    """
    Fresh file-backed SQLite database per test.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'huddle_test.db'}", future=True)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine,
        autoflush=False,
        expire_on_commit=False,
        class_=AsyncSession,
    )


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory, clock, grid):
    """
    Async HTTP client bound to a fresh app whose DB, clock and grid are the
    test fixtures.
    """
    app = create_app()

    async def _get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_grid] = lambda: grid

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
def make_meeting(db):
    """
    Factory creating a meeting with an owner plus approved / pending members.
    """
    from huddle.schemas.meeting import ParticipantRole
    from huddle.services import meeting_roster

    async def _make(owner="owner", approved=(), pending=(), title="Algorithms study group"):
        meeting = await meeting_roster.create_meeting(db, title=title, owner_id=owner)
        for user_id in approved:
            await meeting_roster.add_participant(
                db, meeting.id, user_id, actor_id=owner, role=ParticipantRole.APPROVED
            )
        for user_id in pending:
            await meeting_roster.add_participant(db, meeting.id, user_id, actor_id=user_id)
        return meeting

    return _make
