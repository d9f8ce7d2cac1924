"""Shared test fixtures for the DD Portal API test suite."""

import uuid
from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from ddportal.core.database import Base, get_db, get_readonly_db
from ddportal.main import app
from ddportal.models.diligence import (
    Deal,
    DiligenceRequest,
    DiligenceResponse,
    DiligenceStage,
    RequestDocument,
)

# In-memory SQLite shared across one test through a single pooled connection
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """A session over a fresh schema for each test."""
    session = AsyncSession(bind=test_engine, expire_on_commit=False)
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture
async def client(db: AsyncSession) -> AsyncGenerator[AsyncClient]:
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_readonly_db] = lambda: db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_readonly_db, None)


# ── Sample data ───────────────────────────────────────────────────────────────

SAMPLE_DEAL_ID = uuid.UUID("00000000-0000-0001-0000-000000000001")
OTHER_DEAL_ID = uuid.UUID("00000000-0000-0001-0000-000000000002")

LOI_STAGE_ID = uuid.UUID("00000000-0000-0002-0000-000000000001")
DILIGENCE_STAGE_ID = uuid.UUID("00000000-0000-0002-0000-000000000002")
SIGNING_STAGE_ID = uuid.UUID("00000000-0000-0002-0000-000000000003")
ARCHIVED_STAGE_ID = uuid.UUID("00000000-0000-0002-0000-000000000004")


async def add_request(
    db: AsyncSession,
    deal_id: uuid.UUID = SAMPLE_DEAL_ID,
    *,
    title: str = "Request",
    category: str = "Financial",
    priority: str = "medium",
    status: str = "pending",
    stage_id: uuid.UUID | None = None,
    documents: int = 0,
    responses: int = 0,
) -> DiligenceRequest:
    """Insert a request plus the given number of document and response rows."""
    request = DiligenceRequest(
        id=uuid.uuid4(),
        deal_id=deal_id,
        stage_id=stage_id,
        title=title,
        category=category,
        priority=priority,
        status=status,
    )
    db.add(request)
    await db.flush()
    for i in range(documents):
        db.add(RequestDocument(request_id=request.id, filename=f"{title}-{i}.pdf"))
    for i in range(responses):
        db.add(DiligenceResponse(request_id=request.id, response_text=f"Answer {i}"))
    await db.flush()
    return request


@pytest.fixture
async def sample_deal(db: AsyncSession) -> Deal:
    deal = Deal(
        id=SAMPLE_DEAL_ID,
        name="Project Falcon",
        company_name="Falcon Holdings",
        project_name="Falcon",
    )
    db.add(deal)
    await db.flush()
    return deal


@pytest.fixture
async def other_deal(db: AsyncSession) -> Deal:
    deal = Deal(
        id=OTHER_DEAL_ID,
        name="Project Heron",
        company_name="Heron Ltd",
    )
    db.add(deal)
    await db.flush()
    return deal


@pytest.fixture
async def sample_stages(db: AsyncSession) -> list[DiligenceStage]:
    """Three active stages (LOI -> Diligence -> Signing) and one inactive stage."""
    stages = [
        DiligenceStage(
            id=LOI_STAGE_ID, name="LOI", sort_order=1, completion_threshold=100
        ),
        DiligenceStage(
            id=DILIGENCE_STAGE_ID, name="Diligence", sort_order=2, completion_threshold=80
        ),
        DiligenceStage(
            id=SIGNING_STAGE_ID, name="Signing", sort_order=3, completion_threshold=50
        ),
        DiligenceStage(
            id=ARCHIVED_STAGE_ID,
            name="Archived",
            sort_order=0,
            completion_threshold=0,
            is_active=False,
        ),
    ]
    db.add_all(stages)
    await db.flush()
    return stages
