import structlog
from datetime import datetime

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ddportal.core.config import settings

logger = structlog.get_logger()


def _create_engine(url: str) -> AsyncEngine:
    """Pooled asyncpg engine with server-side statement and idle timeouts (ms)."""
    return create_async_engine(
        url,
        echo=settings.APP_DEBUG,
        pool_size=10,
        max_overflow=5,
        pool_pre_ping=True,
        pool_recycle=1800,
        pool_timeout=30,
        connect_args={
            "server_settings": {
                "statement_timeout": "30000",
                "idle_in_transaction_session_timeout": "60000",
            },
            "command_timeout": 30,
        },
    )


engine = _create_engine(settings.DATABASE_URL)
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

# Dashboards and listings read from the replica when one is configured
if settings.DATABASE_URL_READ_REPLICA:
    logger.info("read_replica_configured")
    read_only_session_factory = async_sessionmaker(
        _create_engine(settings.DATABASE_URL_READ_REPLICA),
        class_=AsyncSession,
        expire_on_commit=False,
    )
else:
    read_only_session_factory = async_session_factory


class Base(DeclarativeBase):
    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Read-write session; commits when the request succeeds."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_readonly_db() -> AsyncSession:  # type: ignore[misc]
    """Session for progress and listing endpoints; never commits."""
    async with read_only_session_factory() as session:
        yield session
