"""
Database session management with SQLAlchemy async
"""

from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    create_async_engine, AsyncEngine, AsyncSession, async_sessionmaker
)
from core.config import settings
import logging

logger = logging.getLogger(__name__)


def build_engine(url: str = None, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given (or configured) database URL"""
    return create_async_engine(
        url or settings.DATABASE_URL,
        echo=echo,
        pool_pre_ping=True,
        future=True
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Session factory; every persistence write opens its own short session"""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False
    )


engine = build_engine()
async_session_maker = build_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session"""
    async with async_session_maker() as session:
        yield session
