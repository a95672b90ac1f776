"""
Database configuration for papertrade.

Uses async SQLAlchemy with SQLite (local) or PostgreSQL (production).
Ledger writes rely on the database for atomicity; see services.ledger for
how concurrent writes to one account are serialized.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from papertrade.config import settings

# Create async engine
# echo=False by default, set SQLALCHEMY_ECHO=1 to enable SQL logging
engine = create_async_engine(settings.database_url, echo=settings.sql_echo)

# Session factory - creates new database sessions
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


async def init_db() -> None:
    """Create all database tables.

    Called on application startup to ensure tables exist.
    In production, you'd use Alembic migrations instead.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncSession:
    """Dependency that provides a database session.

    Usage in FastAPI:
        @app.get("/example")
        async def example(session: AsyncSession = Depends(get_session)):
            ...
    """
    async with AsyncSessionLocal() as session:
        yield session
