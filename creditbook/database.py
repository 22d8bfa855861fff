"""Database engine, session factory and declarative base."""
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from creditbook.config import settings


class Base(DeclarativeBase):
    pass


engine = create_async_engine(settings.DATABASE_URL, echo=False)

async_session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Create tables for all registered models."""
    import creditbook.models  # noqa: F401  registers the mappers

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
