from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from app.config import get_settings


class Base(DeclarativeBase):
  pass


engine: AsyncEngine | None = None
SessionLocal: async_sessionmaker[AsyncSession] | None = None


def _database_url() -> str:
  """Normalize plain Postgres URLs to the asyncpg driver."""
  database_url = get_settings().database_url
  if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
  return database_url


def get_db_engine() -> AsyncEngine:
  global engine
  if engine is None:
    engine = create_async_engine(_database_url(), echo=get_settings().debug, future=True)
  return engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
  global SessionLocal
  if SessionLocal is None:
    SessionLocal = async_sessionmaker(bind=get_db_engine(), expire_on_commit=False, class_=AsyncSession)
  return SessionLocal


async def create_tables(db_engine: AsyncEngine | None = None) -> None:
  """Create the record tables when they do not exist yet."""
  # Import models so they register on Base.metadata.
  from app.schema import records  # noqa: F401

  async with (db_engine or get_db_engine()).begin() as connection:
    await connection.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
  global engine, SessionLocal
  if engine is not None:
    await engine.dispose()
  engine = None
  SessionLocal = None
