import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.config import get_settings
from app.core.database import create_tables, dispose_engine
from app.core.logging import initialize_logging
from app.services.generation import GenerationRuntime
from app.storage.sql_records_repo import SqlRecordStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging, storage and the generation runtime for the process."""
  settings = get_settings()
  logger = logging.getLogger("app.core.lifespan")

  initialize_logging(settings)
  await create_tables()
  runtime = GenerationRuntime.from_settings(settings, SqlRecordStore())
  app.state.runtime = runtime
  logger.info("Startup complete (environment=%s).", settings.environment)

  try:
    yield
  finally:
    logger.info("Shutting down; stopping running generation.")
    await runtime.shutdown()
    await dispose_engine()
