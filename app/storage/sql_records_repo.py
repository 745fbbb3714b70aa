"""SQLAlchemy-backed record store for content jobs, writing styles and the automation queue."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.ai.errors import RecordStoreFailure
from app.core.database import get_session_factory
from app.jobs.models import AutomationJob, ContentJob, WritingStyle
from app.schema.records import AutomationQueueRow, ScriptRow, StyleRow
from app.storage.records_repo import RecordStore
from app.storage.records_support import build_job, build_style, merge_job, merge_style

logger = logging.getLogger(__name__)


def _row_to_job(row: ScriptRow) -> ContentJob:
  return ContentJob.from_dict(row.payload)


def _apply_job(row: ScriptRow, job: ContentJob) -> None:
  row.title = job.title
  row.stage = job.stage.value
  row.archived = job.archived
  row.created_at = job.created_at
  row.updated_at = job.updated_at
  row.payload = job.to_dict()


def _apply_style(row: StyleRow, style: WritingStyle) -> None:
  row.name = style.name
  row.created_at = style.created_at
  row.updated_at = style.updated_at
  row.payload = style.to_dict()


class SqlRecordStore(RecordStore):
  """Persist jobs as JSON payload rows with indexed summary columns."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()

  async def get_job(self, job_id: str) -> ContentJob | None:
    try:
      async with self._session_factory() as session:
        row = await session.get(ScriptRow, job_id)
        return _row_to_job(row) if row else None
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to load job {job_id}: {exc}") from exc

  async def save_job(self, updates: dict[str, Any], job_id: str | None = None) -> ContentJob:
    try:
      async with self._session_factory() as session:
        row = await session.get(ScriptRow, job_id) if job_id else None
        if row is None:
          job = build_job(updates, job_id)
          row = ScriptRow(job_id=job.job_id)
          session.add(row)
        else:
          job = merge_job(_row_to_job(row), updates)
        _apply_job(row, job)
        await session.commit()
        return job
    except SQLAlchemyError as exc:
      logger.error("Failed to save job %s: %s", job_id, exc)
      raise RecordStoreFailure(f"Failed to save job {job_id}: {exc}") from exc

  async def delete_job(self, job_id: str) -> bool:
    try:
      async with self._session_factory() as session:
        result = await session.execute(delete(ScriptRow).where(ScriptRow.job_id == job_id))
        await session.commit()
        return bool(result.rowcount)
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to delete job {job_id}: {exc}") from exc

  async def list_jobs(self, *, include_archived: bool = False) -> list[ContentJob]:
    stmt = select(ScriptRow).order_by(ScriptRow.created_at.desc())
    if not include_archived:
      stmt = stmt.where(ScriptRow.archived.is_(False))
    try:
      async with self._session_factory() as session:
        rows = (await session.execute(stmt)).scalars().all()
        return [_row_to_job(row) for row in rows]
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to list jobs: {exc}") from exc

  async def get_queue(self) -> list[AutomationJob]:
    try:
      async with self._session_factory() as session:
        rows = (await session.execute(select(AutomationQueueRow).order_by(AutomationQueueRow.position))).scalars().all()
        return [AutomationJob.from_dict(row.payload) for row in rows]
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to load automation queue: {exc}") from exc

  async def save_queue(self, queue: list[AutomationJob]) -> None:
    try:
      async with self._session_factory() as session:
        # Replace the whole queue in one transaction so positions stay dense.
        await session.execute(delete(AutomationQueueRow))
        session.add_all([AutomationQueueRow(position=position, entry_id=entry.id, payload=entry.to_dict()) for position, entry in enumerate(queue)])
        await session.commit()
    except SQLAlchemyError as exc:
      logger.error("Failed to save automation queue: %s", exc)
      raise RecordStoreFailure(f"Failed to save automation queue: {exc}") from exc

  async def get_style(self, style_id: str) -> WritingStyle | None:
    try:
      async with self._session_factory() as session:
        row = await session.get(StyleRow, style_id)
        return WritingStyle.from_dict(row.payload) if row else None
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to load style {style_id}: {exc}") from exc

  async def save_style(self, updates: dict[str, Any], style_id: str | None = None) -> WritingStyle:
    try:
      async with self._session_factory() as session:
        row = await session.get(StyleRow, style_id) if style_id else None
        if row is None:
          style = build_style(updates, style_id)
          row = StyleRow(style_id=style.style_id)
          session.add(row)
        else:
          style = merge_style(WritingStyle.from_dict(row.payload), updates)
        _apply_style(row, style)
        await session.commit()
        return style
    except SQLAlchemyError as exc:
      logger.error("Failed to save style %s: %s", style_id, exc)
      raise RecordStoreFailure(f"Failed to save style {style_id}: {exc}") from exc

  async def delete_style(self, style_id: str) -> bool:
    try:
      async with self._session_factory() as session:
        result = await session.execute(delete(StyleRow).where(StyleRow.style_id == style_id))
        await session.commit()
        return bool(result.rowcount)
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to delete style {style_id}: {exc}") from exc

  async def list_styles(self) -> list[WritingStyle]:
    try:
      async with self._session_factory() as session:
        rows = (await session.execute(select(StyleRow).order_by(func.lower(StyleRow.name)))).scalars().all()
        return [WritingStyle.from_dict(row.payload) for row in rows]
    except SQLAlchemyError as exc:
      raise RecordStoreFailure(f"Failed to list styles: {exc}") from exc
