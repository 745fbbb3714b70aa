"""Storage interface for content jobs, writing styles and the automation queue."""

from __future__ import annotations

from typing import Any, Protocol

from app.jobs.models import AutomationJob, ContentJob, WritingStyle


class RecordStore(Protocol):
  """Repository contract for durable job, style and queue persistence."""

  async def get_job(self, job_id: str) -> ContentJob | None:
    """Fetch a job by identifier."""

  async def save_job(self, updates: dict[str, Any], job_id: str | None = None) -> ContentJob:
    """Merge updates into an existing job, or create one when the id is None or unknown."""

  async def delete_job(self, job_id: str) -> bool:
    """Delete a job, returning whether it existed."""

  async def list_jobs(self, *, include_archived: bool = False) -> list[ContentJob]:
    """List jobs newest first."""

  async def get_queue(self) -> list[AutomationJob]:
    """Return the automation queue in FIFO order."""

  async def save_queue(self, queue: list[AutomationJob]) -> None:
    """Replace the stored automation queue."""

  async def get_style(self, style_id: str) -> WritingStyle | None:
    """Fetch a writing style by identifier."""

  async def save_style(self, updates: dict[str, Any], style_id: str | None = None) -> WritingStyle:
    """Merge updates into an existing style, or create one when the id is None or unknown."""

  async def delete_style(self, style_id: str) -> bool:
    """Delete a style, returning whether it existed."""

  async def list_styles(self) -> list[WritingStyle]:
    """List styles by name."""
