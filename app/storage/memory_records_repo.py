"""In-process record store used by tests and ephemeral runs."""

from __future__ import annotations

import copy
from typing import Any

from app.jobs.models import AutomationJob, ContentJob, WritingStyle
from app.storage.records_repo import RecordStore
from app.storage.records_support import build_job, build_style, merge_job, merge_style


class InMemoryRecordStore(RecordStore):
  """Keep jobs, styles and the queue in dictionaries, copying on every read and write."""

  def __init__(self) -> None:
    self._jobs: dict[str, ContentJob] = {}
    self._queue: list[AutomationJob] = []
    self._styles: dict[str, WritingStyle] = {}
    self.save_count = 0

  async def get_job(self, job_id: str) -> ContentJob | None:
    job = self._jobs.get(job_id)
    return copy.deepcopy(job) if job else None

  async def save_job(self, updates: dict[str, Any], job_id: str | None = None) -> ContentJob:
    existing = self._jobs.get(job_id) if job_id else None
    job = merge_job(existing, updates) if existing else build_job(updates, job_id)
    self._jobs[job.job_id] = copy.deepcopy(job)
    self.save_count += 1
    return copy.deepcopy(job)

  async def delete_job(self, job_id: str) -> bool:
    return self._jobs.pop(job_id, None) is not None

  async def list_jobs(self, *, include_archived: bool = False) -> list[ContentJob]:
    jobs = [copy.deepcopy(job) for job in self._jobs.values() if include_archived or not job.archived]
    return sorted(jobs, key=lambda job: job.created_at, reverse=True)

  async def get_queue(self) -> list[AutomationJob]:
    return copy.deepcopy(self._queue)

  async def save_queue(self, queue: list[AutomationJob]) -> None:
    self._queue = copy.deepcopy(queue)

  async def get_style(self, style_id: str) -> WritingStyle | None:
    style = self._styles.get(style_id)
    return copy.deepcopy(style) if style else None

  async def save_style(self, updates: dict[str, Any], style_id: str | None = None) -> WritingStyle:
    existing = self._styles.get(style_id) if style_id else None
    style = merge_style(existing, updates) if existing else build_style(updates, style_id)
    self._styles[style.style_id] = copy.deepcopy(style)
    return copy.deepcopy(style)

  async def delete_style(self, style_id: str) -> bool:
    return self._styles.pop(style_id, None) is not None

  async def list_styles(self) -> list[WritingStyle]:
    return sorted((copy.deepcopy(style) for style in self._styles.values()), key=lambda style: style.name.lower())
