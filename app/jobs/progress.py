"""Pipeline observers and live progress tracking."""

from __future__ import annotations

import time
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Protocol

from app.ai.rotation import ProviderAttempt
from app.jobs.models import ContentJob, GenerationStage

MAX_TRACKED_LOGS = 100


class PipelineObserver(Protocol):
  """Receives pipeline events; every hook is awaited inline."""

  async def on_stage(self, job: ContentJob) -> None: ...

  async def on_attempt(self, job_id: str, attempt: ProviderAttempt) -> None: ...

  async def on_fragment(self, job_id: str, chapter_index: int | None, text: str) -> None: ...

  async def on_checkpoint(self, job: ContentJob) -> None: ...


class NullObserver:
  """Observer that ignores every event."""

  async def on_stage(self, job: ContentJob) -> None:
    return None

  async def on_attempt(self, job_id: str, attempt: ProviderAttempt) -> None:
    return None

  async def on_fragment(self, job_id: str, chapter_index: int | None, text: str) -> None:
    return None

  async def on_checkpoint(self, job: ContentJob) -> None:
    return None


@dataclass(frozen=True)
class ProgressSnapshot:
  """Live view of a job for progress polling."""

  job_id: str
  stage: GenerationStage
  provider: str | None = None
  credential_index: int | None = None
  current_chapter: int | None = None
  completed_chapters: int = 0
  total_chapters: int = 0
  partial_text: str = ""
  last_error: str | None = None
  logs: list[str] = field(default_factory=list)


def _stamp(message: str) -> str:
  return f"{time.strftime('%H:%M:%S')} {message}"


class ProgressTracker(PipelineObserver):
  """Track per-job progress, provider attempts and a rolling log window."""

  def __init__(self) -> None:
    self._snapshots: dict[str, ProgressSnapshot] = {}

  def snapshot(self, job_id: str) -> ProgressSnapshot | None:
    return self._snapshots.get(job_id)

  def forget(self, job_id: str) -> None:
    self._snapshots.pop(job_id, None)

  def _current(self, job_id: str) -> ProgressSnapshot:
    return self._snapshots.get(job_id) or ProgressSnapshot(job_id=job_id, stage=GenerationStage.IDLE)

  def add_logs(self, job_id: str, *messages: str) -> None:
    """Append log lines while preserving the rolling window."""
    self._extend(job_id, messages)

  def _extend(self, job_id: str, messages: Iterable[str]) -> None:
    current = self._current(job_id)
    logs = [*current.logs, *(_stamp(message) for message in messages)][-MAX_TRACKED_LOGS:]
    self._snapshots[job_id] = replace(current, logs=logs)

  async def on_stage(self, job: ContentJob) -> None:
    current = self._current(job.job_id)
    self._snapshots[job.job_id] = replace(current, stage=job.stage, last_error=job.last_error, completed_chapters=job.contiguous_chapter_count(), total_chapters=job.total_chapters)
    message = f"Stage -> {job.stage.value}"
    if job.last_error:
      message = f"{message} ({job.last_error})"
    self.add_logs(job.job_id, message)

  async def on_attempt(self, job_id: str, attempt: ProviderAttempt) -> None:
    current = self._current(job_id)
    self._snapshots[job_id] = replace(current, provider=attempt.provider, credential_index=attempt.credential_index, partial_text="")
    self.add_logs(job_id, f"Using {attempt.provider} credential #{attempt.credential_index + 1}")

  async def on_fragment(self, job_id: str, chapter_index: int | None, text: str) -> None:
    current = self._current(job_id)
    self._snapshots[job_id] = replace(current, current_chapter=chapter_index, partial_text=text)

  async def on_checkpoint(self, job: ContentJob) -> None:
    current = self._current(job.job_id)
    completed = job.contiguous_chapter_count()
    self._snapshots[job.job_id] = replace(current, stage=job.stage, completed_chapters=completed, total_chapters=job.total_chapters, partial_text="", last_error=job.last_error)
    self.add_logs(job.job_id, f"Checkpoint saved ({completed}/{job.total_chapters} chapters)")
