"""Unattended FIFO processing of the automation queue with pausable cooldowns."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from app.ai.cancellation import CancellationToken, cancellable_sleep
from app.ai.errors import AutomationStateError, GenerationCancelled, InvalidStageTransition, PipelineBusyError, RecordStoreFailure
from app.jobs.models import ACTIVE_STAGES, TERMINAL_STAGES, AutomationJob, AutomationState, ContentJob, GenerationStage
from app.jobs.pipeline import ScriptPipeline
from app.storage.records_repo import RecordStore

logger = logging.getLogger(__name__)

# Automation always approves the first generated hook.
AUTOMATION_HOOK_INDEX = 0


@dataclass
class AutomationReport:
  """Outcome of one run of the queue."""

  processed: int = 0
  completed: list[str] = field(default_factory=list)
  failed: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class AutomationStatus:
  state: AutomationState
  processed: int
  current_entry_id: str | None
  current_job_id: str | None
  cooldown_remaining_seconds: float | None


class AutomationDriver:
  """Drives queued jobs through the pipeline one at a time."""

  def __init__(self, pipeline: ScriptPipeline, store: RecordStore, *, cooldown_seconds: float) -> None:
    self._pipeline = pipeline
    self._store = store
    self._cooldown_seconds = cooldown_seconds
    self._state = AutomationState.IDLE
    self._token: CancellationToken | None = None
    self._requested_state: AutomationState | None = None
    self._report = AutomationReport()
    self._current_entry_id: str | None = None
    self._current_job_id: str | None = None
    self._cooldown_deadline: float | None = None

  @property
  def state(self) -> AutomationState:
    return self._state

  @property
  def running(self) -> bool:
    return self._state in (AutomationState.RUNNING, AutomationState.COOLDOWN)

  def status(self) -> AutomationStatus:
    remaining = None
    if self._cooldown_deadline is not None:
      remaining = max(self._cooldown_deadline - time.monotonic(), 0.0)
    return AutomationStatus(state=self._state, processed=self._report.processed, current_entry_id=self._current_entry_id, current_job_id=self._current_job_id, cooldown_remaining_seconds=remaining)

  def _set_state(self, state: AutomationState) -> None:
    if state != self._state:
      logger.info("Automation %s -> %s", self._state.value, state.value)
    self._state = state

  def request_pause(self) -> bool:
    """Interrupt the running job or cooldown and keep the queue head for resume."""
    return self._interrupt(AutomationState.PAUSED)

  def request_stop(self) -> bool:
    """Interrupt the running job or cooldown and stop the driver."""
    return self._interrupt(AutomationState.STOPPED)

  def _interrupt(self, state: AutomationState) -> bool:
    if not self.running or self._token is None:
      return False
    self._requested_state = state
    self._token.cancel(f"automation {state.value}")
    return True

  async def resume(self) -> AutomationReport:
    """Continue a paused queue from the same job."""
    if self._state != AutomationState.PAUSED:
      raise AutomationStateError(f"Automation can only resume from paused, not {self._state.value}.")
    return await self.run()

  async def run(self) -> AutomationReport:
    """Process the queue until it is empty or a pause/stop is requested."""
    if self.running:
      raise AutomationStateError("Automation is already running.")
    if self._pipeline.busy:
      raise PipelineBusyError(f"Pipeline is busy with job {self._pipeline.active_job_id}.")

    self._token = CancellationToken()
    self._requested_state = None
    self._report = AutomationReport()
    self._set_state(AutomationState.RUNNING)
    try:
      while True:
        queue = await self._store.get_queue()
        if not queue:
          self._set_state(AutomationState.FINISHED)
          logger.info("Automation queue finished (%d processed)", self._report.processed)
          return self._report

        entry = queue[0]
        await self._process(entry)
        remaining = [item for item in await self._store.get_queue() if item.id != entry.id]
        await self._store.save_queue(remaining)
        self._report.processed += 1

        if remaining:
          await self._cooldown()
    except GenerationCancelled:
      self._set_state(self._requested_state or AutomationState.PAUSED)
      return self._report
    except Exception:
      self._set_state(AutomationState.STOPPED)
      raise
    finally:
      self._current_entry_id = None
      self._current_job_id = None
      self._cooldown_deadline = None

  async def _cooldown(self) -> None:
    self._set_state(AutomationState.COOLDOWN)
    self._cooldown_deadline = time.monotonic() + self._cooldown_seconds
    logger.info("Automation cooling down for %.0f seconds", self._cooldown_seconds)
    await cancellable_sleep(self._cooldown_seconds, self._token)
    self._cooldown_deadline = None
    self._set_state(AutomationState.RUNNING)

  async def _job_for(self, entry: AutomationJob) -> ContentJob:
    """Reuse the job a previous run created for this entry, or create one."""
    job = await self._store.get_job(entry.content_job_id) if entry.content_job_id else None
    if job is None:
      job = await self._pipeline.create_job(entry.title, entry.duration_minutes, entry.plot, entry.style_guide, style_id=entry.style_id)
      queue = await self._store.get_queue()
      for item in queue:
        if item.id == entry.id:
          item.content_job_id = job.job_id
      await self._store.save_queue(queue)
      return job

    if job.stage in ACTIVE_STAGES:
      # Interrupted by a crash; make it resumable again.
      stage = GenerationStage.PAUSED if job.outline else GenerationStage.IDLE
      job = await self._store.save_job({"stage": stage}, job.job_id)
    return job

  async def _process(self, entry: AutomationJob) -> None:
    self._current_entry_id = entry.id
    self._pipeline.reset_rotation()
    job = await self._job_for(entry)
    self._current_job_id = job.job_id
    logger.info("Automation starting entry %s (%s) as job %s", entry.id, entry.title, job.job_id)

    try:
      job = await self._drive(job)
    except (GenerationCancelled, RecordStoreFailure, PipelineBusyError):
      raise
    except Exception as exc:
      logger.error("Automation job %s failed: %s", job.job_id, exc)
      latest = await self._store.get_job(job.job_id)
      if latest is not None and latest.stage != GenerationStage.ERROR:
        await self._store.save_job({"stage": GenerationStage.ERROR, "last_error": str(exc)}, job.job_id)
      self._report.failed.append(job.job_id)
      return

    if job.stage == GenerationStage.COMPLETED:
      self._report.completed.append(job.job_id)
    else:
      self._report.failed.append(job.job_id)

  async def _drive(self, job: ContentJob) -> ContentJob:
    token = self._token
    while job.stage not in TERMINAL_STAGES:
      if job.stage == GenerationStage.IDLE:
        job = await self._pipeline.generate_outline(job.job_id, token)
      elif job.stage == GenerationStage.AWAITING_OUTLINE_APPROVAL:
        job = await self._pipeline.approve_outline(job.job_id, token)
      elif job.stage == GenerationStage.AWAITING_HOOK_SELECTION:
        job = await self._pipeline.select_hook(job.job_id, AUTOMATION_HOOK_INDEX, token)
      elif job.stage == GenerationStage.PAUSED:
        job = await self._pipeline.resume(job.job_id, token)
      else:
        raise InvalidStageTransition(job.job_id, job.stage.value, "automate")
    return job
