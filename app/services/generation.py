"""Process-wide runtime that runs pipeline operations and automation as background tasks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from app.ai.cancellation import CancellationToken
from app.ai.errors import AutomationStateError, GenerationCancelled, JobNotFoundError, PipelineBusyError, StyleNotFoundError
from app.ai.providers.registry import build_provider_slots
from app.ai.rotation import RotationController
from app.config import Settings
from app.jobs.automation import AutomationDriver, AutomationReport, AutomationStatus
from app.jobs.models import AutomationJob, AutomationState, ContentJob, WritingStyle
from app.jobs.pipeline import PLOT_IDEA_TASK, STYLE_ANALYSIS_TASK, ScriptPipeline, ensure_stage
from app.jobs.progress import ProgressSnapshot, ProgressTracker
from app.storage.records_repo import RecordStore
from app.utils.ids import generate_queue_id

logger = logging.getLogger(__name__)

T = TypeVar("T")

Operation = Callable[[CancellationToken], Awaitable[ContentJob]]


class GenerationRuntime:
  """Owns the pipeline, the automation driver and the tasks running them."""

  def __init__(self, store: RecordStore, controller: RotationController, *, cooldown_seconds: float) -> None:
    self.store = store
    self.tracker = ProgressTracker()
    self.pipeline = ScriptPipeline(store, controller, observer=self.tracker)
    self.driver = AutomationDriver(self.pipeline, store, cooldown_seconds=cooldown_seconds)
    self._tasks: dict[str, asyncio.Task[None]] = {}
    self._tokens: dict[str, CancellationToken] = {}
    self._automation_task: asyncio.Task[AutomationReport | None] | None = None

  @classmethod
  def from_settings(cls, settings: Settings, store: RecordStore) -> GenerationRuntime:
    return cls(store, RotationController(build_provider_slots(settings)), cooldown_seconds=settings.automation_cooldown_seconds)

  def _ensure_idle(self) -> None:
    automation_pending = self._automation_task is not None and not self._automation_task.done()
    if self.pipeline.busy or self.driver.running or automation_pending or any(not task.done() for task in self._tasks.values()):
      raise PipelineBusyError("Another generation operation is in progress.")

  def _launch(self, job_id: str, label: str, operation: Operation) -> None:
    self._ensure_idle()
    token = CancellationToken()
    self._tokens[job_id] = token
    self._tasks[job_id] = asyncio.create_task(self._run(job_id, label, operation, token), name=f"{label}:{job_id}")

  async def _run(self, job_id: str, label: str, operation: Operation, token: CancellationToken) -> None:
    try:
      job = await operation(token)
      logger.info("%s for job %s finished at stage %s", label, job_id, job.stage.value)
    except GenerationCancelled as exc:
      logger.info("%s for job %s stopped: %s", label, job_id, exc.reason)
    except Exception:
      # Failures are already recorded on the job; the task boundary only logs them.
      logger.exception("%s for job %s failed", label, job_id)
    finally:
      self._tokens.pop(job_id, None)

  async def _run_inline(self, key: str, operation: Callable[[CancellationToken], Awaitable[T]]) -> T:
    """Run a short operation in the caller's task; `stop(key)` and shutdown still reach it."""
    self._ensure_idle()
    token = CancellationToken()
    self._tokens[key] = token
    try:
      return await operation(token)
    finally:
      self._tokens.pop(key, None)

  async def _job(self, job_id: str) -> ContentJob:
    job = await self.store.get_job(job_id)
    if job is None:
      raise JobNotFoundError(job_id)
    return job

  async def _launch_checked(self, job_id: str, operation_name: str, operation: Operation) -> ContentJob:
    job = await self._job(job_id)
    ensure_stage(job, operation_name)
    self._launch(job_id, operation_name, operation)
    return job

  async def _resolve_style(self, style_id: str | None, style_guide: str | None) -> str | None:
    """Return the style text a new job carries; a library style is copied in at creation."""
    if style_id is None:
      return style_guide
    if style_guide and style_guide.strip():
      raise ValueError("Pass either style_guide or style_id, not both.")
    return (await self.get_style(style_id)).prompt_text()

  async def create_script(self, title: str, duration_minutes: int, plot: str | None = None, style_guide: str | None = None, *, style_id: str | None = None, start: bool = True) -> ContentJob:
    """Create a job and, by default, start generating its outline."""
    if start:
      self._ensure_idle()
    style_guide = await self._resolve_style(style_id, style_guide)
    job = await self.pipeline.create_job(title, duration_minutes, plot, style_guide, style_id=style_id)
    if start:
      try:
        self._launch(job.job_id, "generate_outline", lambda token: self.pipeline.generate_outline(job.job_id, token))
      except PipelineBusyError:
        # Another operation started while the job was being saved; leave no orphan behind.
        await self.store.delete_job(job.job_id)
        raise
    return job

  async def generate_outline(self, job_id: str) -> ContentJob:
    return await self._launch_checked(job_id, "generate_outline", lambda token: self.pipeline.generate_outline(job_id, token))

  async def supply_outline(self, job_id: str, text: str) -> ContentJob:
    self._ensure_idle()
    return await self.pipeline.supply_outline(job_id, text)

  async def approve_outline(self, job_id: str) -> ContentJob:
    return await self._launch_checked(job_id, "approve_outline", lambda token: self.pipeline.approve_outline(job_id, token))

  async def regenerate_hooks(self, job_id: str, feedback: str) -> ContentJob:
    if not feedback.strip():
      raise ValueError("Feedback is required to regenerate hooks.")
    return await self._launch_checked(job_id, "regenerate_hooks", lambda token: self.pipeline.regenerate_hooks(job_id, feedback, token))

  async def select_hook(self, job_id: str, index: int) -> ContentJob:
    job = await self._job(job_id)
    ensure_stage(job, "select_hook")
    if not 0 <= index < len(job.hook_candidates):
      raise ValueError(f"Hook index {index} is out of range.")
    self._launch(job_id, "select_hook", lambda token: self.pipeline.select_hook(job_id, index, token))
    return job

  async def resume(self, job_id: str) -> ContentJob:
    return await self._launch_checked(job_id, "resume", lambda token: self.pipeline.resume(job_id, token))

  async def regenerate_chapter(self, job_id: str, index: int) -> ContentJob:
    job = await self._job(job_id)
    ensure_stage(job, "regenerate_chapter")
    if job.chapter(index) is None:
      raise ValueError(f"Chapter {index} has not been generated yet.")
    self._launch(job_id, "regenerate_chapter", lambda token: self.pipeline.regenerate_chapter(job_id, index, token))
    return job

  async def generate_titles(self, job_id: str) -> ContentJob:
    """Suggest titles for a completed script and return the updated job."""
    job = await self._job(job_id)
    ensure_stage(job, "generate_titles")
    return await self._run_inline(job_id, lambda token: self.pipeline.generate_titles(job_id, token))

  async def generate_description(self, job_id: str, title: str) -> ContentJob:
    """Adopt `title` for a completed script and write its description."""
    if not title.strip():
      raise ValueError("A title is required to write a description.")
    job = await self._job(job_id)
    ensure_stage(job, "generate_description")
    return await self._run_inline(job_id, lambda token: self.pipeline.generate_description(job_id, title, token))

  async def plot_idea(self, title: str) -> str:
    return await self._run_inline(PLOT_IDEA_TASK, lambda token: self.pipeline.generate_plot_idea(title, token))

  async def list_styles(self) -> list[WritingStyle]:
    return await self.store.list_styles()

  async def get_style(self, style_id: str) -> WritingStyle:
    style = await self.store.get_style(style_id)
    if style is None:
      raise StyleNotFoundError(style_id)
    return style

  async def create_style(self, name: str, guide: dict[str, Any]) -> WritingStyle:
    if not name.strip() or not guide:
      raise ValueError("A style requires a name and a non-empty guide.")
    return await self.store.save_style({"name": name.strip(), "guide": guide})

  async def update_style(self, style_id: str, *, name: str | None = None, guide: dict[str, Any] | None = None) -> WritingStyle:
    """Rename a style or replace its guide; jobs created earlier keep their copy."""
    await self.get_style(style_id)
    updates: dict[str, Any] = {}
    if name is not None:
      if not name.strip():
        raise ValueError("A style name cannot be blank.")
      updates["name"] = name.strip()
    if guide is not None:
      if not guide:
        raise ValueError("A style guide cannot be empty.")
      updates["guide"] = guide
    return await self.store.save_style(updates, style_id)

  async def delete_style(self, style_id: str) -> None:
    if not await self.store.delete_style(style_id):
      raise StyleNotFoundError(style_id)

  async def analyze_style(self, name: str, samples: list[str]) -> WritingStyle:
    """Build a style guide from sample scripts and save it to the library."""
    return await self._run_inline(STYLE_ANALYSIS_TASK, lambda token: self.pipeline.analyze_style(name, samples, token))

  def stop(self, job_id: str) -> bool:
    """Signal the running operation for a job to stop; a job run by automation pauses the queue."""
    token = self._tokens.get(job_id)
    if token is not None:
      token.cancel("stopped by user")
      return True
    if self.driver.status().current_job_id == job_id:
      return self.driver.request_pause()
    return False

  async def wait(self, job_id: str) -> None:
    """Wait for the background operation of a job to settle."""
    task = self._tasks.get(job_id)
    if task is not None:
      await asyncio.wait({task})

  async def list_scripts(self, *, include_archived: bool = False) -> list[ContentJob]:
    return await self.store.list_jobs(include_archived=include_archived)

  async def get_script(self, job_id: str) -> ContentJob:
    return await self._job(job_id)

  async def set_archived(self, job_id: str, archived: bool) -> ContentJob:
    await self._job(job_id)
    return await self.store.save_job({"archived": archived}, job_id)

  async def delete_script(self, job_id: str) -> None:
    if self.pipeline.active_job_id == job_id:
      raise PipelineBusyError(f"Job {job_id} is being generated; stop it first.")
    if not await self.store.delete_job(job_id):
      raise JobNotFoundError(job_id)
    self.tracker.forget(job_id)
    self._tasks.pop(job_id, None)

  def progress(self, job_id: str) -> ProgressSnapshot | None:
    return self.tracker.snapshot(job_id)

  async def get_queue(self) -> list[AutomationJob]:
    return await self.store.get_queue()

  async def enqueue(self, title: str, duration_minutes: int, plot: str | None = None, style_guide: str | None = None, *, style_id: str | None = None) -> AutomationJob:
    if not title.strip() or duration_minutes <= 0:
      raise ValueError("Queue entries require a title and a positive duration.")
    style_guide = await self._resolve_style(style_id, style_guide)
    entry = AutomationJob(id=generate_queue_id(), title=title.strip(), duration_minutes=duration_minutes, plot=plot, style_guide=style_guide, style_id=style_id)
    queue = await self.store.get_queue()
    await self.store.save_queue([*queue, entry])
    logger.info("Queued automation entry %s (%s)", entry.id, entry.title)
    return entry

  async def dequeue(self, entry_id: str) -> bool:
    status = self.driver.status()
    if self.driver.state in (AutomationState.RUNNING, AutomationState.COOLDOWN, AutomationState.PAUSED) and status.current_entry_id == entry_id:
      raise AutomationStateError("The entry currently being processed cannot be removed.")
    queue = await self.store.get_queue()
    remaining = [entry for entry in queue if entry.id != entry_id]
    if len(remaining) == len(queue):
      return False
    await self.store.save_queue(remaining)
    return True

  def _launch_automation(self, runner: Callable[[], Awaitable[AutomationReport]]) -> None:
    async def run() -> AutomationReport | None:
      try:
        report = await runner()
      except Exception:
        logger.exception("Automation run failed")
        return None
      logger.info("Automation run ended in %s: processed=%d completed=%d failed=%d", self.driver.state.value, report.processed, len(report.completed), len(report.failed))
      return report

    self._automation_task = asyncio.create_task(run(), name="automation")

  def start_automation(self) -> AutomationStatus:
    self._ensure_idle()
    if self.driver.state == AutomationState.PAUSED:
      raise AutomationStateError("Automation is paused; resume it instead.")
    self._launch_automation(self.driver.run)
    return self.automation_status()

  def pause_automation(self) -> AutomationStatus:
    if not self.driver.request_pause():
      raise AutomationStateError(f"Automation is not running ({self.driver.state.value}).")
    return self.automation_status()

  def resume_automation(self) -> AutomationStatus:
    if self.driver.state != AutomationState.PAUSED:
      raise AutomationStateError(f"Automation can only resume from paused, not {self.driver.state.value}.")
    self._ensure_idle()
    self._launch_automation(self.driver.resume)
    return self.automation_status()

  def stop_automation(self) -> AutomationStatus:
    if not self.driver.request_stop():
      raise AutomationStateError(f"Automation is not running ({self.driver.state.value}).")
    return self.automation_status()

  def automation_status(self) -> AutomationStatus:
    return self.driver.status()

  async def wait_for_automation(self) -> AutomationReport | None:
    if self._automation_task is None:
      return None
    return await self._automation_task

  async def shutdown(self) -> None:
    """Stop every running operation and wait for the tasks to settle."""
    for token in list(self._tokens.values()):
      token.cancel("shutdown")
    self.driver.request_stop()
    pending: list[asyncio.Task[Any]] = [task for task in self._tasks.values() if not task.done()]
    if self._automation_task is not None and not self._automation_task.done():
      pending.append(self._automation_task)
    if pending:
      await asyncio.wait(pending)
