"""Stage state machine driving outline, hook and chapter generation for a content job."""

from __future__ import annotations

import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

from app.ai.cancellation import CancellationToken
from app.ai.errors import GenerationCancelled, InvalidStageTransition, JobNotFoundError, ParseFailure, PipelineBusyError, RecordStoreFailure
from app.ai.parsing import ParseError, parse_hooks, parse_outline, parse_style_guide, parse_titles
from app.ai.prompts import chapter_prompt, description_prompt, hooks_feedback_prompt, hooks_prompt, outline_prompt, plot_idea_prompt, style_analysis_prompt, titles_from_script_prompt
from app.ai.rotation import ProviderAttempt, RotationController, RotationState
from app.ai.session import GenerationSession
from app.jobs.models import ACTIVE_STAGES, ChapterResult, ContentJob, GenerationStage, WritingStyle
from app.jobs.progress import NullObserver, PipelineObserver
from app.storage.records_repo import RecordStore

logger = logging.getLogger(__name__)

Stage = GenerationStage
_RESUMABLE = frozenset({Stage.PAUSED, Stage.ERROR, Stage.COMPLETED})

# Operation keys for runs that are not tied to a content job.
STYLE_ANALYSIS_TASK = "style-analysis"
PLOT_IDEA_TASK = "plot-idea"

OPERATION_STAGES: dict[str, frozenset[Stage]] = {
  "generate_outline": frozenset({Stage.IDLE, Stage.ERROR}),
  "approve_outline": frozenset({Stage.AWAITING_OUTLINE_APPROVAL}),
  "regenerate_hooks": frozenset({Stage.AWAITING_HOOK_SELECTION}),
  "select_hook": frozenset({Stage.AWAITING_HOOK_SELECTION}),
  "resume": _RESUMABLE,
  "regenerate_chapter": _RESUMABLE,
  "generate_titles": frozenset({Stage.COMPLETED}),
  "generate_description": frozenset({Stage.COMPLETED}),
}


def ensure_stage(job: ContentJob, operation: str) -> None:
  """Raise InvalidStageTransition when `operation` is not allowed from the job's stage."""
  if job.stage not in OPERATION_STAGES[operation]:
    raise InvalidStageTransition(job.job_id, job.stage.value, operation.replace("_", " "))
  if operation == "generate_outline" and job.chapters:
    # A new outline would discard the chapters already written.
    raise InvalidStageTransition(job.job_id, job.stage.value, "regenerate the outline of a partly written")


class ScriptPipeline:
  """Runs one generation operation at a time and checkpoints after every unit of work."""

  def __init__(self, store: RecordStore, controller: RotationController, *, observer: PipelineObserver | None = None) -> None:
    self._store = store
    self._controller = controller
    self._observer = observer or NullObserver()
    self._rotation = RotationState()
    self._rotation_job_id: str | None = None
    self._active_job_id: str | None = None

  @property
  def busy(self) -> bool:
    return self._active_job_id is not None

  @property
  def active_job_id(self) -> str | None:
    return self._active_job_id

  @property
  def rotation(self) -> RotationState:
    return self._rotation

  def reset_rotation(self) -> None:
    """Start provider rotation over from the first provider and credential."""
    self._rotation = RotationState()

  @contextlib.asynccontextmanager
  async def _operation(self, job_id: str) -> AsyncIterator[None]:
    if self._active_job_id is not None:
      raise PipelineBusyError(f"Pipeline is busy with job {self._active_job_id}.")
    self._active_job_id = job_id
    try:
      if self._rotation_job_id != job_id:
        # Cursors never carry over from another job.
        self.reset_rotation()
        self._rotation_job_id = job_id
      yield
    finally:
      self._active_job_id = None

  @contextlib.asynccontextmanager
  async def _record_failures(self, job_id: str, *, cancel_stage: Stage, error_prefix: str = "") -> AsyncIterator[None]:
    """Move the job to `cancel_stage` on cancellation and to ERROR on failure, then re-raise."""
    try:
      yield
    except GenerationCancelled:
      await self._transition(job_id, cancel_stage)
      raise
    except RecordStoreFailure:
      raise
    except Exception as exc:
      logger.error("Job %s failed: %s%s", job_id, error_prefix, exc)
      await self._transition(job_id, Stage.ERROR, last_error=f"{error_prefix}{exc}")
      raise

  @contextlib.asynccontextmanager
  async def _note_failures(self, job_id: str, error_prefix: str) -> AsyncIterator[None]:
    """Record `last_error` without changing the stage, then re-raise."""
    try:
      yield
    except (GenerationCancelled, RecordStoreFailure):
      raise
    except Exception as exc:
      logger.error("Job %s: %s%s", job_id, error_prefix, exc)
      await self._store.save_job({"last_error": f"{error_prefix}{exc}"}, job_id)
      raise

  async def _load(self, job_id: str) -> ContentJob:
    job = await self._store.get_job(job_id)
    if job is None:
      raise JobNotFoundError(job_id)
    return job

  async def _transition(self, job_id: str, stage: Stage, **updates: Any) -> ContentJob:
    job = await self._store.save_job({"stage": stage, **updates}, job_id)
    logger.info("Job %s -> %s", job_id, stage.value)
    await self._observer.on_stage(job)
    return job

  async def _checkpoint(self, job_id: str, **updates: Any) -> ContentJob:
    job = await self._store.save_job(updates, job_id)
    await self._observer.on_checkpoint(job)
    return job

  def _session(self, job_id: str, chapter_index: int | None, token: CancellationToken) -> GenerationSession:
    async def on_fragment(text: str) -> None:
      await self._observer.on_fragment(job_id, chapter_index, text)

    async def on_attempt(attempt: ProviderAttempt) -> None:
      await self._observer.on_attempt(job_id, attempt)

    return GenerationSession(self._controller, self._rotation, token, on_fragment=on_fragment, on_attempt=on_attempt)

  async def create_job(self, title: str, duration_minutes: int, plot: str | None = None, style_guide: str | None = None, *, style_id: str | None = None) -> ContentJob:
    """Create a job in the idle stage."""
    if not title or not title.strip():
      raise ValueError("A content job requires a title.")
    if duration_minutes <= 0:
      raise ValueError("duration_minutes must be positive.")
    job = await self._store.save_job({"title": title.strip(), "duration_minutes": duration_minutes, "plot": plot, "style_guide": style_guide, "style_id": style_id, "stage": Stage.IDLE})
    logger.info("Created job %s (%s, %d minutes)", job.job_id, job.title, duration_minutes)
    await self._observer.on_stage(job)
    return job

  async def generate_outline(self, job_id: str, token: CancellationToken) -> ContentJob:
    """Generate and parse an outline; a stop returns the job to idle."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "generate_outline")
      self.reset_rotation()
      await self._transition(job_id, Stage.GENERATING_OUTLINE, last_error=None)

      async with self._record_failures(job_id, cancel_stage=Stage.IDLE):
        text = await self._session(job_id, None, token).run(outline_prompt(job.title, job.duration_minutes, job.plot))
        result = parse_outline(text)
        if isinstance(result, ParseError):
          # Keep the raw text so the caller can repair it via supply_outline.
          await self._store.save_job({"raw_outline_text": text}, job_id)
          raise ParseFailure("outline", result.reason, text)

      return await self._transition(job_id, Stage.AWAITING_OUTLINE_APPROVAL, outline=result.value, raw_outline_text=text, hook_candidates=[], approved_opening=None, chapters=[], last_error=None)

  async def supply_outline(self, job_id: str, text: str) -> ContentJob:
    """Replace the outline with caller supplied text; invalid text leaves the job untouched."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      if job.stage in ACTIVE_STAGES:
        raise InvalidStageTransition(job_id, job.stage.value, "replace the outline of")
      result = parse_outline(text)
      if isinstance(result, ParseError):
        raise ParseFailure("outline", result.reason, text)
      return await self._transition(job_id, Stage.AWAITING_OUTLINE_APPROVAL, outline=result.value, raw_outline_text=text, hook_candidates=[], approved_opening=None, chapters=[], last_error=None)

  async def _generate_hooks(self, job: ContentJob, prompt: str, token: CancellationToken) -> ContentJob:
    await self._transition(job.job_id, Stage.GENERATING_HOOK, hook_candidates=[], last_error=None)
    async with self._record_failures(job.job_id, cancel_stage=Stage.PAUSED):
      text = await self._session(job.job_id, None, token).run(prompt)
      result = parse_hooks(text)
      if isinstance(result, ParseError):
        raise ParseFailure("hooks", result.reason, text)
    return await self._transition(job.job_id, Stage.AWAITING_HOOK_SELECTION, hook_candidates=result.value)

  async def approve_outline(self, job_id: str, token: CancellationToken) -> ContentJob:
    """Accept the outline and generate opening hook candidates."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "approve_outline")
      return await self._generate_hooks(job, hooks_prompt(job.outline), token)

  async def regenerate_hooks(self, job_id: str, feedback: str, token: CancellationToken) -> ContentJob:
    """Replace the hook candidates using user feedback."""
    if not feedback or not feedback.strip():
      raise ValueError("Feedback is required to regenerate hooks.")
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "regenerate_hooks")
      return await self._generate_hooks(job, hooks_feedback_prompt(job.outline, feedback), token)

  async def select_hook(self, job_id: str, index: int, token: CancellationToken) -> ContentJob:
    """Approve a hook candidate and generate every chapter from chapter 1."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "select_hook")
      if not 0 <= index < len(job.hook_candidates):
        raise ValueError(f"Hook index {index} is out of range (0..{len(job.hook_candidates) - 1}).")
      job = await self._transition(job_id, Stage.GENERATING_CHAPTERS, approved_opening=job.hook_candidates[index], chapters=[], last_error=None)
      return await self._run_chapters(job, 1, token)

  async def _run_chapters(self, job: ContentJob, start: int, token: CancellationToken) -> ContentJob:
    outline = job.outline
    for plan in outline.chapters[start - 1 :]:
      previous = job.chapter(plan.index - 1)
      prompt = chapter_prompt(plan, outline=outline, opening=job.approved_opening, previous_chapter_text=previous.content if previous else None, style_guide=job.style_guide)
      async with self._record_failures(job.job_id, cancel_stage=Stage.PAUSED, error_prefix=f"Failed on chapter {plan.index}: "):
        text = await self._session(job.job_id, plan.index, token).run(prompt)
      job = await self._checkpoint(job.job_id, chapters=job.with_chapter(ChapterResult(index=plan.index, content=text)))
      logger.info("Job %s checkpointed chapter %d/%d", job.job_id, plan.index, len(outline.chapters))

    return await self._transition(job.job_id, Stage.COMPLETED, last_error=None)

  async def resume(self, job_id: str, token: CancellationToken) -> ContentJob:
    """Continue a paused or failed job from its first missing chapter."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "resume")
      if job.outline is None:
        raise InvalidStageTransition(job_id, job.stage.value, "resume (no outline yet)")
      self.reset_rotation()

      if job.approved_opening is None:
        return await self._generate_hooks(job, hooks_prompt(job.outline), token)

      start = job.contiguous_chapter_count() + 1
      if start > job.total_chapters:
        return await self._transition(job_id, Stage.COMPLETED, last_error=None)

      logger.info("Resuming job %s at chapter %d", job_id, start)
      job = await self._transition(job_id, Stage.GENERATING_CHAPTERS, last_error=None)
      return await self._run_chapters(job, start, token)

  async def regenerate_chapter(self, job_id: str, index: int, token: CancellationToken) -> ContentJob:
    """Rewrite an existing chapter in place without changing the stage."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "regenerate_chapter")
      if job.outline is None or job.chapter(index) is None:
        raise ValueError(f"Chapter {index} has not been generated yet.")

      plan = job.outline.chapters[index - 1]
      previous = job.chapter(index - 1)
      prompt = chapter_prompt(plan, outline=job.outline, opening=job.approved_opening, previous_chapter_text=previous.content if previous else None, style_guide=job.style_guide)
      async with self._note_failures(job_id, f"Failed to regenerate chapter {index}: "):
        text = await self._session(job_id, index, token).run(prompt)

      return await self._checkpoint(job_id, chapters=job.with_chapter(ChapterResult(index=index, content=text)), last_error=None)

  async def generate_titles(self, job_id: str, token: CancellationToken) -> ContentJob:
    """Suggest video titles for a completed script; a previous title choice is cleared."""
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "generate_titles")
      async with self._note_failures(job_id, "Failed to generate titles: "):
        text = await self._session(job_id, None, token).run(titles_from_script_prompt(job.script_text()))
        result = parse_titles(text)
        if isinstance(result, ParseError):
          raise ParseFailure("titles", result.reason, text)

      logger.info("Job %s received %d title candidates", job_id, len(result.value))
      return await self._store.save_job({"title_candidates": result.value, "final_title": None, "description": None, "last_error": None}, job_id)

  async def generate_description(self, job_id: str, title: str, token: CancellationToken) -> ContentJob:
    """Adopt `title` as the final title and write the video description for it."""
    if not title or not title.strip():
      raise ValueError("A title is required to write a description.")
    async with self._operation(job_id):
      job = await self._load(job_id)
      ensure_stage(job, "generate_description")
      async with self._note_failures(job_id, "Failed to generate the description: "):
        text = await self._session(job_id, None, token).run(description_prompt(title.strip(), job.script_text()))
        if not text.strip():
          raise ParseFailure("description", "response was empty", text)

      return await self._store.save_job({"final_title": title.strip(), "description": text.strip(), "last_error": None}, job_id)

  async def analyze_style(self, name: str, samples: list[str], token: CancellationToken) -> WritingStyle:
    """Reverse-engineer a style guide from sample scripts and add it to the style library."""
    samples = [sample for sample in samples if sample and sample.strip()]
    if not name or not name.strip():
      raise ValueError("A style requires a name.")
    if not samples:
      raise ValueError("At least one sample script is required.")

    async with self._operation(STYLE_ANALYSIS_TASK):
      self.reset_rotation()
      text = await GenerationSession(self._controller, self._rotation, token).run(style_analysis_prompt(samples))
      result = parse_style_guide(text)
      if isinstance(result, ParseError):
        raise ParseFailure("style guide", result.reason, text)
      style = await self._store.save_style({"name": name.strip(), "guide": result.value})

    logger.info("Saved style %s (%s) from %d samples", style.style_id, style.name, len(samples))
    return style

  async def generate_plot_idea(self, title: str, token: CancellationToken) -> str:
    """Return a short plot idea for a proposed title."""
    if not title or not title.strip():
      raise ValueError("A title is required for a plot idea.")
    async with self._operation(PLOT_IDEA_TASK):
      self.reset_rotation()
      text = await GenerationSession(self._controller, self._rotation, token).run(plot_idea_prompt(title))
    if not text.strip():
      raise ParseFailure("plot idea", "response was empty", text)
    return text.strip()
