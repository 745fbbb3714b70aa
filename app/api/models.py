from __future__ import annotations

from dataclasses import asdict
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr

from app.jobs.automation import AutomationStatus
from app.jobs.models import AutomationJob, AutomationState, ContentJob, GenerationStage, ScriptOutline, WritingStyle
from app.jobs.progress import ProgressSnapshot


class CreateScriptRequest(BaseModel):
  """Request payload for creating a script and starting its outline."""

  title: StrictStr = Field(min_length=1, max_length=300, description="Working title of the script.", examples=["The Lighthouse Keeper's Dog"])
  duration_minutes: int | None = Field(default=None, gt=0, le=600, description="Target narration length in minutes; defaults to SCRIBE_DEFAULT_DURATION_MINUTES.")
  plot: StrictStr | None = Field(default=None, max_length=5000, description="Optional plot guidance for the outline.")
  style_guide: StrictStr | None = Field(default=None, max_length=20000, description="Optional style guide applied to every chapter prompt.")
  style_id: StrictStr | None = Field(default=None, description="Library style to copy into the job instead of a free-text style guide.")
  start: bool = Field(default=True, description="Start outline generation immediately.")
  model_config = ConfigDict(extra="forbid")


class SupplyOutlineRequest(BaseModel):
  """Manually supplied outline text in the line-oriented outline format."""

  text: StrictStr = Field(min_length=1, description="Outline text with title, total word count and numbered chapters.")
  model_config = ConfigDict(extra="forbid")


class RegenerateHooksRequest(BaseModel):
  feedback: StrictStr = Field(min_length=1, max_length=2000, description="What to change about the previous hooks.")
  model_config = ConfigDict(extra="forbid")


class SelectHookRequest(BaseModel):
  index: int = Field(ge=0, description="Zero-based index into the hook candidates.")
  model_config = ConfigDict(extra="forbid")


class DescriptionRequest(BaseModel):
  title: StrictStr = Field(min_length=1, max_length=300, description="Final video title the description is written for.")
  model_config = ConfigDict(extra="forbid")


class PlotIdeaRequest(BaseModel):
  title: StrictStr = Field(min_length=1, max_length=300)
  model_config = ConfigDict(extra="forbid")


class PlotIdeaResponse(BaseModel):
  title: str
  plot: str


class ArchiveRequest(BaseModel):
  archived: bool = True
  model_config = ConfigDict(extra="forbid")


class QueueEntryRequest(BaseModel):
  """Request payload for adding an automation queue entry."""

  title: StrictStr = Field(min_length=1, max_length=300)
  duration_minutes: int | None = Field(default=None, gt=0, le=600)
  plot: StrictStr | None = Field(default=None, max_length=5000)
  style_guide: StrictStr | None = Field(default=None, max_length=20000)
  style_id: StrictStr | None = None
  model_config = ConfigDict(extra="forbid")


class ChapterResponse(BaseModel):
  index: int
  content: str
  word_count: int


class ScriptResponse(BaseModel):
  """Full view of a content job."""

  job_id: str
  created_at: str
  updated_at: str
  title: str
  duration_minutes: int
  plot: str | None
  style_guide: str | None
  style_id: str | None
  stage: GenerationStage
  outline: ScriptOutline | None
  raw_outline_text: str | None
  hook_candidates: list[str]
  approved_opening: str | None
  chapters: list[ChapterResponse]
  last_error: str | None
  title_candidates: list[str]
  final_title: str | None
  description: str | None
  archived: bool

  @classmethod
  def from_job(cls, job: ContentJob) -> ScriptResponse:
    chapters = [ChapterResponse(index=item.index, content=item.content, word_count=len(item.content.split())) for item in job.chapters]
    return cls(
      job_id=job.job_id,
      created_at=job.created_at,
      updated_at=job.updated_at,
      title=job.title,
      duration_minutes=job.duration_minutes,
      plot=job.plot,
      style_guide=job.style_guide,
      style_id=job.style_id,
      stage=job.stage,
      outline=job.outline,
      raw_outline_text=job.raw_outline_text,
      hook_candidates=list(job.hook_candidates),
      approved_opening=job.approved_opening,
      chapters=chapters,
      last_error=job.last_error,
      title_candidates=list(job.title_candidates),
      final_title=job.final_title,
      description=job.description,
      archived=job.archived,
    )


class ScriptSummaryResponse(BaseModel):
  job_id: str
  created_at: str
  title: str
  stage: GenerationStage
  completed_chapters: int
  total_chapters: int
  archived: bool
  last_error: str | None

  @classmethod
  def from_job(cls, job: ContentJob) -> ScriptSummaryResponse:
    return cls(job_id=job.job_id, created_at=job.created_at, title=job.title, stage=job.stage, completed_chapters=job.contiguous_chapter_count(), total_chapters=job.total_chapters, archived=job.archived, last_error=job.last_error)


class ProgressResponse(BaseModel):
  """Live progress of the operation running for a job."""

  job_id: str
  stage: GenerationStage
  provider: str | None = None
  credential_index: int | None = None
  current_chapter: int | None = None
  completed_chapters: int = 0
  total_chapters: int = 0
  partial_text: str = ""
  last_error: str | None = None
  logs: list[str] = Field(default_factory=list)

  @classmethod
  def from_snapshot(cls, snapshot: ProgressSnapshot) -> ProgressResponse:
    return cls(**asdict(snapshot))


class QueueEntryResponse(BaseModel):
  id: str
  title: str
  duration_minutes: int
  plot: str | None
  style_guide: str | None
  style_id: str | None
  content_job_id: str | None

  @classmethod
  def from_entry(cls, entry: AutomationJob) -> QueueEntryResponse:
    return cls(**entry.to_dict())


class AutomationStatusResponse(BaseModel):
  state: AutomationState
  processed: int
  current_entry_id: str | None
  current_job_id: str | None
  cooldown_remaining_seconds: float | None
  queue_length: int

  @classmethod
  def from_status(cls, status: AutomationStatus, queue_length: int) -> AutomationStatusResponse:
    return cls(state=status.state, processed=status.processed, current_entry_id=status.current_entry_id, current_job_id=status.current_job_id, cooldown_remaining_seconds=status.cooldown_remaining_seconds, queue_length=queue_length)


class StyleRequest(BaseModel):
  """A style guide written by hand rather than analysed from samples."""

  name: StrictStr = Field(min_length=1, max_length=200)
  guide: dict[str, Any] = Field(min_length=1, description="Style guide object placed verbatim in chapter prompts.")
  model_config = ConfigDict(extra="forbid")


class StyleUpdateRequest(BaseModel):
  name: StrictStr | None = Field(default=None, min_length=1, max_length=200)
  guide: dict[str, Any] | None = None
  model_config = ConfigDict(extra="forbid")


class StyleAnalysisRequest(BaseModel):
  """Sample scripts to reverse-engineer into a named style."""

  name: StrictStr = Field(min_length=1, max_length=200)
  samples: list[StrictStr] = Field(min_length=1, max_length=10, description="One or more sample scripts written in the target style.")
  model_config = ConfigDict(extra="forbid")


class StyleResponse(BaseModel):
  style_id: str
  created_at: str
  updated_at: str
  name: str
  guide: dict[str, Any]

  @classmethod
  def from_style(cls, style: WritingStyle) -> StyleResponse:
    return cls(**style.to_dict())
