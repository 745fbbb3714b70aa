"""Domain models for content jobs and the automation queue."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerationStage(str, Enum):
  """Stages of the content generation state machine."""

  IDLE = "idle"
  GENERATING_OUTLINE = "generating_outline"
  AWAITING_OUTLINE_APPROVAL = "awaiting_outline_approval"
  GENERATING_HOOK = "generating_hook"
  AWAITING_HOOK_SELECTION = "awaiting_hook_selection"
  GENERATING_CHAPTERS = "generating_chapters"
  PAUSED = "paused"
  COMPLETED = "completed"
  ERROR = "error"


ACTIVE_STAGES = frozenset({GenerationStage.GENERATING_OUTLINE, GenerationStage.GENERATING_HOOK, GenerationStage.GENERATING_CHAPTERS})
TERMINAL_STAGES = frozenset({GenerationStage.COMPLETED, GenerationStage.ERROR})


class ChapterPlan(BaseModel):
  """Planned chapter from the outline."""

  model_config = ConfigDict(extra="forbid")

  index: int = Field(ge=1)
  summary: str = ""
  target_word_count: int = Field(gt=0)


class ScriptOutline(BaseModel):
  """Parsed outline; chapters are numbered 1..N in order."""

  model_config = ConfigDict(extra="forbid")

  title: str = Field(min_length=1)
  total_word_count: int = Field(ge=0)
  chapters: list[ChapterPlan] = Field(min_length=1)
  twist: str | None = None


@dataclass(frozen=True)
class ChapterResult:
  """Completed prose for a chapter."""

  index: int
  content: str


@dataclass
class ContentJob:
  """A long-form script moving through the generation stages."""

  job_id: str
  created_at: str
  updated_at: str
  title: str
  duration_minutes: int
  plot: str | None = None
  style_guide: str | None = None
  style_id: str | None = None
  outline: ScriptOutline | None = None
  raw_outline_text: str | None = None
  hook_candidates: list[str] = field(default_factory=list)
  approved_opening: str | None = None
  chapters: list[ChapterResult] = field(default_factory=list)
  stage: GenerationStage = GenerationStage.IDLE
  last_error: str | None = None
  title_candidates: list[str] = field(default_factory=list)
  final_title: str | None = None
  description: str | None = None
  archived: bool = False

  def chapter(self, index: int) -> ChapterResult | None:
    for result in self.chapters:
      if result.index == index:
        return result
    return None

  def contiguous_chapter_count(self) -> int:
    """Return how many chapters exist without a gap starting from chapter 1."""
    present = {result.index for result in self.chapters}
    count = 0
    while count + 1 in present:
      count += 1
    return count

  def with_chapter(self, result: ChapterResult) -> list[ChapterResult]:
    """Return the chapter list with `result` inserted or replaced, ordered by index."""
    others = [existing for existing in self.chapters if existing.index != result.index]
    return sorted([*others, result], key=lambda item: item.index)

  @property
  def total_chapters(self) -> int:
    return len(self.outline.chapters) if self.outline else 0

  def script_text(self) -> str:
    """Return the chapters joined in order as one narration script."""
    return "\n\n".join(result.content for result in sorted(self.chapters, key=lambda item: item.index))

  def to_dict(self) -> dict[str, Any]:
    return {
      "job_id": self.job_id,
      "created_at": self.created_at,
      "updated_at": self.updated_at,
      "title": self.title,
      "duration_minutes": self.duration_minutes,
      "plot": self.plot,
      "style_guide": self.style_guide,
      "style_id": self.style_id,
      "outline": self.outline.model_dump() if self.outline else None,
      "raw_outline_text": self.raw_outline_text,
      "hook_candidates": list(self.hook_candidates),
      "approved_opening": self.approved_opening,
      "chapters": [{"index": item.index, "content": item.content} for item in self.chapters],
      "stage": self.stage.value,
      "last_error": self.last_error,
      "title_candidates": list(self.title_candidates),
      "final_title": self.final_title,
      "description": self.description,
      "archived": self.archived,
    }

  @classmethod
  def from_dict(cls, data: dict[str, Any]) -> ContentJob:
    outline = data.get("outline")
    return cls(
      job_id=data["job_id"],
      created_at=data["created_at"],
      updated_at=data.get("updated_at") or data["created_at"],
      title=data["title"],
      duration_minutes=int(data["duration_minutes"]),
      plot=data.get("plot"),
      style_guide=data.get("style_guide"),
      style_id=data.get("style_id"),
      outline=ScriptOutline.model_validate(outline) if outline else None,
      raw_outline_text=data.get("raw_outline_text"),
      hook_candidates=list(data.get("hook_candidates") or []),
      approved_opening=data.get("approved_opening"),
      chapters=[ChapterResult(index=int(item["index"]), content=item["content"]) for item in data.get("chapters") or []],
      stage=GenerationStage(data.get("stage") or GenerationStage.IDLE.value),
      last_error=data.get("last_error"),
      title_candidates=list(data.get("title_candidates") or []),
      final_title=data.get("final_title"),
      description=data.get("description"),
      archived=bool(data.get("archived", False)),
    )


@dataclass
class AutomationJob:
  """A queued request for unattended generation."""

  id: str
  title: str
  duration_minutes: int
  plot: str | None = None
  style_guide: str | None = None
  style_id: str | None = None
  content_job_id: str | None = None

  def to_dict(self) -> dict[str, Any]:
    return {"id": self.id, "title": self.title, "duration_minutes": self.duration_minutes, "plot": self.plot, "style_guide": self.style_guide, "style_id": self.style_id, "content_job_id": self.content_job_id}

  @classmethod
  def from_dict(cls, data: dict[str, Any]) -> AutomationJob:
    return cls(
      id=data["id"],
      title=data["title"],
      duration_minutes=int(data["duration_minutes"]),
      plot=data.get("plot"),
      style_guide=data.get("style_guide"),
      style_id=data.get("style_id"),
      content_job_id=data.get("content_job_id"),
    )


@dataclass
class WritingStyle:
  """A named style guide, usually reverse-engineered from sample scripts."""

  style_id: str
  created_at: str
  updated_at: str
  name: str
  guide: dict[str, Any] = field(default_factory=dict)

  def prompt_text(self) -> str:
    """Render the guide as the text placed in chapter prompts."""
    return json.dumps(self.guide, indent=2, ensure_ascii=False)

  def to_dict(self) -> dict[str, Any]:
    return {"style_id": self.style_id, "created_at": self.created_at, "updated_at": self.updated_at, "name": self.name, "guide": dict(self.guide)}

  @classmethod
  def from_dict(cls, data: dict[str, Any]) -> WritingStyle:
    return cls(style_id=data["style_id"], created_at=data["created_at"], updated_at=data.get("updated_at") or data["created_at"], name=data["name"], guide=dict(data.get("guide") or {}))


class AutomationState(str, Enum):
  """Lifecycle of the automation queue driver."""

  IDLE = "idle"
  RUNNING = "running"
  COOLDOWN = "cooldown"
  PAUSED = "paused"
  STOPPED = "stopped"
  FINISHED = "finished"
