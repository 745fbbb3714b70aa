"""Helpers shared by record store implementations."""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any

from app.jobs.models import ContentJob, GenerationStage, WritingStyle
from app.utils.ids import generate_job_id, generate_style_id, utc_timestamp

_JOB_FIELDS = {item.name for item in fields(ContentJob)}
_STYLE_FIELDS = {item.name for item in fields(WritingStyle)}
_IMMUTABLE_FIELDS = {"job_id", "style_id", "created_at"}


def _check_fields(updates: dict[str, Any], known: set[str], kind: str) -> None:
  unknown = set(updates) - known
  if unknown:
    raise ValueError(f"Unknown {kind} fields: {', '.join(sorted(unknown))}")


def build_job(updates: dict[str, Any], job_id: str | None = None) -> ContentJob:
  """Create a new job from a partial payload."""
  _check_fields(updates, _JOB_FIELDS, "content job")
  if not updates.get("title") or not updates.get("duration_minutes"):
    raise ValueError("A new content job requires a title and duration_minutes.")
  now = utc_timestamp()
  values = {"stage": GenerationStage.IDLE, **updates, "job_id": job_id or updates.get("job_id") or generate_job_id(), "updated_at": now}
  values.setdefault("created_at", now)
  return ContentJob(**values)


def merge_job(existing: ContentJob, updates: dict[str, Any]) -> ContentJob:
  """Merge a partial payload into an existing job."""
  _check_fields(updates, _JOB_FIELDS, "content job")
  changes = {key: value for key, value in updates.items() if key not in _IMMUTABLE_FIELDS}
  return replace(existing, **changes, updated_at=utc_timestamp())


def build_style(updates: dict[str, Any], style_id: str | None = None) -> WritingStyle:
  """Create a new writing style from a partial payload."""
  _check_fields(updates, _STYLE_FIELDS, "writing style")
  if not updates.get("name") or not updates.get("guide"):
    raise ValueError("A new writing style requires a name and a guide.")
  now = utc_timestamp()
  values = {**updates, "style_id": style_id or updates.get("style_id") or generate_style_id(), "updated_at": now}
  values.setdefault("created_at", now)
  return WritingStyle(**values)


def merge_style(existing: WritingStyle, updates: dict[str, Any]) -> WritingStyle:
  """Merge a partial payload into an existing writing style."""
  _check_fields(updates, _STYLE_FIELDS, "writing style")
  changes = {key: value for key, value in updates.items() if key not in _IMMUTABLE_FIELDS}
  return replace(existing, **changes, updated_at=utc_timestamp())
