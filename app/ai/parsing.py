"""Structured parsing of model responses into tagged results."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from app.ai.json_parser import parse_json_with_fallback
from app.jobs.models import ChapterPlan, ScriptOutline

T = TypeVar("T")

_CHAPTER_RE = re.compile(r"^chapter\s+(\d+)\b", re.IGNORECASE)
_SUMMARY_RE = re.compile(r"^summary:\s*(.*)$", re.IGNORECASE)
_WORD_COUNT_RE = re.compile(r"^word count:\s*~?\s*([\d,]+)", re.IGNORECASE)
_HEADER_PREFIXES = ("title:", "video title:", "total word count:", "primary twist:", "twist:")
# Markdown heading, quote and emphasis markers models like to add around labels.
_LEADING_MARKS_RE = re.compile(r"^[#>*_\s]+")
_EMPHASIS_RE = re.compile(r"\*\*|__")


@dataclass(frozen=True)
class ParseOk(Generic[T]):
  value: T

  @property
  def ok(self) -> bool:
    return True


@dataclass(frozen=True)
class ParseError:
  reason: str

  @property
  def ok(self) -> bool:
    return False


ParseResult = ParseOk[T] | ParseError


def _clean_line(raw: str) -> str:
  return _EMPHASIS_RE.sub("", _LEADING_MARKS_RE.sub("", raw)).strip()


def _header_value(lines: list[str], *prefixes: str) -> str | None:
  for line in lines:
    lowered = line.lower()
    for prefix in prefixes:
      if lowered.startswith(prefix):
        return line[len(prefix) :].strip()
  return None


def _parse_count(raw: str) -> int | None:
  digits = raw.lstrip("~ ").replace(",", "")
  match = re.match(r"\d+", digits)
  return int(match.group(0)) if match else None


def parse_outline(text: str) -> ParseResult[ScriptOutline]:
  """Parse the line-oriented outline format; any invalid chapter rejects the whole outline."""
  lines = [_clean_line(raw) for raw in text.splitlines()]
  lines = [line for line in lines if line]

  title = _header_value(lines, "video title:", "title:")
  total_raw = _header_value(lines, "total word count:")
  twist = _header_value(lines, "primary twist:", "twist:")
  if not title:
    return ParseError("missing title line")
  if total_raw is None:
    return ParseError("missing total word count line")
  total = _parse_count(total_raw)
  if total is None:
    return ParseError(f"total word count is not a number: {total_raw!r}")

  drafts: list[dict[str, object]] = []
  for line in lines:
    chapter_match = _CHAPTER_RE.match(line)
    if chapter_match:
      drafts.append({"index": int(chapter_match.group(1)), "summary": [], "word_count": None})
      continue
    if not drafts:
      continue

    current = drafts[-1]
    summary_match = _SUMMARY_RE.match(line)
    count_match = _WORD_COUNT_RE.match(line)
    if summary_match:
      current["summary"].append(summary_match.group(1).strip())  # type: ignore[union-attr]
    elif count_match:
      current["word_count"] = int(count_match.group(1).replace(",", ""))
    elif current["summary"] and not line.lower().startswith(_HEADER_PREFIXES):
      # Continuation of a multi-line summary.
      current["summary"].append(line)  # type: ignore[union-attr]

  if not drafts:
    return ParseError("outline declares no chapters")

  for position, draft in enumerate(drafts, start=1):
    if draft["index"] != position:
      return ParseError(f"chapters must be numbered 1..N in order; found chapter {draft['index']} at position {position}")
    if not draft["word_count"]:
      return ParseError(f"chapter {draft['index']} is missing a positive word count")

  try:
    outline = ScriptOutline(
      title=title,
      total_word_count=total,
      twist=twist or None,
      chapters=[ChapterPlan(index=int(draft["index"]), summary=" ".join(draft["summary"]).strip(), target_word_count=int(draft["word_count"])) for draft in drafts],  # type: ignore[arg-type]
    )
  except ValidationError as exc:
    return ParseError(f"outline failed validation: {exc.errors()[0]['msg']}")
  return ParseOk(outline)


def _parse_string_list(text: str, label: str) -> ParseResult[list[str]]:
  try:
    payload = parse_json_with_fallback(text)
  except json.JSONDecodeError as exc:
    return ParseError(f"{label} are not valid JSON: {exc.msg}")

  if not isinstance(payload, list):
    return ParseError(f"{label} must be a JSON array")
  if not payload:
    return ParseError(f"{label} array is empty")
  if not all(isinstance(item, str) and item.strip() for item in payload):
    return ParseError(f"every entry in {label} must be a non-empty string")
  return ParseOk([item.strip() for item in payload])


def parse_hooks(text: str) -> ParseResult[list[str]]:
  """Parse a JSON array of non-empty hook strings, tolerating code fences."""
  return _parse_string_list(text, "hooks")


def parse_titles(text: str) -> ParseResult[list[str]]:
  """Parse a JSON array of candidate video titles."""
  return _parse_string_list(text, "titles")


def parse_style_guide(text: str) -> ParseResult[dict[str, Any]]:
  """Parse a style analysis into a non-empty JSON object."""
  try:
    payload = parse_json_with_fallback(text)
  except json.JSONDecodeError as exc:
    return ParseError(f"style guide is not valid JSON: {exc.msg}")
  if not isinstance(payload, dict) or not payload:
    return ParseError("style guide must be a non-empty JSON object")
  return ParseOk(payload)
