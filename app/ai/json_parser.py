"""Lenient JSON parsing helpers for LLM outputs."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*|\s*```$")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


def strip_json_fences(raw: str) -> str:
  """Remove a surrounding markdown code fence such as ```json ... ```."""
  return _FENCE_RE.sub("", raw.strip()).strip()


def parse_json_with_fallback(raw: str) -> Any:
  """Parse JSON, recovering from surrounding prose and trailing commas."""
  cleaned = strip_json_fences(raw)
  try:
    return json.loads(cleaned)
  except json.JSONDecodeError as exc:
    last_error = exc

  candidate = extract_json_block(cleaned)
  if candidate is None:
    raise last_error

  try:
    return json.loads(candidate)
  except json.JSONDecodeError:
    # Let the error from the comma-stripped candidate propagate.
    return json.loads(_TRAILING_COMMA_RE.sub(r"\1", candidate))


def extract_json_block(raw: str) -> str | None:
  """Return the first balanced JSON object or array in the text."""
  start: int | None = None
  stack: list[str] = []
  in_string = False
  escape = False
  closers = {"{": "}", "[": "]"}

  for index, char in enumerate(raw):
    if start is None:
      if char in closers:
        start = index
        stack.append(closers[char])
      continue

    if in_string:
      if escape:
        escape = False
      elif char == "\\":
        escape = True
      elif char == '"':
        in_string = False
      continue

    if char == '"':
      in_string = True
    elif char in closers:
      stack.append(closers[char])
    elif stack and char == stack[-1]:
      stack.pop()
      if not stack:
        return raw[start : index + 1]

  return None
