"""Identifier utilities."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime


def generate_job_id() -> str:
  """Return a new content job identifier."""
  return str(uuid.uuid4())


def generate_queue_id() -> str:
  """Return a new automation queue entry identifier."""
  return f"auto_{uuid.uuid4().hex[:12]}"


def utc_timestamp() -> str:
  """Return the current time as an ISO-8601 UTC string."""
  return datetime.now(UTC).isoformat()


def generate_style_id() -> str:
  """Return a new writing style identifier."""
  return f"style_{uuid.uuid4().hex[:12]}"
