"""Shared FastAPI dependencies."""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.services.generation import GenerationRuntime


def get_runtime(request: Request) -> GenerationRuntime:
  """Return the runtime built during application startup."""
  runtime = getattr(request.app.state, "runtime", None)
  if runtime is None:
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Generation runtime is not initialized.")
  return runtime
