"""Error taxonomy and provider failure classification for generation."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Literal

FailureCategory = Literal["auth", "rate_limit", "transport", "upstream", "unknown"]

_AUTH_HINTS: tuple[str, ...] = ("401", "403", "api key", "api_key", "unauthorized", "forbidden", "permission", "invalid key")
_RATE_LIMIT_HINTS: tuple[str, ...] = ("429", "rate limit", "quota", "resource exhausted", "resource_exhausted", "too many requests")
_TRANSPORT_HINTS: tuple[str, ...] = ("timeout", "timed out", "connection", "network", "reset by peer", "eof")
_UPSTREAM_HINTS: tuple[str, ...] = ("500", "502", "503", "504", "service unavailable", "bad gateway", "gateway", "overloaded", "internal error")


class GenerationError(Exception):
  """Base class for generation pipeline errors."""


class GenerationCancelled(GenerationError):
  """Raised when a cooperative cancellation token fires."""

  def __init__(self, reason: str = "cancelled") -> None:
    super().__init__(reason)
    self.reason = reason


class ParseFailure(GenerationError):
  """Raised when model output cannot be interpreted as the expected structure."""

  def __init__(self, stage: str, reason: str, raw_text: str | None = None) -> None:
    super().__init__(f"Failed to parse {stage}: {reason}")
    self.stage = stage
    self.reason = reason
    self.raw_text = raw_text


class ProviderHTTPError(GenerationError):
  """Raised by provider clients when the remote answers with a non-success status."""

  def __init__(self, provider: str, status_code: int, body: str = "") -> None:
    super().__init__(f"{provider} returned HTTP {status_code}: {body[:300]}")
    self.provider = provider
    self.status_code = status_code
    self.body = body


class ProviderFailure(GenerationError):
  """A single failed provider attempt; absorbed by rotation."""

  def __init__(self, provider: str, credential_index: int, category: FailureCategory, cause: BaseException) -> None:
    super().__init__(f"{provider}[{credential_index}] {category}: {cause}")
    self.provider = provider
    self.credential_index = credential_index
    self.category = category
    self.cause = cause


class AllProvidersExhausted(GenerationError):
  """Raised when every provider and credential has failed."""

  def __init__(self, providers: Sequence[str], failures: Sequence[ProviderFailure] = ()) -> None:
    if providers:
      message = f"All available API keys failed or are exhausted (tried: {', '.join(providers)})."
    else:
      message = "No provider credentials are configured."
    super().__init__(message)
    self.providers = list(providers)
    self.failures = list(failures)


class RecordStoreFailure(GenerationError):
  """Raised when the durable record store cannot read or write."""


class PipelineError(Exception):
  """Base class for pipeline usage errors."""


class InvalidStageTransition(PipelineError):
  """Raised when an operation is not allowed from the job's current stage."""

  def __init__(self, job_id: str, stage: str, operation: str) -> None:
    super().__init__(f"Cannot {operation} job {job_id} while it is {stage}.")
    self.job_id = job_id
    self.stage = stage
    self.operation = operation


class PipelineBusyError(PipelineError):
  """Raised when an operation is requested while another is in flight."""


class JobNotFoundError(PipelineError):
  """Raised when a job id is unknown to the record store."""

  def __init__(self, job_id: str) -> None:
    super().__init__(f"Job {job_id} not found.")
    self.job_id = job_id


class StyleNotFoundError(PipelineError):
  """Raised when a writing style id is unknown to the record store."""

  def __init__(self, style_id: str) -> None:
    super().__init__(f"Style {style_id} not found.")
    self.style_id = style_id


def _match_hint(message: str, hints: Iterable[str]) -> bool:
  """Return True when any hint appears in the message."""
  return any(hint in message for hint in hints)


def classify_provider_error(exc: BaseException) -> FailureCategory:
  """Map a provider exception onto a coarse failure category."""
  status_code = getattr(exc, "status_code", None) or getattr(exc, "code", None)
  if isinstance(status_code, int):
    if status_code in (401, 403):
      return "auth"
    if status_code == 429:
      return "rate_limit"
    if status_code >= 500:
      return "upstream"

  message = f"{type(exc).__name__} {exc}".lower()
  if _match_hint(message, _AUTH_HINTS):
    return "auth"
  if _match_hint(message, _RATE_LIMIT_HINTS):
    return "rate_limit"
  if _match_hint(message, _TRANSPORT_HINTS):
    return "transport"
  if _match_hint(message, _UPSTREAM_HINTS):
    return "upstream"
  return "unknown"


class AutomationStateError(PipelineError):
  """Raised when an automation control is used from the wrong driver state."""
