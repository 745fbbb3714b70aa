import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.ai.errors import AllProvidersExhausted, AutomationStateError, GenerationCancelled, InvalidStageTransition, JobNotFoundError, ParseFailure, PipelineBusyError, RecordStoreFailure, StyleNotFoundError


def _coerce_json_safe(value: Any) -> Any:
  """Convert unsupported values into JSON-safe primitives for error responses."""
  if value is None or isinstance(value, bool | int | float | str):
    return value
  if isinstance(value, dict):
    return {str(key): _coerce_json_safe(item) for key, item in value.items()}
  if isinstance(value, list | tuple | set):
    return [_coerce_json_safe(item) for item in value]
  if isinstance(value, BaseException):
    error_message = str(value)
    return f"{type(value).__name__}: {error_message}" if error_message else type(value).__name__
  return str(value)


def _error_payload(detail: Any, *, request_id: str | None = None) -> dict[str, Any]:
  payload: dict[str, Any] = {"detail": detail}
  # Attach a request id so client reports can be correlated with server logs.
  if request_id:
    payload["requestId"] = request_id
  return payload


def _sanitize_validation_errors(errors: list[dict[str, Any]]) -> list[dict[str, Any]]:
  """Return validation errors without raw input payloads."""
  sanitized: list[dict[str, Any]] = []
  for error in errors:
    scrubbed = {key: value for key, value in error.items() if key != "input"}
    if "ctx" in scrubbed and isinstance(scrubbed["ctx"], dict):
      scrubbed_ctx = dict(scrubbed["ctx"])
      scrubbed_ctx.pop("input", None)
      scrubbed["ctx"] = scrubbed_ctx
    sanitized.append(_coerce_json_safe(scrubbed))
  return sanitized


def _request_id(request: Request) -> str | None:
  return getattr(request.state, "request_id", None)


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Global exception handler to catch unhandled errors."""
  logger = logging.getLogger("uvicorn.error")
  request_id = _request_id(request)
  logger.error("Global exception request_id=%s path=%s error_type=%s", request_id, request.url.path, type(exc).__name__, exc_info=True)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Internal Server Error", request_id=request_id))


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
  """Log request validation errors without leaking payloads."""
  request_id = _request_id(request)
  sanitized_errors = _sanitize_validation_errors(exc.errors())
  logger = logging.getLogger("uvicorn.error")
  logger.warning("Request validation failed request_id=%s path=%s method=%s errors=%s", request_id, request.url.path, request.method, sanitized_errors)
  return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=_error_payload(sanitized_errors, request_id=request_id))


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
  """Handle HTTPExceptions while avoiding leaking internal diagnostics."""
  request_id = _request_id(request)
  if exc.status_code >= 500:
    logger = logging.getLogger("uvicorn.error")
    logger.error("HTTPException request_id=%s path=%s status_code=%s detail=%s", request_id, request.url.path, exc.status_code, exc.detail)
    return JSONResponse(status_code=exc.status_code, content=_error_payload("Internal Server Error", request_id=request_id))
  return JSONResponse(status_code=exc.status_code, content=_error_payload(exc.detail, request_id=request_id))


_PIPELINE_STATUS: tuple[tuple[type[Exception], int], ...] = (
  (JobNotFoundError, status.HTTP_404_NOT_FOUND),
  (StyleNotFoundError, status.HTTP_404_NOT_FOUND),
  (InvalidStageTransition, status.HTTP_409_CONFLICT),
  (PipelineBusyError, status.HTTP_409_CONFLICT),
  (AutomationStateError, status.HTTP_409_CONFLICT),
  (ParseFailure, status.HTTP_422_UNPROCESSABLE_ENTITY),
  (GenerationCancelled, status.HTTP_409_CONFLICT),
  (AllProvidersExhausted, status.HTTP_502_BAD_GATEWAY),
)


async def pipeline_exception_handler(request: Request, exc: Exception) -> JSONResponse:
  """Map pipeline and generation errors onto HTTP status codes."""
  request_id = _request_id(request)
  status_code = next((code for error_type, code in _PIPELINE_STATUS if isinstance(exc, error_type)), status.HTTP_400_BAD_REQUEST)
  logging.getLogger("uvicorn.error").info("Pipeline request rejected request_id=%s path=%s status_code=%s error=%s", request_id, request.url.path, status_code, exc)
  return JSONResponse(status_code=status_code, content=_error_payload(str(exc), request_id=request_id))


async def record_store_exception_handler(request: Request, exc: RecordStoreFailure) -> JSONResponse:
  """Report storage failures as server errors without exposing driver messages."""
  request_id = _request_id(request)
  logging.getLogger("uvicorn.error").error("Record store failure request_id=%s path=%s", request_id, request.url.path, exc_info=exc)
  return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=_error_payload("Storage unavailable", request_id=request_id))


def pipeline_error_types() -> tuple[type[Exception], ...]:
  return tuple(error_type for error_type, _ in _PIPELINE_STATUS)
