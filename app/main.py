from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from app.ai.errors import RecordStoreFailure
from app.api.routes import automation, ideas, scripts, styles
from app.config import get_settings
from app.core.exceptions import global_exception_handler, http_exception_handler, pipeline_error_types, pipeline_exception_handler, record_store_exception_handler, request_validation_exception_handler
from app.core.lifespan import lifespan
from app.core.middleware import RequestLoggingMiddleware

settings = get_settings()

app = FastAPI(title="Scribe Engine", lifespan=lifespan)

app.add_middleware(CORSMiddleware, allow_origins=settings.allowed_origins, allow_credentials=True, allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"], allow_headers=["content-type", "authorization"], expose_headers=["content-length", "x-request-id"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(RecordStoreFailure, record_store_exception_handler)
for error_type in pipeline_error_types():
  app.add_exception_handler(error_type, pipeline_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(scripts.router, prefix="/v1/scripts", tags=["scripts"])
app.include_router(automation.router, prefix="/v1/automation", tags=["automation"])
app.include_router(styles.router, prefix="/v1/styles", tags=["styles"])
app.include_router(ideas.router, prefix="/v1/ideas", tags=["ideas"])
