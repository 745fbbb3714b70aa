"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from app.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

KNOWN_PROVIDERS = ("gemini", "groq", "openrouter")


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Scribe service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  database_url: str
  log_dir: str | None
  log_max_bytes: int
  log_backup_count: int
  provider_order: tuple[str, ...]
  gemini_api_keys: tuple[str, ...]
  groq_api_keys: tuple[str, ...]
  openrouter_api_keys: tuple[str, ...]
  gemini_model: str
  groq_model: str
  openrouter_model: str
  openrouter_base_url: str
  provider_timeout_seconds: float
  automation_cooldown_seconds: float
  default_duration_minutes: int

  def credentials_for(self, provider: str) -> tuple[str, ...]:
    """Return the ordered credential list configured for a provider."""
    return {"gemini": self.gemini_api_keys, "groq": self.groq_api_keys, "openrouter": self.openrouter_api_keys}.get(provider, ())


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return ("http://localhost:3000", "http://localhost:5173")

  origins = [origin.strip() for origin in raw.split(",") if origin.strip()]

  if "*" in origins:
    raise ValueError("SCRIBE_ALLOWED_ORIGINS must not include wildcard origins.")

  return tuple(origins)


def _parse_list(raw: str | None) -> tuple[str, ...]:
  """Split a comma separated value, dropping blank entries."""
  if not raw:
    return ()

  return tuple(item.strip() for item in raw.split(",") if item.strip())


def _parse_provider_order(raw: str | None) -> tuple[str, ...]:
  order = _parse_list(raw) or KNOWN_PROVIDERS
  normalized = tuple(name.lower() for name in order)
  unknown = [name for name in normalized if name not in KNOWN_PROVIDERS]
  if unknown:
    raise ValueError(f"SCRIBE_PROVIDER_ORDER contains unknown providers: {', '.join(unknown)}")

  if len(set(normalized)) != len(normalized):
    raise ValueError("SCRIBE_PROVIDER_ORDER must not repeat a provider.")

  return normalized


def _parse_bool(raw: str | None) -> bool:
  """Parse a boolean-ish string from environment variables."""

  if raw is None:
    return False

  normalized = raw.strip().lower()
  return normalized in {"1", "true", "yes", "on"}


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""

  environment = os.getenv("SCRIBE_ENV", "development").lower()

  # Toggle verbose error output and SQL echo in non-production environments.
  debug = _parse_bool(os.getenv("SCRIBE_DEBUG"))

  log_max_bytes = int(os.getenv("SCRIBE_LOG_MAX_BYTES", "5242880"))  # 5MB default
  if log_max_bytes <= 0:
    raise ValueError("SCRIBE_LOG_MAX_BYTES must be a positive integer.")

  log_backup_count = int(os.getenv("SCRIBE_LOG_BACKUP_COUNT", "10"))
  if log_backup_count < 0:
    raise ValueError("SCRIBE_LOG_BACKUP_COUNT must be zero or a positive integer.")

  provider_timeout_seconds = float(os.getenv("SCRIBE_PROVIDER_TIMEOUT_SECONDS", "120"))
  if provider_timeout_seconds <= 0:
    raise ValueError("SCRIBE_PROVIDER_TIMEOUT_SECONDS must be positive.")

  automation_cooldown_seconds = float(os.getenv("SCRIBE_AUTOMATION_COOLDOWN_SECONDS", "300"))
  if automation_cooldown_seconds < 0:
    raise ValueError("SCRIBE_AUTOMATION_COOLDOWN_SECONDS must be zero or positive.")

  default_duration_minutes = int(os.getenv("SCRIBE_DEFAULT_DURATION_MINUTES", "30"))
  if default_duration_minutes <= 0:
    raise ValueError("SCRIBE_DEFAULT_DURATION_MINUTES must be a positive integer.")

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("SCRIBE_ALLOWED_ORIGINS")),
    database_url=os.getenv("SCRIBE_DATABASE_URL") or "sqlite+aiosqlite:///./scribe.db",
    log_dir=_optional_str(os.getenv("SCRIBE_LOG_DIR")),
    log_max_bytes=log_max_bytes,
    log_backup_count=log_backup_count,
    provider_order=_parse_provider_order(os.getenv("SCRIBE_PROVIDER_ORDER")),
    gemini_api_keys=_parse_list(os.getenv("SCRIBE_GEMINI_API_KEYS")),
    groq_api_keys=_parse_list(os.getenv("SCRIBE_GROQ_API_KEYS")),
    openrouter_api_keys=_parse_list(os.getenv("SCRIBE_OPENROUTER_API_KEYS")),
    gemini_model=os.getenv("SCRIBE_GEMINI_MODEL", "gemini-2.5-flash"),
    groq_model=os.getenv("SCRIBE_GROQ_MODEL", "llama-3.1-8b-instant"),
    openrouter_model=os.getenv("SCRIBE_OPENROUTER_MODEL", "openai/gpt-4o-mini"),
    openrouter_base_url=os.getenv("SCRIBE_OPENROUTER_BASE_URL", "https://openrouter.ai/api/v1"),
    provider_timeout_seconds=provider_timeout_seconds,
    automation_cooldown_seconds=automation_cooldown_seconds,
    default_duration_minutes=default_duration_minutes,
  )
