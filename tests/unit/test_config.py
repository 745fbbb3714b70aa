from __future__ import annotations

import os
from collections.abc import Iterator
from pathlib import Path

import pytest

from app.config import get_settings
from app.utils.env import load_env_file, parse_dotenv_line


@pytest.fixture(autouse=True)
def _fresh_settings() -> Iterator[None]:
  get_settings.cache_clear()
  yield
  get_settings.cache_clear()


def test_defaults_rotate_gemini_then_groq_then_openrouter(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.delenv("SCRIBE_PROVIDER_ORDER", raising=False)
  monkeypatch.delenv("SCRIBE_AUTOMATION_COOLDOWN_SECONDS", raising=False)
  settings = get_settings()
  assert settings.provider_order == ("gemini", "groq", "openrouter")
  assert settings.automation_cooldown_seconds == 300
  assert settings.credentials_for("unknown") == ()


def test_credentials_are_split_and_trimmed(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCRIBE_GEMINI_API_KEYS", " a , ,b ")
  assert get_settings().credentials_for("gemini") == ("a", "b")


@pytest.mark.parametrize("order", ["gemini,claude", "groq,groq"])
def test_invalid_provider_order_is_rejected(monkeypatch: pytest.MonkeyPatch, order: str) -> None:
  monkeypatch.setenv("SCRIBE_PROVIDER_ORDER", order)
  with pytest.raises(ValueError):
    get_settings()


def test_wildcard_origins_are_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCRIBE_ALLOWED_ORIGINS", "http://localhost:3000,*")
  with pytest.raises(ValueError):
    get_settings()


def test_negative_cooldown_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
  monkeypatch.setenv("SCRIBE_AUTOMATION_COOLDOWN_SECONDS", "-1")
  with pytest.raises(ValueError):
    get_settings()


def test_dotenv_lines_handle_quotes_exports_and_comments() -> None:
  path = Path(".env")
  assert parse_dotenv_line(raw="# comment", lineno=1, path=path) is None
  assert parse_dotenv_line(raw="export SCRIBE_ENV=production", lineno=2, path=path) == ("SCRIBE_ENV", "production")
  assert parse_dotenv_line(raw="KEYS=a,b # primary keys", lineno=3, path=path) == ("KEYS", "a,b")
  assert parse_dotenv_line(raw="LITERAL='x # y'", lineno=4, path=path) == ("LITERAL", "x # y")
  with pytest.raises(RuntimeError):
    parse_dotenv_line(raw="not a pair", lineno=5, path=path)


def test_load_env_file_does_not_override_existing_values(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
  env_file = tmp_path / ".env"
  env_file.write_text("SCRIBE_TEST_EXISTING=from-file\nSCRIBE_TEST_NEW=\"line\\nbreak\"\n", encoding="utf-8")
  monkeypatch.setenv("SCRIBE_TEST_EXISTING", "from-env")
  monkeypatch.delenv("SCRIBE_TEST_NEW", raising=False)

  load_env_file(env_file)

  assert os.environ["SCRIBE_TEST_EXISTING"] == "from-env"
  assert os.environ["SCRIBE_TEST_NEW"] == "line\nbreak"
  monkeypatch.delenv("SCRIBE_TEST_NEW")
