"""Minimal dotenv loader used before settings are read."""

from __future__ import annotations

import os
import re
from pathlib import Path

_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def default_env_path() -> Path:
  """Resolve the repository-level .env file."""
  override = os.getenv("SCRIBE_ENV_FILE")
  if override:
    return Path(override).expanduser().resolve()

  return Path(__file__).resolve().parents[2] / ".env"


def _strip_inline_comment(*, value: str) -> str:
  """Remove a `# comment` suffix from an unquoted dotenv value."""
  # Only treat `#` as a comment delimiter when it is preceded by whitespace.
  match = re.search(r"\s#", value)
  if not match:
    return value.strip()

  return value[: match.start()].rstrip()


def _unescape_double_quoted(*, value: str) -> str:
  return value.replace("\\n", "\n").replace("\\t", "\t").replace('\\"', '"').replace("\\\\", "\\")


def parse_dotenv_line(*, raw: str, lineno: int, path: Path) -> tuple[str, str] | None:
  """Parse a single dotenv line, returning (key, value) or None for blanks and comments."""
  line = raw.strip()
  if not line or line.startswith("#"):
    return None

  if line.startswith("export "):
    line = line[len("export ") :].lstrip()

  if "=" not in line:
    raise RuntimeError(f"{path}:{lineno}: invalid line (expected KEY=VALUE): {raw.rstrip()}")

  key, value = line.split("=", 1)
  key = key.strip()
  if not _ENV_KEY_RE.fullmatch(key):
    raise RuntimeError(f"{path}:{lineno}: invalid key {key!r}: {raw.rstrip()}")

  value = value.lstrip()
  if not value:
    return key, ""

  for quote in ("'", '"'):
    if value.startswith(quote):
      trimmed = value.strip()
      if not trimmed.endswith(quote) or len(trimmed) < 2:
        raise RuntimeError(f"{path}:{lineno}: unterminated quoted value: {raw.rstrip()}")

      inner = trimmed[1:-1]
      # Single quotes are literal; double quotes allow a small set of escapes.
      return key, inner if quote == "'" else _unescape_double_quoted(value=inner)

  return key, _strip_inline_comment(value=value)


def load_env_file(path: Path, *, override: bool = False) -> None:
  """Load a dotenv file into the process environment when it exists."""
  if not path.exists():
    return

  text = path.read_text(encoding="utf-8")
  for lineno, raw in enumerate(text.splitlines(), start=1):
    parsed = parse_dotenv_line(raw=raw, lineno=lineno, path=path)
    if not parsed:
      continue

    key, value = parsed
    if not override and key in os.environ:
      continue

    os.environ[key] = value
