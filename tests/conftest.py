"""Shared fixtures: scripted providers, in-memory stores and async helpers."""

from __future__ import annotations

import asyncio
import os
import re
from collections.abc import AsyncIterator, Callable
from typing import Any

# Keep test runs away from a developer's .env and database.
os.environ.setdefault("SCRIBE_ENV_FILE", os.devnull)
os.environ.setdefault("SCRIBE_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest  # noqa: E402

from app.ai.providers.base import StreamingProvider  # noqa: E402
from app.ai.rotation import ProviderSlot, RotationController  # noqa: E402
from app.jobs.pipeline import ScriptPipeline  # noqa: E402
from app.jobs.progress import ProgressTracker  # noqa: E402
from app.storage.memory_records_repo import InMemoryRecordStore  # noqa: E402

HANG = object()

OUTLINE_TEXT = """**Video Title:** The Lighthouse Keeper's Dog
**Total Word Count:** 2,000
**Primary Twist:** The dog has been keeping the light all along

## Chapter 1
Summary: A new keeper arrives on the island and meets a stray dog.
Word Count: 900

## Chapter 2
Summary: A winter storm cuts the island off
and the dog leads the keeper to the lamp room.
Word Count: ~1,100
"""

HOOKS_JSON = '```json\n["The light went out at midnight.", "Nobody told me about the dog.", "Every storm has a keeper."]\n```'

TITLES_JSON = '["Nobody Kept the Light, Until a Stray Dog Did", "The Storm Took the Keeper - The Dog Found the Lamp", "One Dog, One Lighthouse, One Winter", "He Came for Solitude - He Found a Partner", "The Light That Never Went Out"]'

STYLE_JSON = '```json\n{"tone_and_mood": {"primary_tone": "Warm", "description": "Quiet suspense with hope"}, "pacing": {"speed": "Moderate"},}\n```'

DESCRIPTION_TEXT = "A keeper arrives on a lonely island and meets a dog with a secret.\n\n#lighthouse #dogstory #story"

Response = list[Any] | BaseException
Responder = Callable[[str, str], Response]


class FakeProvider(StreamingProvider):
  """Provider whose streams are scripted per call or computed from the prompt."""

  def __init__(self, name: str, responses: list[Response] | None = None, *, responder: Responder | None = None) -> None:
    self.name = name
    self.responses = list(responses or [])
    self.responder = responder
    self.calls: list[tuple[str, str]] = []

  async def _stream(self, prompt: str, credential: str) -> AsyncIterator[str]:
    self.calls.append((prompt, credential))
    if self.responses:
      response = self.responses.pop(0)
    elif self.responder is not None:
      response = self.responder(prompt, credential)
    else:
      raise AssertionError(f"{self.name} received an unscripted call")

    if isinstance(response, BaseException):
      raise response
    for item in response:
      if isinstance(item, BaseException):
        raise item
      if item is HANG:
        await asyncio.Event().wait()
      yield item


def chapter_number(prompt: str) -> int | None:
  match = re.search(r"Expand Chapter (\d+)", prompt)
  return int(match.group(1)) if match else None


def story_responder(*, outline: str = OUTLINE_TEXT, hooks: str = HOOKS_JSON, chapter: Callable[[int], Response] | None = None, titles: str = TITLES_JSON, style: str = STYLE_JSON) -> Responder:
  """Answer outline, hook, chapter and post-production prompts with canned text."""

  def respond(prompt: str, credential: str) -> Response:
    index = chapter_number(prompt)
    if index is not None:
      if chapter is not None:
        return chapter(index)
      return [f"Chapter {index} opens. ", f"Chapter {index} closes."]
    if "reverse-engineer the writing style" in prompt:
      return [style]
    if "candidate video titles" in prompt:
      return [titles]
    if "You write video descriptions" in prompt:
      return [DESCRIPTION_TEXT[:20], DESCRIPTION_TEXT[20:]]
    if "one-paragraph plot idea" in prompt:
      return ["  A keeper and a stray dog keep the light through a winter storm.  "]
    if "opening hooks" in prompt:
      return [hooks]
    if "chaptered outline" in prompt:
      return [outline[: len(outline) // 2], outline[len(outline) // 2 :]]
    raise AssertionError(f"Unexpected prompt: {prompt[:80]}")

  return respond


def controller_for(*providers: tuple[FakeProvider, int]) -> RotationController:
  """Build a controller where each provider gets `count` fake credentials."""
  return RotationController([ProviderSlot(provider=provider, credentials=tuple(f"{provider.name}-key-{index}" for index in range(count))) for provider, count in providers])


async def wait_until(predicate: Callable[[], bool], *, timeout: float = 2.0) -> None:
  """Yield to the loop until `predicate` holds."""
  async with asyncio.timeout(timeout):
    while not predicate():
      await asyncio.sleep(0.01)


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


@pytest.fixture
def store() -> InMemoryRecordStore:
  return InMemoryRecordStore()


@pytest.fixture
def provider() -> FakeProvider:
  return FakeProvider("gemini", responder=story_responder())


@pytest.fixture
def tracker() -> ProgressTracker:
  return ProgressTracker()


@pytest.fixture
def pipeline(store: InMemoryRecordStore, provider: FakeProvider, tracker: ProgressTracker) -> ScriptPipeline:
  return ScriptPipeline(store, controller_for((provider, 1)), observer=tracker)
