"""OpenRouter streaming client using the openai SDK."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator

from openai import AsyncOpenAI

from app.ai.providers.base import StreamingProvider

logger = logging.getLogger(__name__)


class OpenRouterProvider(StreamingProvider):
  """Streams chat completion chunks from OpenRouter."""

  def __init__(self, model: str, *, base_url: str = "https://openrouter.ai/api/v1", timeout_seconds: float = 120.0) -> None:
    self.name = "openrouter"
    self.model = model
    self._base_url = base_url
    self._timeout_seconds = timeout_seconds

  def _client(self, credential: str) -> AsyncOpenAI:
    # OpenRouter uses the OpenAI-compatible API; we add optional attribution headers.
    default_headers = {}
    referer = os.getenv("OPENROUTER_HTTP_REFERER")
    if referer:
      default_headers["HTTP-Referer"] = referer
    title = os.getenv("OPENROUTER_TITLE")
    if title:
      default_headers["X-Title"] = title

    # Rotation owns retries, so the SDK must fail fast.
    return AsyncOpenAI(api_key=credential, base_url=self._base_url, timeout=self._timeout_seconds, max_retries=0, default_headers=default_headers or None)

  async def _stream(self, prompt: str, credential: str) -> AsyncIterator[str]:
    client = self._client(credential)
    try:
      stream = await client.chat.completions.create(model=self.model, messages=[{"role": "user", "content": prompt}], stream=True)
      async for chunk in stream:
        if not chunk.choices:
          continue
        content = chunk.choices[0].delta.content
        if content:
          yield content
    finally:
      await client.close()
