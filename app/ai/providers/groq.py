"""Groq streaming client speaking the OpenAI-compatible SSE protocol over httpx."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Final

import httpx

from app.ai.errors import ProviderHTTPError
from app.ai.providers.base import StreamingProvider
from app.ai.streaming import iter_chat_deltas

logger = logging.getLogger(__name__)

GROQ_BASE_URL: Final[str] = "https://api.groq.com/openai/v1"


class GroqProvider(StreamingProvider):
  """Streams chat deltas from Groq's chat completions endpoint."""

  def __init__(self, model: str, *, timeout_seconds: float = 120.0, base_url: str = GROQ_BASE_URL, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self.name = "groq"
    self.model = model
    self._timeout_seconds = timeout_seconds
    self._endpoint = f"{base_url.rstrip('/')}/chat/completions"
    self._transport = transport

  async def _stream(self, prompt: str, credential: str) -> AsyncIterator[str]:
    timeout = httpx.Timeout(connect=30.0, read=self._timeout_seconds, write=30.0, pool=10.0)
    headers = {"Authorization": f"Bearer {credential}", "Content-Type": "application/json"}
    payload = {"model": self.model, "messages": [{"role": "user", "content": prompt}], "stream": True}

    async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
      async with client.stream("POST", self._endpoint, headers=headers, json=payload) as response:
        if response.status_code != 200:
          body = (await response.aread()).decode("utf-8", errors="replace")
          logger.error("Groq API error: status=%d, response=%s", response.status_code, body[:500])
          raise ProviderHTTPError(self.name, response.status_code, body)

        async for text in iter_chat_deltas(response.aiter_text()):
          yield text
