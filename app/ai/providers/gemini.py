"""Gemini streaming client using the google-genai SDK."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from google import genai

from app.ai.providers.base import StreamingProvider

logger = logging.getLogger(__name__)


class GeminiProvider(StreamingProvider):
  """Streams discrete response chunks from Gemini."""

  def __init__(self, model: str) -> None:
    self.name = "gemini"
    self.model = model

  def _client(self, credential: str) -> genai.Client:
    return genai.Client(api_key=credential)

  async def _stream(self, prompt: str, credential: str) -> AsyncIterator[str]:
    client = self._client(credential)
    try:
      # Use the async client to avoid blocking the asyncio event loop.
      stream = await client.aio.models.generate_content_stream(model=self.model, contents=prompt)
      async for chunk in stream:
        text = chunk.text
        if text:
          yield text
      logger.debug("Gemini stream finished for model %s", self.model)
    finally:
      # Each attempt owns its client; release the HTTP pool even when the stream fails.
      await client.aio.aclose()
