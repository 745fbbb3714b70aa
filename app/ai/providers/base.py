"""Base interface for streaming text providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from app.ai.cancellation import CancellationToken
from app.ai.streaming import guard_stream


class StreamingProvider(ABC):
  """Abstract base class for providers that stream text fragments."""

  name: str

  def open(self, prompt: str, credential: str, token: CancellationToken) -> AsyncIterator[str]:
    """Start a stream for the prompt; the token aborts the pending read."""
    return guard_stream(self._stream(prompt, credential), token)

  @abstractmethod
  def _stream(self, prompt: str, credential: str) -> AsyncIterator[str]:
    """Yield raw text fragments from the provider."""
