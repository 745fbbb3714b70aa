"""Credential and provider rotation for streaming generation."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from dataclasses import dataclass, field

from app.ai.cancellation import CancellationToken
from app.ai.errors import AllProvidersExhausted, GenerationCancelled, ProviderFailure, classify_provider_error
from app.ai.providers.base import StreamingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderSlot:
  """A provider and the ordered credentials it may be called with."""

  provider: StreamingProvider
  credentials: tuple[str, ...]


@dataclass(frozen=True)
class ProviderAttempt:
  """Identifies the provider and credential about to be tried."""

  provider: str
  credential_index: int


AttemptCallback = Callable[[ProviderAttempt], Awaitable[None]]


@dataclass
class RotationState:
  """Per-run rotation cursors; never shared between content jobs."""

  provider_index: int = 0
  credential_cursors: dict[str, int] = field(default_factory=dict)

  def cursor(self, provider: str) -> int:
    return self.credential_cursors.get(provider, 0)

  def advance(self, provider: str) -> None:
    self.credential_cursors[provider] = self.cursor(provider) + 1

  def reset(self) -> None:
    """Return every cursor to the first provider and credential."""
    self.provider_index = 0
    self.credential_cursors.clear()


class RotationController:
  """Streams a prompt through providers in priority order, rotating on failure."""

  def __init__(self, slots: Sequence[ProviderSlot]) -> None:
    self._slots = list(slots)

  @property
  def provider_names(self) -> list[str]:
    return [slot.provider.name for slot in self._slots]

  async def stream(self, prompt: str, *, state: RotationState, token: CancellationToken, on_attempt: AttemptCallback | None = None) -> AsyncIterator[str]:
    """Yield fragments from the first provider/credential that completes a stream."""
    configured = [slot.provider.name for slot in self._slots if slot.credentials]
    if not configured:
      raise AllProvidersExhausted([])

    attempted: list[str] = []
    failures: list[ProviderFailure] = []
    while state.provider_index < len(self._slots):
      slot = self._slots[state.provider_index]
      name = slot.provider.name
      while state.cursor(name) < len(slot.credentials):
        token.raise_if_cancelled()
        index = state.cursor(name)
        if name not in attempted:
          attempted.append(name)
        logger.info("Attempting provider %s with credential #%d", name, index)
        if on_attempt is not None:
          await on_attempt(ProviderAttempt(provider=name, credential_index=index))

        try:
          async for fragment in slot.provider.open(prompt, slot.credentials[index], token):
            yield fragment
          return
        except GenerationCancelled:
          raise
        except Exception as exc:
          # A transport error surfacing after a stop request is still a stop.
          if token.cancelled:
            raise GenerationCancelled(token.reason or "cancelled") from exc
          failure = ProviderFailure(name, index, classify_provider_error(exc), exc)
          failures.append(failure)
          logger.warning("Provider attempt failed, rotating: %s", failure)
          state.advance(name)

      logger.info("Provider %s exhausted", name)
      state.provider_index += 1

    raise AllProvidersExhausted(attempted or configured, failures)
