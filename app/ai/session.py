"""A single prompt-to-text generation run over the rotation controller."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from app.ai.cancellation import CancellationToken
from app.ai.rotation import AttemptCallback, ProviderAttempt, RotationController, RotationState

FragmentCallback = Callable[[str], Awaitable[None]]


class GenerationSession:
  """Accumulates streamed text for one prompt and reports progress."""

  def __init__(self, controller: RotationController, state: RotationState, token: CancellationToken, *, on_fragment: FragmentCallback | None = None, on_attempt: AttemptCallback | None = None) -> None:
    self._controller = controller
    self._state = state
    self._token = token
    self._on_fragment = on_fragment
    self._on_attempt = on_attempt
    self.text = ""
    self.attempts: list[ProviderAttempt] = []

  async def _handle_attempt(self, attempt: ProviderAttempt) -> None:
    # Text from a failed attempt must not leak into the next one.
    self.text = ""
    self.attempts.append(attempt)
    if self._on_attempt is not None:
      await self._on_attempt(attempt)

  async def run(self, prompt: str) -> str:
    """Stream the prompt to completion and return the accumulated text."""
    self.text = ""
    async for fragment in self._controller.stream(prompt, state=self._state, token=self._token, on_attempt=self._handle_attempt):
      self.text += fragment
      if self._on_fragment is not None:
        await self._on_fragment(self.text)
    return self.text
