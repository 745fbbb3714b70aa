"""Cooperative cancellation shared by streaming reads and timers."""

from __future__ import annotations

import asyncio
import contextlib

from app.ai.errors import GenerationCancelled


class CancellationToken:
  """One-shot cancellation signal created per logical operation."""

  def __init__(self) -> None:
    self._event = asyncio.Event()
    self.reason: str | None = None

  @property
  def cancelled(self) -> bool:
    return self._event.is_set()

  def cancel(self, reason: str = "cancelled") -> None:
    """Fire the token; later calls keep the first reason."""
    if self._event.is_set():
      return
    self.reason = reason
    self._event.set()

  def raise_if_cancelled(self) -> None:
    if self._event.is_set():
      raise GenerationCancelled(self.reason or "cancelled")

  async def wait(self) -> None:
    """Block until the token fires."""
    await self._event.wait()


async def cancellable_sleep(seconds: float, token: CancellationToken) -> None:
  """Sleep for `seconds` unless the token fires first, in which case raise GenerationCancelled."""
  token.raise_if_cancelled()
  if seconds <= 0:
    return

  with contextlib.suppress(TimeoutError):
    await asyncio.wait_for(token.wait(), timeout=seconds)

  token.raise_if_cancelled()
