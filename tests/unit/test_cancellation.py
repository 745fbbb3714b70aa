from __future__ import annotations

import asyncio
import time

import pytest

from app.ai.cancellation import CancellationToken, cancellable_sleep
from app.ai.errors import GenerationCancelled


def test_token_keeps_first_reason() -> None:
  token = CancellationToken()
  assert not token.cancelled
  token.raise_if_cancelled()

  token.cancel("paused")
  token.cancel("stopped")
  assert token.cancelled
  with pytest.raises(GenerationCancelled) as excinfo:
    token.raise_if_cancelled()
  assert excinfo.value.reason == "paused"


@pytest.mark.anyio
async def test_cancellable_sleep_completes_when_not_cancelled() -> None:
  await cancellable_sleep(0.01, CancellationToken())


@pytest.mark.anyio
async def test_cancellable_sleep_is_interrupted_immediately() -> None:
  token = CancellationToken()
  started = time.monotonic()

  async def cancel_soon() -> None:
    await asyncio.sleep(0.05)
    token.cancel("automation paused")

  canceller = asyncio.create_task(cancel_soon())
  with pytest.raises(GenerationCancelled):
    await cancellable_sleep(30, token)
  await canceller
  assert time.monotonic() - started < 5


@pytest.mark.anyio
async def test_cancellable_sleep_rejects_fired_token_even_for_zero_delay() -> None:
  token = CancellationToken()
  token.cancel()
  with pytest.raises(GenerationCancelled):
    await cancellable_sleep(0, token)
