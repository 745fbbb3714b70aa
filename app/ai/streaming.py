"""Streaming helpers: SSE decoding, chat-delta extraction and cancellation guarding."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator

from app.ai.cancellation import CancellationToken
from app.ai.errors import GenerationCancelled

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


class SSEDecoder:
  """Incremental decoder turning arbitrary text chunks into `data:` payloads."""

  def __init__(self) -> None:
    self._buffer = ""
    self.done = False

  def feed(self, chunk: str) -> list[str]:
    """Consume a chunk and return every payload completed by it."""
    if self.done:
      return []
    self._buffer += chunk
    lines = self._buffer.split("\n")
    # The last element is an incomplete line (or empty) kept for the next read.
    self._buffer = lines.pop()
    return self._collect(lines)

  def flush(self) -> list[str]:
    """Decode a final record left in the buffer when the transport closes."""
    if self.done or not self._buffer:
      return []
    remainder, self._buffer = self._buffer, ""
    return self._collect([remainder])

  def _collect(self, lines: list[str]) -> list[str]:
    payloads: list[str] = []
    for raw in lines:
      line = raw.strip()
      if not line.startswith("data:"):
        continue
      data = line[len("data:") :].strip()
      if data == DONE_SENTINEL:
        self.done = True
        break
      if data:
        payloads.append(data)
    return payloads


async def iter_sse_data(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
  """Yield complete SSE `data:` payloads from a stream of text chunks."""
  decoder = SSEDecoder()
  async for chunk in chunks:
    for payload in decoder.feed(chunk):
      yield payload
    if decoder.done:
      return
  for payload in decoder.flush():
    yield payload


def extract_chat_delta(payload: str) -> str | None:
  """Return `choices[0].delta.content` from an OpenAI-style chunk, or None if malformed."""
  try:
    record = json.loads(payload)
  except json.JSONDecodeError:
    logger.warning("Skipping malformed stream record: %s", payload[:200])
    return None

  try:
    content = record["choices"][0]["delta"].get("content")
  except (KeyError, IndexError, TypeError, AttributeError):
    # Role-only or usage chunks carry no delta content.
    return None

  return content if isinstance(content, str) else None


async def iter_chat_deltas(chunks: AsyncIterable[str]) -> AsyncIterator[str]:
  """Yield text deltas from an OpenAI-compatible SSE body."""
  async for payload in iter_sse_data(chunks):
    content = extract_chat_delta(payload)
    if content:
      yield content


async def guard_stream(fragments: AsyncIterable[str], token: CancellationToken) -> AsyncIterator[str]:
  """Relay fragments, abandoning the pending read as soon as the token fires."""
  iterator = fragments.__aiter__()
  cancel_waiter = asyncio.ensure_future(token.wait())
  try:
    while True:
      token.raise_if_cancelled()
      read = asyncio.ensure_future(iterator.__anext__())
      done, _ = await asyncio.wait({read, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED)
      if read not in done:
        read.cancel()
        await asyncio.wait({read})
        if not read.cancelled():
          # Retrieve the outcome so a late transport error is not reported as unhandled.
          read.exception()
        raise GenerationCancelled(token.reason or "cancelled")

      try:
        fragment = read.result()
      except StopAsyncIteration:
        return
      if fragment:
        yield fragment
  finally:
    cancel_waiter.cancel()
    aclose = getattr(iterator, "aclose", None)
    if aclose is not None:
      await aclose()
