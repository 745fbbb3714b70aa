from __future__ import annotations

import asyncio

import pytest

from app.ai.cancellation import CancellationToken
from app.ai.errors import AllProvidersExhausted, GenerationCancelled, InvalidStageTransition, ParseFailure, PipelineBusyError, ProviderHTTPError
from app.jobs.models import ContentJob, GenerationStage
from app.jobs.pipeline import ScriptPipeline
from app.jobs.progress import NullObserver
from app.storage.memory_records_repo import InMemoryRecordStore
from tests.conftest import DESCRIPTION_TEXT, HANG, OUTLINE_TEXT, FakeProvider, chapter_number, controller_for, story_responder, wait_until


class RecordingObserver(NullObserver):
  """Capture stage changes and checkpoints in the order they were issued."""

  def __init__(self) -> None:
    self.stages: list[tuple[GenerationStage, int]] = []
    self.checkpoints: list[list[int]] = []

  async def on_stage(self, job: ContentJob) -> None:
    self.stages.append((job.stage, len(job.chapters)))

  async def on_checkpoint(self, job: ContentJob) -> None:
    self.checkpoints.append([chapter.index for chapter in job.chapters])


def _chapter_prompts(provider: FakeProvider) -> list[int]:
  return [index for index in (chapter_number(prompt) for prompt, _ in provider.calls) if index is not None]


async def _job_with_hooks(pipeline: ScriptPipeline) -> ContentJob:
  job = await pipeline.create_job("The Lighthouse Keeper's Dog", 13)
  await pipeline.generate_outline(job.job_id, CancellationToken())
  return await pipeline.approve_outline(job.job_id, CancellationToken())


@pytest.mark.anyio
async def test_full_run_checkpoints_each_chapter_in_order(store: InMemoryRecordStore, provider: FakeProvider) -> None:
  observer = RecordingObserver()
  pipeline = ScriptPipeline(store, controller_for((provider, 1)), observer=observer)

  job = await pipeline.create_job("The Lighthouse Keeper's Dog", 13)
  job = await pipeline.generate_outline(job.job_id, CancellationToken())
  assert job.stage == GenerationStage.AWAITING_OUTLINE_APPROVAL
  assert [chapter.target_word_count for chapter in job.outline.chapters] == [900, 1100]

  job = await pipeline.approve_outline(job.job_id, CancellationToken())
  assert job.stage == GenerationStage.AWAITING_HOOK_SELECTION
  assert len(job.hook_candidates) == 3

  job = await pipeline.select_hook(job.job_id, 0, CancellationToken())

  assert job.stage == GenerationStage.COMPLETED
  assert job.approved_opening == "The light went out at midnight."
  assert [chapter.index for chapter in job.chapters] == [1, 2]
  assert job.chapters[0].content == "Chapter 1 opens. Chapter 1 closes."
  assert observer.checkpoints == [[1], [1, 2]]
  assert observer.stages[-1] == (GenerationStage.COMPLETED, 2)
  assert GenerationStage.COMPLETED not in [stage for stage, _ in observer.stages[:-1]]

  stored = await store.get_job(job.job_id)
  assert stored is not None and stored.stage == GenerationStage.COMPLETED


@pytest.mark.anyio
async def test_chapter_prompt_carries_opening_then_previous_chapter_tail(pipeline: ScriptPipeline, provider: FakeProvider) -> None:
  job = await _job_with_hooks(pipeline)
  await pipeline.select_hook(job.job_id, 1, CancellationToken())

  chapter_calls = [prompt for prompt, _ in provider.calls if chapter_number(prompt) is not None]
  assert "Nobody told me about the dog." in chapter_calls[0]
  assert "...Chapter 1 opens. Chapter 1 closes." in chapter_calls[1]


@pytest.mark.anyio
async def test_exhaustion_mid_run_keeps_checkpointed_prefix_and_resume_continues(store: InMemoryRecordStore) -> None:
  failing = {"enabled": True}

  def chapter(index: int) -> list[object] | Exception:
    if index == 2 and failing["enabled"]:
      return ProviderHTTPError("gemini", 503, "overloaded")
    return [f"Chapter {index} text."]

  provider = FakeProvider("gemini", responder=story_responder(chapter=chapter))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await _job_with_hooks(pipeline)

  with pytest.raises(AllProvidersExhausted):
    await pipeline.select_hook(job.job_id, 0, CancellationToken())

  job = await store.get_job(job.job_id)
  assert job.stage == GenerationStage.ERROR
  assert job.last_error.startswith("Failed on chapter 2: All available API keys failed")
  assert [chapter.index for chapter in job.chapters] == [1]

  failing["enabled"] = False
  job = await pipeline.resume(job.job_id, CancellationToken())

  assert job.stage == GenerationStage.COMPLETED
  assert job.last_error is None
  assert [chapter.content for chapter in job.chapters] == ["Chapter 1 text.", "Chapter 2 text."]
  # Chapter 1 is never generated twice.
  assert _chapter_prompts(provider) == [1, 2, 2]


@pytest.mark.anyio
async def test_resume_of_completed_job_is_idempotent(pipeline: ScriptPipeline, provider: FakeProvider) -> None:
  job = await _job_with_hooks(pipeline)
  job = await pipeline.select_hook(job.job_id, 0, CancellationToken())
  calls = len(provider.calls)

  job = await pipeline.resume(job.job_id, CancellationToken())

  assert job.stage == GenerationStage.COMPLETED
  assert len(provider.calls) == calls


@pytest.mark.anyio
async def test_stop_mid_chapter_pauses_without_recording_an_error(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder(chapter=lambda index: ["Partial chapter two", HANG] if index == 2 else [f"Chapter {index} text."]))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await _job_with_hooks(pipeline)

  token = CancellationToken()
  task = asyncio.create_task(pipeline.select_hook(job.job_id, 0, token))
  await wait_until(lambda: 2 in _chapter_prompts(provider))
  assert pipeline.busy
  token.cancel("stopped by user")

  with pytest.raises(GenerationCancelled):
    await task

  job = await store.get_job(job.job_id)
  assert job.stage == GenerationStage.PAUSED
  assert job.last_error is None
  assert [chapter.index for chapter in job.chapters] == [1]
  assert not pipeline.busy


@pytest.mark.anyio
async def test_outline_parse_failure_keeps_raw_text_for_manual_repair(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder(outline="Title: Broken\nTotal Word Count: 900\nChapter 1\nSummary: No count.\n"))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await pipeline.create_job("Broken", 6)

  with pytest.raises(ParseFailure):
    await pipeline.generate_outline(job.job_id, CancellationToken())

  job = await store.get_job(job.job_id)
  assert job.stage == GenerationStage.ERROR
  assert job.raw_outline_text.startswith("Title: Broken")
  assert job.last_error.startswith("Failed to parse outline")

  with pytest.raises(ParseFailure):
    await pipeline.supply_outline(job.job_id, "not an outline")
  assert (await store.get_job(job.job_id)).stage == GenerationStage.ERROR

  job = await pipeline.supply_outline(job.job_id, OUTLINE_TEXT)
  assert job.stage == GenerationStage.AWAITING_OUTLINE_APPROVAL
  assert job.last_error is None
  assert job.total_chapters == 2


@pytest.mark.anyio
async def test_stop_during_outline_returns_job_to_idle(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", [["Title: Slow", HANG]])
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await pipeline.create_job("Slow", 5)

  token = CancellationToken()
  task = asyncio.create_task(pipeline.generate_outline(job.job_id, token))
  await wait_until(lambda: bool(provider.calls))
  token.cancel()
  with pytest.raises(GenerationCancelled):
    await task

  assert (await store.get_job(job.job_id)).stage == GenerationStage.IDLE


@pytest.mark.anyio
async def test_operations_reject_invalid_stages(pipeline: ScriptPipeline) -> None:
  job = await pipeline.create_job("Premature", 5)

  with pytest.raises(InvalidStageTransition) as excinfo:
    await pipeline.approve_outline(job.job_id, CancellationToken())
  assert str(excinfo.value) == f"Cannot approve outline job {job.job_id} while it is idle."

  with pytest.raises(InvalidStageTransition):
    await pipeline.resume(job.job_id, CancellationToken())


@pytest.mark.anyio
async def test_select_hook_out_of_range_leaves_job_untouched(pipeline: ScriptPipeline) -> None:
  job = await _job_with_hooks(pipeline)
  with pytest.raises(ValueError):
    await pipeline.select_hook(job.job_id, 7, CancellationToken())
  assert not pipeline.busy


@pytest.mark.anyio
async def test_regenerate_hooks_with_feedback_replaces_candidates(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder())
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await _job_with_hooks(pipeline)
  provider.responses.append(['["A darker opening."]'])

  job = await pipeline.regenerate_hooks(job.job_id, "Make it darker", CancellationToken())

  assert job.stage == GenerationStage.AWAITING_HOOK_SELECTION
  assert job.hook_candidates == ["A darker opening."]
  assert "Make it darker" in provider.calls[-1][0]


@pytest.mark.anyio
async def test_regenerate_chapter_replaces_content_and_keeps_stage(store: InMemoryRecordStore) -> None:
  versions = {1: 0, 2: 0}

  def chapter(index: int) -> list[object]:
    versions[index] += 1
    return [f"Chapter {index} v{versions[index]}."]

  provider = FakeProvider("gemini", responder=story_responder(chapter=chapter))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await _job_with_hooks(pipeline)
  await pipeline.select_hook(job.job_id, 0, CancellationToken())

  job = await pipeline.regenerate_chapter(job.job_id, 1, CancellationToken())

  assert job.stage == GenerationStage.COMPLETED
  assert [chapter.content for chapter in job.chapters] == ["Chapter 1 v2.", "Chapter 2 v1."]

  with pytest.raises(ValueError):
    await pipeline.regenerate_chapter(job.job_id, 3, CancellationToken())


@pytest.mark.anyio
async def test_pipeline_runs_one_operation_at_a_time(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", [["Title: Slow", HANG]])
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  first = await pipeline.create_job("First", 5)
  second = await pipeline.create_job("Second", 5)

  token = CancellationToken()
  task = asyncio.create_task(pipeline.generate_outline(first.job_id, token))
  await wait_until(lambda: bool(provider.calls))

  with pytest.raises(PipelineBusyError):
    await pipeline.generate_outline(second.job_id, CancellationToken())

  token.cancel()
  with pytest.raises(GenerationCancelled):
    await task


@pytest.mark.anyio
async def test_rotation_cursors_reset_between_jobs(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", [ProviderHTTPError("gemini", 401, "")], responder=story_responder())
  pipeline = ScriptPipeline(store, controller_for((provider, 2)))

  first = await pipeline.create_job("First", 5)
  await pipeline.generate_outline(first.job_id, CancellationToken())
  assert pipeline.rotation.cursor("gemini") == 1

  second = await pipeline.create_job("Second", 5)
  await pipeline.generate_outline(second.job_id, CancellationToken())
  assert provider.calls[-1][1] == "gemini-key-0"


@pytest.mark.anyio
async def test_outline_cannot_be_regenerated_once_chapters_exist(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder(chapter=lambda index: ProviderHTTPError("gemini", 503, "overloaded") if index == 2 else [f"Chapter {index} text."]))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await _job_with_hooks(pipeline)
  with pytest.raises(AllProvidersExhausted):
    await pipeline.select_hook(job.job_id, 0, CancellationToken())
  calls = len(provider.calls)

  with pytest.raises(InvalidStageTransition) as excinfo:
    await pipeline.generate_outline(job.job_id, CancellationToken())

  assert str(excinfo.value) == f"Cannot regenerate the outline of a partly written job {job.job_id} while it is error."
  assert len(provider.calls) == calls
  job = await store.get_job(job.job_id)
  assert job.stage == GenerationStage.ERROR
  assert [chapter.content for chapter in job.chapters] == ["Chapter 1 text."]


@pytest.mark.anyio
async def test_outline_can_be_retried_after_an_outline_failure(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", [["Title: Broken\n"]], responder=story_responder())
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await pipeline.create_job("Retry", 13)
  with pytest.raises(ParseFailure):
    await pipeline.generate_outline(job.job_id, CancellationToken())

  job = await pipeline.generate_outline(job.job_id, CancellationToken())

  assert job.stage == GenerationStage.AWAITING_OUTLINE_APPROVAL
  assert job.last_error is None


@pytest.mark.anyio
async def test_titles_and_description_are_written_for_a_completed_script(pipeline: ScriptPipeline, provider: FakeProvider) -> None:
  job = await _job_with_hooks(pipeline)
  with pytest.raises(InvalidStageTransition):
    await pipeline.generate_titles(job.job_id, CancellationToken())
  await pipeline.select_hook(job.job_id, 0, CancellationToken())

  job = await pipeline.generate_titles(job.job_id, CancellationToken())

  assert job.stage == GenerationStage.COMPLETED
  assert len(job.title_candidates) == 5
  assert "Chapter 1 opens. Chapter 1 closes.\n\nChapter 2 opens. Chapter 2 closes." in provider.calls[-1][0]

  job = await pipeline.generate_description(job.job_id, job.title_candidates[1], CancellationToken())

  assert job.final_title == "The Storm Took the Keeper - The Dog Found the Lamp"
  assert job.description == DESCRIPTION_TEXT
  assert "**Video title:** The Storm Took the Keeper - The Dog Found the Lamp" in provider.calls[-1][0]

  job = await pipeline.generate_titles(job.job_id, CancellationToken())
  assert job.final_title is None
  assert job.description is None


@pytest.mark.anyio
async def test_unparseable_titles_record_an_error_without_changing_stage(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder(titles="Here are some titles you might like."))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))
  job = await _job_with_hooks(pipeline)
  await pipeline.select_hook(job.job_id, 0, CancellationToken())

  with pytest.raises(ParseFailure):
    await pipeline.generate_titles(job.job_id, CancellationToken())

  job = await store.get_job(job.job_id)
  assert job.stage == GenerationStage.COMPLETED
  assert job.title_candidates == []
  assert job.last_error.startswith("Failed to generate titles: Failed to parse titles")
  assert not pipeline.busy

  with pytest.raises(ValueError):
    await pipeline.generate_description(job.job_id, "  ", CancellationToken())
