from __future__ import annotations

import pytest

from app.ai.cancellation import CancellationToken
from app.ai.errors import ParseFailure, StyleNotFoundError
from app.jobs.pipeline import ScriptPipeline
from app.services.generation import GenerationRuntime
from app.storage.memory_records_repo import InMemoryRecordStore
from tests.conftest import FakeProvider, chapter_number, controller_for, story_responder


@pytest.mark.anyio
async def test_analyze_style_saves_the_parsed_guide(pipeline: ScriptPipeline, provider: FakeProvider, store: InMemoryRecordStore) -> None:
  style = await pipeline.analyze_style(" Campfire ", ["The wind rose.", "   ", "She waited by the door."], CancellationToken())

  assert style.name == "Campfire"
  assert style.style_id.startswith("style_")
  assert style.guide["tone_and_mood"]["primary_tone"] == "Warm"
  assert await store.get_style(style.style_id) == style

  prompt = provider.calls[-1][0]
  assert "## SAMPLE 1\n\nThe wind rose.\n\n---\n\n## SAMPLE 2\n\nShe waited by the door." in prompt
  assert "## SAMPLE 3" not in prompt
  assert not pipeline.busy


@pytest.mark.anyio
async def test_unparseable_analysis_saves_nothing(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder(style='["not", "an", "object"]'))
  pipeline = ScriptPipeline(store, controller_for((provider, 1)))

  with pytest.raises(ParseFailure) as excinfo:
    await pipeline.analyze_style("Campfire", ["The wind rose."], CancellationToken())

  assert excinfo.value.stage == "style guide"
  assert await store.list_styles() == []


@pytest.mark.anyio
async def test_analysis_requires_a_name_and_samples(pipeline: ScriptPipeline, provider: FakeProvider) -> None:
  with pytest.raises(ValueError):
    await pipeline.analyze_style("Campfire", ["", "  "], CancellationToken())
  with pytest.raises(ValueError):
    await pipeline.analyze_style(" ", ["The wind rose."], CancellationToken())
  assert provider.calls == []


@pytest.mark.anyio
async def test_plot_idea_is_trimmed(pipeline: ScriptPipeline, provider: FakeProvider) -> None:
  plot = await pipeline.generate_plot_idea("The Lighthouse Keeper's Dog", CancellationToken())

  assert plot == "A keeper and a stray dog keep the light through a winter storm."
  assert '**Video title:** "The Lighthouse Keeper\'s Dog"' in provider.calls[-1][0]


@pytest.mark.anyio
async def test_memory_store_lists_updates_and_deletes_styles(store: InMemoryRecordStore) -> None:
  noir = await store.save_style({"name": "noir", "guide": {"tone": "bleak"}})
  await store.save_style({"name": "Campfire", "guide": {"tone": "warm"}})

  assert [style.name for style in await store.list_styles()] == ["Campfire", "noir"]

  renamed = await store.save_style({"name": "Noir"}, noir.style_id)
  assert renamed.guide == {"tone": "bleak"}
  assert renamed.created_at == noir.created_at

  assert await store.delete_style(noir.style_id)
  assert not await store.delete_style(noir.style_id)
  with pytest.raises(ValueError):
    await store.save_style({"name": "No guide"})


@pytest.mark.anyio
async def test_library_style_is_copied_into_new_jobs_and_chapter_prompts(store: InMemoryRecordStore) -> None:
  provider = FakeProvider("gemini", responder=story_responder())
  runtime = GenerationRuntime(store, controller_for((provider, 1)), cooldown_seconds=0)
  style = await runtime.create_style("Campfire", {"pacing": "slow and deliberate"})

  job = await runtime.create_script("Keeper", 13, style_id=style.style_id, start=False)
  # Later edits to the library do not reach jobs that already exist.
  await runtime.update_style(style.style_id, guide={"pacing": "frantic"})

  assert job.style_id == style.style_id
  assert job.style_guide == style.prompt_text()
  token = CancellationToken()
  await runtime.pipeline.generate_outline(job.job_id, token)
  await runtime.pipeline.approve_outline(job.job_id, token)
  await runtime.pipeline.select_hook(job.job_id, 0, token)

  chapter_prompts = [prompt for prompt, _ in provider.calls if chapter_number(prompt) is not None]
  assert len(chapter_prompts) == 2
  assert all('"pacing": "slow and deliberate"' in prompt for prompt in chapter_prompts)


@pytest.mark.anyio
async def test_unknown_or_conflicting_style_is_rejected(store: InMemoryRecordStore, provider: FakeProvider) -> None:
  runtime = GenerationRuntime(store, controller_for((provider, 1)), cooldown_seconds=0)
  style = await runtime.create_style("Campfire", {"pacing": "slow"})

  with pytest.raises(StyleNotFoundError):
    await runtime.create_script("Keeper", 13, style_id="style_missing", start=False)
  with pytest.raises(ValueError):
    await runtime.create_script("Keeper", 13, style_guide="Short sentences.", style_id=style.style_id, start=False)
  with pytest.raises(StyleNotFoundError):
    await runtime.enqueue("Keeper", 13, style_id="style_missing")

  entry = await runtime.enqueue("Keeper", 13, style_id=style.style_id)
  assert entry.style_guide == style.prompt_text()
  assert await store.list_jobs() == []
