import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status

from app.api.deps import get_runtime
from app.api.models import ArchiveRequest, CreateScriptRequest, DescriptionRequest, ProgressResponse, RegenerateHooksRequest, ScriptResponse, ScriptSummaryResponse, SelectHookRequest, SupplyOutlineRequest
from app.config import get_settings
from app.jobs.progress import ProgressSnapshot
from app.services.generation import GenerationRuntime

router = APIRouter()
logger = logging.getLogger("app.api.routes.scripts")


def _bad_request(exc: ValueError) -> HTTPException:
  return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("", response_model=ScriptResponse, status_code=status.HTTP_201_CREATED)
async def create_script(
  payload: CreateScriptRequest,
  runtime: GenerationRuntime = Depends(get_runtime),  # noqa: B008
) -> ScriptResponse:
  """Create a script and start generating its outline."""
  duration_minutes = payload.duration_minutes or get_settings().default_duration_minutes
  try:
    job = await runtime.create_script(payload.title, duration_minutes, payload.plot, payload.style_guide, style_id=payload.style_id, start=payload.start)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return ScriptResponse.from_job(job)


@router.get("", response_model=list[ScriptSummaryResponse])
async def list_scripts(
  include_archived: bool = Query(default=False),  # noqa: B008
  runtime: GenerationRuntime = Depends(get_runtime),  # noqa: B008
) -> list[ScriptSummaryResponse]:
  """List scripts newest first."""
  jobs = await runtime.list_scripts(include_archived=include_archived)
  return [ScriptSummaryResponse.from_job(job) for job in jobs]


@router.get("/{job_id}", response_model=ScriptResponse)
async def get_script(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  return ScriptResponse.from_job(await runtime.get_script(job_id))


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_script(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> None:  # noqa: B008
  await runtime.delete_script(job_id)


@router.patch("/{job_id}/archive", response_model=ScriptResponse)
async def archive_script(job_id: str, payload: ArchiveRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  return ScriptResponse.from_job(await runtime.set_archived(job_id, payload.archived))


@router.post("/{job_id}/outline/generate", response_model=ScriptResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_outline(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Start (or retry) outline generation."""
  return ScriptResponse.from_job(await runtime.generate_outline(job_id))


@router.post("/{job_id}/outline", response_model=ScriptResponse)
async def supply_outline(job_id: str, payload: SupplyOutlineRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Replace the outline with manually written text."""
  return ScriptResponse.from_job(await runtime.supply_outline(job_id, payload.text))


@router.post("/{job_id}/approve", response_model=ScriptResponse, status_code=status.HTTP_202_ACCEPTED)
async def approve_outline(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Approve the outline and start generating hooks."""
  return ScriptResponse.from_job(await runtime.approve_outline(job_id))


@router.post("/{job_id}/hooks/regenerate", response_model=ScriptResponse, status_code=status.HTTP_202_ACCEPTED)
async def regenerate_hooks(job_id: str, payload: RegenerateHooksRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  try:
    job = await runtime.regenerate_hooks(job_id, payload.feedback)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return ScriptResponse.from_job(job)


@router.post("/{job_id}/hooks/select", response_model=ScriptResponse, status_code=status.HTTP_202_ACCEPTED)
async def select_hook(job_id: str, payload: SelectHookRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Approve a hook and start generating chapters."""
  try:
    job = await runtime.select_hook(job_id, payload.index)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return ScriptResponse.from_job(job)


@router.post("/{job_id}/stop")
async def stop_script(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> dict[str, bool]:  # noqa: B008
  """Stop the running operation; chapters already written are kept."""
  await runtime.get_script(job_id)
  return {"stopping": runtime.stop(job_id)}


@router.post("/{job_id}/resume", response_model=ScriptResponse, status_code=status.HTTP_202_ACCEPTED)
async def resume_script(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Continue from the first missing chapter."""
  return ScriptResponse.from_job(await runtime.resume(job_id))


@router.post("/{job_id}/chapters/{index}/regenerate", response_model=ScriptResponse, status_code=status.HTTP_202_ACCEPTED)
async def regenerate_chapter(job_id: str, index: int, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  try:
    job = await runtime.regenerate_chapter(job_id, index)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return ScriptResponse.from_job(job)


@router.get("/{job_id}/progress", response_model=ProgressResponse)
async def get_progress(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> ProgressResponse:  # noqa: B008
  """Return live progress, including partial text of the chapter in flight."""
  job = await runtime.get_script(job_id)
  snapshot = runtime.progress(job_id) or ProgressSnapshot(job_id=job_id, stage=job.stage, completed_chapters=job.contiguous_chapter_count(), total_chapters=job.total_chapters, last_error=job.last_error)
  return ProgressResponse.from_snapshot(snapshot)


@router.post("/{job_id}/titles", response_model=ScriptResponse)
async def generate_titles(job_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Suggest video titles for a completed script."""
  return ScriptResponse.from_job(await runtime.generate_titles(job_id))


@router.post("/{job_id}/description", response_model=ScriptResponse)
async def generate_description(job_id: str, payload: DescriptionRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> ScriptResponse:  # noqa: B008
  """Adopt the final title and write the video description for it."""
  try:
    job = await runtime.generate_description(job_id, payload.title)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return ScriptResponse.from_job(job)
