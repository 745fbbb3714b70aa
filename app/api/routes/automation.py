import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_runtime
from app.api.models import AutomationStatusResponse, QueueEntryRequest, QueueEntryResponse
from app.config import get_settings
from app.jobs.automation import AutomationStatus
from app.services.generation import GenerationRuntime

router = APIRouter()
logger = logging.getLogger("app.api.routes.automation")


async def _status_response(runtime: GenerationRuntime, automation_status: AutomationStatus) -> AutomationStatusResponse:
  queue = await runtime.get_queue()
  return AutomationStatusResponse.from_status(automation_status, len(queue))


@router.get("", response_model=AutomationStatusResponse)
async def get_automation(runtime: GenerationRuntime = Depends(get_runtime)) -> AutomationStatusResponse:  # noqa: B008
  return await _status_response(runtime, runtime.automation_status())


@router.get("/queue", response_model=list[QueueEntryResponse])
async def get_queue(runtime: GenerationRuntime = Depends(get_runtime)) -> list[QueueEntryResponse]:  # noqa: B008
  return [QueueEntryResponse.from_entry(entry) for entry in await runtime.get_queue()]


@router.post("/queue", response_model=QueueEntryResponse, status_code=status.HTTP_201_CREATED)
async def add_queue_entry(payload: QueueEntryRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> QueueEntryResponse:  # noqa: B008
  duration_minutes = payload.duration_minutes or get_settings().default_duration_minutes
  try:
    entry = await runtime.enqueue(payload.title, duration_minutes, payload.plot, payload.style_guide, style_id=payload.style_id)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
  return QueueEntryResponse.from_entry(entry)


@router.delete("/queue/{entry_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_queue_entry(entry_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> None:  # noqa: B008
  if not await runtime.dequeue(entry_id):
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Queue entry {entry_id} not found.")


@router.post("/start", response_model=AutomationStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def start_automation(runtime: GenerationRuntime = Depends(get_runtime)) -> AutomationStatusResponse:  # noqa: B008
  """Start processing the queue from its head."""
  return await _status_response(runtime, runtime.start_automation())


@router.post("/pause", response_model=AutomationStatusResponse)
async def pause_automation(runtime: GenerationRuntime = Depends(get_runtime)) -> AutomationStatusResponse:  # noqa: B008
  """Interrupt the current job or cooldown; the queue head is kept."""
  return await _status_response(runtime, runtime.pause_automation())


@router.post("/resume", response_model=AutomationStatusResponse, status_code=status.HTTP_202_ACCEPTED)
async def resume_automation(runtime: GenerationRuntime = Depends(get_runtime)) -> AutomationStatusResponse:  # noqa: B008
  return await _status_response(runtime, runtime.resume_automation())


@router.post("/stop", response_model=AutomationStatusResponse)
async def stop_automation(runtime: GenerationRuntime = Depends(get_runtime)) -> AutomationStatusResponse:  # noqa: B008
  return await _status_response(runtime, runtime.stop_automation())
