from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_runtime
from app.api.models import PlotIdeaRequest, PlotIdeaResponse
from app.services.generation import GenerationRuntime

router = APIRouter()


@router.post("/plot", response_model=PlotIdeaResponse)
async def plot_idea(payload: PlotIdeaRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> PlotIdeaResponse:  # noqa: B008
  """Suggest a short plot for a proposed title."""
  try:
    plot = await runtime.plot_idea(payload.title)
  except ValueError as exc:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
  return PlotIdeaResponse(title=payload.title, plot=plot)
