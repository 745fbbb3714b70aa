import logging

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_runtime
from app.api.models import StyleAnalysisRequest, StyleRequest, StyleResponse, StyleUpdateRequest
from app.services.generation import GenerationRuntime

router = APIRouter()
logger = logging.getLogger("app.api.routes.styles")


def _bad_request(exc: ValueError) -> HTTPException:
  return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("", response_model=list[StyleResponse])
async def list_styles(runtime: GenerationRuntime = Depends(get_runtime)) -> list[StyleResponse]:  # noqa: B008
  return [StyleResponse.from_style(style) for style in await runtime.list_styles()]


@router.post("", response_model=StyleResponse, status_code=status.HTTP_201_CREATED)
async def create_style(payload: StyleRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> StyleResponse:  # noqa: B008
  """Save a hand-written style guide to the library."""
  try:
    style = await runtime.create_style(payload.name, payload.guide)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return StyleResponse.from_style(style)


@router.post("/analyze", response_model=StyleResponse, status_code=status.HTTP_201_CREATED)
async def analyze_style(payload: StyleAnalysisRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> StyleResponse:  # noqa: B008
  """Reverse-engineer a style guide from sample scripts and save it."""
  try:
    style = await runtime.analyze_style(payload.name, payload.samples)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  logger.info("Analysed style %s from %d samples", style.style_id, len(payload.samples))
  return StyleResponse.from_style(style)


@router.get("/{style_id}", response_model=StyleResponse)
async def get_style(style_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> StyleResponse:  # noqa: B008
  return StyleResponse.from_style(await runtime.get_style(style_id))


@router.patch("/{style_id}", response_model=StyleResponse)
async def update_style(style_id: str, payload: StyleUpdateRequest, runtime: GenerationRuntime = Depends(get_runtime)) -> StyleResponse:  # noqa: B008
  try:
    style = await runtime.update_style(style_id, name=payload.name, guide=payload.guide)
  except ValueError as exc:
    raise _bad_request(exc) from exc
  return StyleResponse.from_style(style)


@router.delete("/{style_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_style(style_id: str, runtime: GenerationRuntime = Depends(get_runtime)) -> None:  # noqa: B008
  await runtime.delete_style(style_id)
