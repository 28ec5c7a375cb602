from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from kyara.core.deps import synchronizer_dep
from kyara.services.selection_synchronizer import SelectionSynchronizer


class HealthResponse(BaseModel):
    status: str = "ok"


class ReadinessResponse(BaseModel):
    status: str
    phase: str


router = APIRouter()


@router.get("/healthz", response_model=HealthResponse)
async def healthz() -> HealthResponse:
    return HealthResponse()


@router.get("/readyz", response_model=ReadinessResponse, responses={503: {"model": ReadinessResponse}})
async def readyz(
    response: Response,
    synchronizer: SelectionSynchronizer = Depends(synchronizer_dep),
) -> ReadinessResponse:
    if synchronizer.is_loading():
        response.status_code = 503
        return ReadinessResponse(status="loading", phase=synchronizer.phase.value)
    return ReadinessResponse(status="ready", phase=synchronizer.phase.value)
