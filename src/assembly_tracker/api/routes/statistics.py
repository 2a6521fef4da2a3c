"""Status rollup route."""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from assembly_tracker.api.deps import get_sync_service
from assembly_tracker.errors import StoreError
from assembly_tracker.services.statistics import StatisticsScope, get_statistics
from assembly_tracker.services.sync_service import PartSyncService

router = APIRouter()


class StatisticsResponse(BaseModel):
    total: int
    installed: int
    delivered: int
    bolted: int


@router.get("/", response_model=StatisticsResponse)
def statistics(
    project_id: str,
    model_id: Optional[str] = None,
    service: PartSyncService = Depends(get_sync_service),
):
    """Counts for a project, optionally narrowed to one model."""
    try:
        stats = get_statistics(service.engine, StatisticsScope(project_id=project_id, model_id=model_id))
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return StatisticsResponse(**stats.as_dict())
