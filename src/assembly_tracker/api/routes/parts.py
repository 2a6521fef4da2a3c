"""Part ingest and lookup routes."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from assembly_tracker.api.deps import get_sync_service
from assembly_tracker.config import get_settings
from assembly_tracker.errors import StoreError, ValidationError
from assembly_tracker.models.views import PartView
from assembly_tracker.services.ingest import PropertyDump, ingest_dump
from assembly_tracker.services.sync_service import PartSyncService

router = APIRouter()


class IngestResponse(BaseModel):
    created: int
    updated: int
    unchanged: int
    synthetic: int
    identities: List[str]


@router.post("/ingest", response_model=IngestResponse)
async def ingest(
    dump: PropertyDump,
    service: PartSyncService = Depends(get_sync_service),
):
    """Extract and upsert a batch of viewer objects."""
    try:
        result = await ingest_dump(service, dump, max_depth=get_settings().flatten_max_depth)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.problems)
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return IngestResponse(
        created=result.sync.created,
        updated=result.sync.updated,
        unchanged=result.sync.unchanged,
        synthetic=result.synthetic,
        identities=result.identities,
    )


@router.get("/", response_model=List[PartView])
def list_parts(
    identity: List[str] = Query(default=[]),
    service: PartSyncService = Depends(get_sync_service),
):
    """Parts by identity, with status and log history, ordered by mark."""
    try:
        parts = service.get_parts(identity)
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return [PartView.from_part(part) for part in parts]


class DeleteResponse(BaseModel):
    deleted: int


@router.get("/by-object", response_model=List[PartView])
def list_parts_by_object(
    project_id: str,
    model_id: str,
    object_id: List[str] = Query(default=[]),
    service: PartSyncService = Depends(get_sync_service),
):
    """Parts currently bound to viewer handles in one model."""
    try:
        parts = service.get_parts_by_object_ids(project_id, model_id, object_id)
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return [PartView.from_part(part) for part in parts]


@router.delete("/", response_model=DeleteResponse)
async def delete_parts(
    identity: List[str] = Query(default=[]),
    service: PartSyncService = Depends(get_sync_service),
):
    """Delete parts with their status rows and log history."""
    try:
        deleted = await service.delete_parts(identity)
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.problems)
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return DeleteResponse(deleted=deleted)
