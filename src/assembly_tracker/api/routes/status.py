"""Status save / remove routes."""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from assembly_tracker.api.deps import get_sync_service
from assembly_tracker.config import get_settings
from assembly_tracker.errors import StoreError, ValidationError
from assembly_tracker.services.sync_service import MutationResult, PartSyncService

router = APIRouter()


class StatusRequest(BaseModel):
    identities: List[str]
    payload: Dict[str, Any] = {}
    actor: Optional[str] = None


class RemoveRequest(BaseModel):
    identities: List[str]
    actor: Optional[str] = None


class MutationResponse(BaseModel):
    kind: str
    identities: List[str]
    written: int
    audited: bool
    audit_error: Optional[str] = None


def _response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        kind=result.kind.value,
        identities=result.identities,
        written=result.written,
        audited=result.audited,
        audit_error=str(result.audit_error) if result.audit_error else None,
    )


@router.post("/{kind}", response_model=MutationResponse)
async def save_status(
    kind: str,
    request: StatusRequest,
    service: PartSyncService = Depends(get_sync_service),
):
    """Set installation / delivery / bolting on every listed part."""
    try:
        result = await service.apply_status(
            request.identities, kind, request.payload, request.actor or get_settings().default_actor
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.problems)
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return _response(result)


@router.post("/{kind}/remove", response_model=MutationResponse)
async def remove_status(
    kind: str,
    request: RemoveRequest,
    service: PartSyncService = Depends(get_sync_service),
):
    """Clear installation / delivery / bolting from every listed part."""
    try:
        result = await service.remove_status(
            request.identities, kind, request.actor or get_settings().default_actor
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.problems)
    except StoreError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return _response(result)
