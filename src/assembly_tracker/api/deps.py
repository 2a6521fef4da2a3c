"""Shared FastAPI dependencies."""
from typing import Optional

from assembly_tracker.db.engine import get_engine
from assembly_tracker.services.sync_service import PartSyncService

_service: Optional[PartSyncService] = None


def get_sync_service() -> PartSyncService:
    """One PartSyncService per process so every request shares its identity locks."""
    global _service
    if _service is None:
        _service = PartSyncService(get_engine())
    return _service
