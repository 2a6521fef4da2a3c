"""
Ingest a recorded batch of viewer objects (a property dump) without a live viewer.

Dump format (JSON):

    {
      "project_id": "...", "project_name": "...",
      "model_id": "...",   "model_name": "...",
      "objects": [{"object_id": "123" or 123, "properties": <property tree>}, ...]
    }

Used by the CLI (`python -m assembly_tracker ingest dump.json`) and by
POST /parts/ingest.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from assembly_tracker.extraction.attributes import ModelContext
from assembly_tracker.extraction.flattener import DEFAULT_MAX_DEPTH
from assembly_tracker.extraction.pipeline import RawObject, extract_parts
from assembly_tracker.services.sync_service import PartSyncService, SyncResult

logger = logging.getLogger(__name__)


class DumpObject(BaseModel):
    object_id: str
    properties: Any = None

    @field_validator("object_id", mode="before")
    @classmethod
    def _numeric_handle_as_text(cls, value: Any) -> Any:
        # Viewer runtime ids are numbers; recorded dumps keep them as such.
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class PropertyDump(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    project_id: str = ""
    project_name: str = ""
    model_id: str = ""
    model_name: str = ""
    objects: List[DumpObject] = []

    def context(self) -> ModelContext:
        return ModelContext(
            project_id=self.project_id,
            project_name=self.project_name,
            model_id=self.model_id,
            model_name=self.model_name,
        )


@dataclass
class IngestResult:
    sync: SyncResult
    identities: List[str] = field(default_factory=list)
    synthetic: int = 0


async def ingest_dump(
    service: PartSyncService,
    dump: PropertyDump,
    max_depth: int = DEFAULT_MAX_DEPTH,
    log: Optional[logging.Logger] = None,
) -> IngestResult:
    """Extract every object in the dump and sync the records in one batch."""
    log = log or logger
    raw_objects = [RawObject(object_id=o.object_id, properties=o.properties) for o in dump.objects]
    extracted = extract_parts(raw_objects, dump.context(), max_depth=max_depth, log=log)

    result = await service.sync([part.record for part in extracted])
    identities = list(dict.fromkeys(part.record.identity for part in extracted))
    log.info(
        "Ingested %d objects from model %s as %d parts",
        len(raw_objects), dump.model_id or "?", len(identities),
    )
    return IngestResult(
        sync=result,
        identities=identities,
        synthetic=sum(1 for part in extracted if part.resolution.is_synthetic),
    )
