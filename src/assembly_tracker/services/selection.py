"""
Selection-change orchestration.

  viewer selection ─▶ property trees ─▶ extract_parts ─▶ sync ─▶ get_parts

The service remembers which identities (and which viewer handles) the last
selection resolved to, so status saves and removals act on exactly those
parts and can recolour them in the viewer afterwards.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple, Union

from assembly_tracker.config import get_settings
from assembly_tracker.extraction.attributes import ModelContext
from assembly_tracker.extraction.pipeline import extract_parts
from assembly_tracker.models.part import AssemblyPart
from assembly_tracker.services.payloads import StatusKind, parse_kind
from assembly_tracker.services.sync_service import MutationResult, PartSyncService
from assembly_tracker.viewer.client import ViewerClient
from assembly_tracker.viewer.highlight import status_color

logger = logging.getLogger(__name__)


class SelectionService:
    def __init__(
        self,
        viewer: ViewerClient,
        sync_service: PartSyncService,
        max_depth: Optional[int] = None,
        log: Optional[logging.Logger] = None,
    ):
        self.viewer = viewer
        self.sync_service = sync_service
        self.max_depth = max_depth if max_depth is not None else get_settings().flatten_max_depth
        self.log = log or logger
        # identity -> (model_id, object_id) for the current selection
        self._handles: Dict[str, Tuple[str, str]] = {}

    @property
    def current_identities(self) -> List[str]:
        return list(self._handles)

    async def handle_selection_change(self) -> List[AssemblyPart]:
        """Refresh the stored parts for whatever is selected now.

        Returns the selected parts with their status and log history. An
        empty selection clears the current set and returns [].
        """
        selections = await self.viewer.get_selected_objects()
        if not selections:
            self._handles = {}
            return []

        project = await self.viewer.get_project()
        model_names = {m.id: m.name for m in await self.viewer.get_models()}

        handles: Dict[str, Tuple[str, str]] = {}
        records = []
        for selection in selections:
            context = ModelContext(
                project_id=project.id if project else "",
                project_name=project.name if project else "",
                model_id=selection.model_id,
                model_name=model_names.get(selection.model_id, ""),
            )
            raw_objects = await self.viewer.get_object_properties(
                selection.model_id, selection.object_ids
            )
            for part in extract_parts(raw_objects, context, max_depth=self.max_depth, log=self.log):
                records.append(part.record)
                handles[part.record.identity] = (selection.model_id, part.record.object_id)

        await self.sync_service.sync(records)
        self._handles = handles
        self.log.info("Selection resolved to %d parts", len(handles))
        return self.sync_service.get_parts(handles)

    async def save_status(
        self,
        kind: Union[str, StatusKind],
        payload: Any,
        actor: Optional[str] = None,
    ) -> MutationResult:
        """Apply a status to the current selection and colour it in the viewer."""
        kind = parse_kind(kind)
        result = await self.sync_service.apply_status(
            self.current_identities, kind, payload, actor or get_settings().default_actor
        )
        for model_id, object_ids in self._by_model(result.identities).items():
            await self.viewer.highlight(model_id, object_ids, status_color(kind))
        return result

    async def remove_status(
        self,
        kind: Union[str, StatusKind],
        actor: Optional[str] = None,
    ) -> MutationResult:
        """Remove a status from the current selection and reset its colours."""
        result = await self.sync_service.remove_status(
            self.current_identities, kind, actor or get_settings().default_actor
        )
        for model_id, object_ids in self._by_model(result.identities).items():
            await self.viewer.clear_highlight(model_id, object_ids)
        return result

    def _by_model(self, identities: List[str]) -> Dict[str, List[str]]:
        grouped: Dict[str, List[str]] = defaultdict(list)
        for identity in identities:
            if identity in self._handles:
                model_id, object_id = self._handles[identity]
                grouped[model_id].append(object_id)
        return dict(grouped)
