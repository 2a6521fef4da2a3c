"""
Integration tests for SelectionService.

The viewer backend is a MagicMock replaying the recorded Tekla dump; the
store is in-memory SQLite.
"""
import copy
from unittest.mock import MagicMock

import pytest

from assembly_tracker.services.payloads import StatusKind
from assembly_tracker.services.selection import SelectionService
from assembly_tracker.viewer.client import ViewerClient
from assembly_tracker.viewer.highlight import status_color

IFC = "3FcXboENn1ZO0u4B9xk4w2"
INSTALLATION = {"installers": ["Mari"], "date": "2025-03-01", "method": "crane"}


def _backend(dump, handles):
    """Viewer selecting the dump objects with the given handles."""
    trees = {o["object_id"]: o["properties"] for o in dump["objects"]}
    backend = MagicMock()
    backend.get_project.return_value = {"id": dump["project_id"], "name": dump["project_name"]}
    backend.get_models.return_value = [{"id": dump["model_id"], "name": dump["model_name"]}]
    backend.get_objects.return_value = [
        {"modelId": dump["model_id"], "objects": [{"id": handle} for handle in handles]}
    ]
    backend.get_object_properties.return_value = [trees[handle] for handle in handles]
    return backend


@pytest.fixture
def make_service(sync_service):
    def _make(backend):
        return SelectionService(ViewerClient(backend), sync_service, max_depth=32)
    return _make


class TestHandleSelectionChange:
    @pytest.mark.asyncio
    async def test_selection_is_synced_and_loaded(self, dump, make_service):
        service = make_service(_backend(dump, ["101", "103"]))

        parts = await service.handle_selection_change()

        assert [p.mark for p in parts] == ["B-12", "P-7"]
        assert parts[0].identity == IFC
        assert parts[0].project_name == "Harbour Hall"
        assert parts[0].model_name == "steel.ifc"
        assert parts[1].identity == "runtime-model-a-103"
        assert service.current_identities == [IFC, "runtime-model-a-103"]

    @pytest.mark.asyncio
    async def test_empty_selection(self, make_service):
        backend = MagicMock()
        backend.get_objects.return_value = []
        service = make_service(backend)

        assert await service.handle_selection_change() == []
        assert service.current_identities == []
        backend.get_object_properties.assert_not_called()

    @pytest.mark.asyncio
    async def test_new_session_handles_map_to_same_part(self, dump, make_service, sync_service):
        first = make_service(_backend(dump, ["101"]))
        await first.handle_selection_change()
        await first.save_status(StatusKind.INSTALLATION, INSTALLATION, actor="Mari")

        # Next session: the viewer hands out a different runtime id for the same beam
        reloaded = copy.deepcopy(dump)
        reloaded["objects"][0]["object_id"] = "9001"
        reloaded["objects"][0]["properties"]["id"] = 9001
        second = make_service(_backend(reloaded, ["9001"]))

        (part,) = await second.handle_selection_change()

        assert part.identity == IFC
        assert part.object_id == "9001"
        assert part.installation.method == "crane"
        assert len(sync_service.get_parts([IFC])) == 1


class TestStatusActions:
    @pytest.mark.asyncio
    async def test_save_highlights_selection(self, dump, make_service):
        backend = _backend(dump, ["101", "103"])
        service = make_service(backend)
        await service.handle_selection_change()

        result = await service.save_status("installation", INSTALLATION, actor="Mari")

        assert result.written == 2
        backend.set_object_colors.assert_called_once_with(
            "model-a", ["101", "103"], status_color(StatusKind.INSTALLATION).as_dict()
        )

    @pytest.mark.asyncio
    async def test_remove_clears_highlight(self, dump, make_service, sync_service):
        backend = _backend(dump, ["101"])
        service = make_service(backend)
        await service.handle_selection_change()
        await service.save_status("bolting", {"installer": "Jaan", "date": "2025-03-02"}, actor="Jaan")

        await service.remove_status("bolting", actor="Jaan")

        backend.reset_object_colors.assert_called_once_with("model-a", ["101"])
        (part,) = sync_service.get_parts([IFC])
        assert part.bolting is None

    @pytest.mark.asyncio
    async def test_default_actor_used_when_missing(self, dump, make_service, sync_service):
        service = make_service(_backend(dump, ["101"]))
        await service.handle_selection_change()

        await service.save_status("delivery", {"vehicle": "TRUCK-12", "date": "2025-02-27"})

        (part,) = sync_service.get_parts([IFC])
        assert part.delivery.created_by == "Unknown user"
