"""
Async wrapper around the 3D viewer / model API.

The viewer backend is whatever object the host application hands us (a
Workspace API bridge, a recorded session in tests). Its methods may be plain
callables or coroutine functions; plain callables are run in the thread pool
executor so they don't block the asyncio event loop.

Backend methods used (all optional except get_objects / get_object_properties):

  get_project()                                   {"id", "name"}
  get_models()                                    [{"id", "name"}, ...]
  get_objects(selected=True)                      [{"modelId", "objects": [{"id"}, ...]}, ...]
  get_object_properties(model_id, object_ids)     [{"id", ...property tree...}, ...]
  get_object_property_sets(model_id, object_ids)  [{"name", "properties": [...]}, ...]
  set_object_colors(model_id, object_ids, rgba)
  reset_object_colors(model_id, object_ids)

Every call tolerates the backend raising, returning None, or returning
something of the wrong shape: the failure is logged and an empty result is
returned instead.
"""
import asyncio
import inspect
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from assembly_tracker.extraction.pipeline import RawObject
from assembly_tracker.viewer.highlight import RGBA

logger = logging.getLogger(__name__)

_HANDLE_KEYS = ("id", "objectRuntimeId", "runtimeId", "objectId")


@dataclass(frozen=True)
class ProjectInfo:
    id: str
    name: str = ""


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str = ""


@dataclass
class ModelSelection:
    model_id: str
    object_ids: List[str] = field(default_factory=list)


def _handle(node: Any) -> Optional[str]:
    if isinstance(node, Mapping):
        for key in _HANDLE_KEYS:
            value = node.get(key)
            if value not in (None, ""):
                return str(value)
        return None
    if isinstance(node, (str, int)) and not isinstance(node, bool):
        return str(node)
    return None


def _as_list(value: Any) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


class ViewerClient:
    """Thin async, failure-tolerant facade over a viewer backend."""

    def __init__(self, backend, log: Optional[logging.Logger] = None):
        """
        Args:
            backend: the viewer API object (or a MagicMock in tests).
            log: diagnostics logger; defaults to this module's logger.
        """
        self._backend = backend
        self.log = log or logger

    async def _run(self, name: str, *args, **kwargs) -> Any:
        """Call backend.<name>; returns None if it is missing or raises."""
        fn = getattr(self._backend, name, None)
        if not callable(fn):
            self.log.debug("Viewer backend has no %s()", name)
            return None
        try:
            if inspect.iscoroutinefunction(fn):
                return await fn(*args, **kwargs)
            loop = asyncio.get_event_loop()
            result = await loop.run_in_executor(None, lambda: fn(*args, **kwargs))
            if inspect.isawaitable(result):
                result = await result
            return result
        except Exception as exc:
            self.log.warning("Viewer call %s() failed: %s", name, exc)
            return None

    # ─── Descriptors ──────────────────────────────────────────────────────────

    async def get_project(self) -> Optional[ProjectInfo]:
        raw = await self._run("get_project")
        if not isinstance(raw, Mapping) or raw.get("id") in (None, ""):
            return None
        return ProjectInfo(id=str(raw["id"]), name=str(raw.get("name") or ""))

    async def get_models(self) -> List[ModelInfo]:
        models = []
        for raw in _as_list(await self._run("get_models")):
            if isinstance(raw, Mapping) and raw.get("id") not in (None, ""):
                models.append(ModelInfo(id=str(raw["id"]), name=str(raw.get("name") or "")))
        return models

    # ─── Selection ────────────────────────────────────────────────────────────

    async def get_selected_objects(self) -> List[ModelSelection]:
        """Currently selected handles, grouped per model. Empty on any failure."""
        selections: List[ModelSelection] = []
        for group in _as_list(await self._run("get_objects", selected=True)):
            if not isinstance(group, Mapping) or group.get("modelId") in (None, ""):
                continue
            handles = [h for h in (_handle(o) for o in _as_list(group.get("objects"))) if h]
            if handles:
                selections.append(ModelSelection(model_id=str(group["modelId"]), object_ids=handles))
        return selections

    # ─── Properties ───────────────────────────────────────────────────────────

    async def get_object_properties(self, model_id: str, object_ids: Sequence[str]) -> List[RawObject]:
        """One RawObject per requested handle, in request order.

        Falls back from object properties to property sets, then to a
        placeholder tree so the object is still tracked.
        """
        if not object_ids:
            return []
        found = self._index_by_handle(
            await self._run("get_object_properties", model_id, list(object_ids)), object_ids
        )

        objects: List[RawObject] = []
        for object_id in object_ids:
            tree = found.get(object_id)
            if tree is None:
                tree = await self._property_sets(model_id, object_id)
            if tree is None:
                self.log.warning("No properties for object %s in model %s", object_id, model_id)
                tree = {"_runtimeId": object_id, "_modelId": model_id}
            objects.append(RawObject(object_id=object_id, properties=tree))
        return objects

    @staticmethod
    def _index_by_handle(raw: Any, object_ids: Sequence[str]) -> Dict[str, Any]:
        """Match property trees to handles by their id, else by position."""
        items = _as_list(raw)
        indexed: Dict[str, Any] = {}
        for position, item in enumerate(items):
            if not isinstance(item, Mapping) or not item:
                continue
            handle = _handle(item)
            if handle is None and position < len(object_ids) and len(items) == len(object_ids):
                handle = object_ids[position]
            if handle is not None:
                indexed.setdefault(handle, item)
        return indexed

    async def _property_sets(self, model_id: str, object_id: str) -> Optional[Dict[str, Any]]:
        psets = _as_list(await self._run("get_object_property_sets", model_id, [object_id]))
        if not psets:
            return None
        return {"id": object_id, "properties": psets}

    # ─── Highlight ────────────────────────────────────────────────────────────

    async def highlight(self, model_id: str, object_ids: Sequence[str], color: RGBA) -> None:
        if object_ids:
            await self._run("set_object_colors", model_id, list(object_ids), color.as_dict())

    async def clear_highlight(self, model_id: str, object_ids: Sequence[str]) -> None:
        if object_ids:
            await self._run("reset_object_colors", model_id, list(object_ids))
