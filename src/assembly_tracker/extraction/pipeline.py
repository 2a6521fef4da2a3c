"""
Composes flattener, identity resolver and attribute mapper.

    raw viewer object ──flatten──▶ FlattenResult ──┬─▶ resolve_identity ─┐
                                                   └─▶ map_attributes ───┴─▶ PartRecord

No I/O here; callers fetch the raw objects (viewer.client) and persist the
records (services.sync_service).
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Optional

from assembly_tracker.extraction.attributes import ModelContext, PartRecord, map_attributes
from assembly_tracker.extraction.flattener import DEFAULT_MAX_DEPTH, flatten
from assembly_tracker.extraction.identity import FallbackSeed, ResolvedIdentity, resolve_identity

logger = logging.getLogger(__name__)


@dataclass
class RawObject:
    """One object as returned by the viewer: its handle and its property tree."""

    object_id: str
    properties: Any


@dataclass
class ExtractedPart:
    record: PartRecord
    resolution: ResolvedIdentity


def extract_part(
    raw: RawObject,
    context: ModelContext,
    max_depth: int = DEFAULT_MAX_DEPTH,
    log: Optional[logging.Logger] = None,
) -> ExtractedPart:
    """Turn one raw object into an identity-keyed PartRecord. Never raises."""
    log = log or logger
    flattened = flatten(raw.properties, max_depth=max_depth)
    if flattened.cycles_skipped or flattened.depth_truncated:
        log.debug(
            "Object %s: skipped %d cyclic and %d too-deep branches",
            raw.object_id,
            flattened.cycles_skipped,
            flattened.depth_truncated,
        )

    resolution = resolve_identity(
        raw.properties,
        flattened,
        FallbackSeed(model_id=context.model_id, object_id=str(raw.object_id)),
        log=log,
    )
    record = map_attributes(
        flattened.flat_map,
        leaves=flattened.leaves,
        context=context,
        object_id=raw.object_id,
    )
    record = replace(
        record,
        identity=resolution.identity,
        identity_kind=resolution.kind,
        identity_source=resolution.source,
    )
    return ExtractedPart(record=record, resolution=resolution)


def extract_parts(
    objects: Iterable[RawObject],
    context: ModelContext,
    max_depth: int = DEFAULT_MAX_DEPTH,
    log: Optional[logging.Logger] = None,
) -> List[ExtractedPart]:
    """Extract a batch; objects without a handle are skipped with a warning."""
    log = log or logger
    extracted: List[ExtractedPart] = []
    for raw in objects:
        if raw is None or raw.object_id in (None, ""):
            log.warning("Skipping viewer object without a handle: %r", raw)
            continue
        extracted.append(extract_part(raw, context, max_depth=max_depth, log=log))

    synthetic = sum(1 for part in extracted if part.resolution.is_synthetic)
    if synthetic:
        log.warning(
            "%d of %d objects in model %s have no GUID (session-scoped identities)",
            synthetic,
            len(extracted),
            context.model_id,
        )
    return extracted
