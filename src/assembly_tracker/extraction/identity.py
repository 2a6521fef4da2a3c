"""
Identity resolution for viewer objects.

A part's identity is its GUID. The viewer exposes it inconsistently: under
a dozen or more key names, directly on the object or on a nested reference
container, deep inside a property set, or only as an unlabeled string that
happens to look like a GUID. Two textual encodings exist:

  IFC   22 characters of [0-9A-Za-z_$]          e.g. 3FcXboENn1ZO0u4B9xk4w2
  MS    8-4-4-4-12 hex digits with hyphens     e.g. 550e8400-e29b-41d4-a716-446655440000

resolve_identity() tries these strategies in a fixed order; the first one
that yields a value wins:

  1. direct        alias keys on the raw object itself
  2. reference     alias keys on recognized nested containers (ReferenceObjectShape)
  3. flat_key      flat-map keys whose last segment matches an alias (case-insensitive)
  4. pattern       string leaves shaped like a GUID; IFC beats MS, then encounter order
  5. synthetic     "runtime-<model_id>-<object_id>", never stable across sessions

Strategies 3 and 4 ignore anything below a hierarchy parent (HIERARCHY_KEYS):
that GUID belongs to the enclosing assembly and is shared by its siblings.

Within strategies 1–3, IDENTITY_ALIASES order is authoritative. When several
aliases on the winning tier carry different values, the first one is used
and a ResolutionAmbiguity is attached to the result (and logged).

Every strategy is a pure function over already-fetched data.
"""
import enum
import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Sequence, Tuple

from assembly_tracker.errors import ResolutionAmbiguity
from assembly_tracker.extraction.flattener import FlattenResult, StringCandidate
from assembly_tracker.extraction.shapes import HIERARCHY_KEYS, REFERENCE_OBJECT

logger = logging.getLogger(__name__)

IFC_GUID_RE = re.compile(r"^[0-9A-Za-z_$]{22}$")
MS_GUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

# Order matters: earlier aliases are authoritative on a tie.
IDENTITY_ALIASES: Tuple[str, ...] = (
    "guid",
    "GUID",
    "Guid",
    "GlobalId",
    "globalId",
    "GlobalID",
    "guidIfc",
    "ifcGuid",
    "IfcGuid",
    "IFC_GUID",
    "IFCGUID",
    "ifc_guid",
    "guidMs",
    "msGuid",
    "MS_GUID",
    "externalId",
    "ExternalId",
)

# lowercased alias → rank of its first spelling
_ALIAS_RANK = {
    alias.lower(): rank for rank, alias in reversed(list(enumerate(IDENTITY_ALIASES)))
}

_HIERARCHY = {key.lower() for key in HIERARCHY_KEYS}

SYNTHETIC_PREFIX = "runtime-"


class IdentityKind(str, enum.Enum):
    IFC = "ifc"
    MS = "ms"
    SYNTHETIC = "synthetic"


@dataclass(frozen=True)
class FallbackSeed:
    """Session-scoped handles used when no real GUID can be found."""

    model_id: str
    object_id: str


@dataclass
class ResolvedIdentity:
    identity: str
    kind: IdentityKind
    source: str
    warnings: List[ResolutionAmbiguity] = field(default_factory=list)

    @property
    def is_synthetic(self) -> bool:
        return self.kind is IdentityKind.SYNTHETIC


# (value, source) pairs in authoritative order
_Hits = List[Tuple[str, str]]


def classify_guid(value: Any) -> Optional[IdentityKind]:
    """Return IFC or MS for GUID-shaped strings, None for anything else."""
    if not isinstance(value, str):
        return None
    text = value.strip()
    if IFC_GUID_RE.match(text):
        return IdentityKind.IFC
    if MS_GUID_RE.match(text):
        return IdentityKind.MS
    return None


def _kind_for(value: str) -> IdentityKind:
    # Labeled GUIDs that match neither pattern are still trusted; the hyphen
    # decides which family they are filed under.
    kind = classify_guid(value)
    if kind is not None:
        return kind
    return IdentityKind.MS if "-" in value else IdentityKind.IFC


def _identity_value(value: Any) -> Optional[str]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        value = str(value)
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


def _alias_hits(node: Mapping, prefix: str) -> _Hits:
    hits: _Hits = []
    for alias in IDENTITY_ALIASES:
        value = _identity_value(node.get(alias))
        if value is not None:
            hits.append((value, f"{prefix}{alias}"))
    return hits


# ── Strategies ────────────────────────────────────────────────────────────────

def from_direct_fields(raw: Any) -> _Hits:
    """Tier 1: alias keys on the raw object itself."""
    if not isinstance(raw, Mapping):
        return []
    return _alias_hits(raw, "direct.")


def from_reference_containers(raw: Any) -> _Hits:
    """Tier 2: alias keys on nested reference containers, in container order."""
    if not REFERENCE_OBJECT.has_shape(raw):
        return []
    hits: _Hits = []
    for key, container in REFERENCE_OBJECT.containers(raw):
        hits.extend(_alias_hits(container, f"reference.{key}."))
    return hits


def _in_hierarchy(path: str) -> bool:
    return any(segment.lower() in _HIERARCHY for segment in path.split("."))


def from_flat_keys(flattened: FlattenResult) -> _Hits:
    """Tier 3: flattened paths whose last segment matches an alias, any case.

    Paths under a hierarchy parent are ignored. A path holding several values
    contributes each of them in order.
    """
    ranked = []
    order = 0
    for path, value in flattened.leaves.items():
        rank = _ALIAS_RANK.get(path.rsplit(".", 1)[-1].lower())
        if rank is None or _in_hierarchy(path):
            continue
        for item in value if isinstance(value, list) else [value]:
            text = _identity_value(item)
            if text is not None:
                ranked.append((rank, order, text, f"flat.{path}"))
                order += 1
    ranked.sort()
    return [(text, source) for _, _, text, source in ranked]


def from_string_patterns(candidates: Sequence[StringCandidate]) -> _Hits:
    """Tier 4: GUID-shaped strings. All IFC matches come before any MS match.

    Strings under a hierarchy parent are ignored.
    """
    ifc: _Hits = []
    ms: _Hits = []
    for candidate in candidates:
        if _in_hierarchy(candidate.path):
            continue
        kind = classify_guid(candidate.value)
        if kind is IdentityKind.IFC:
            ifc.append((candidate.value.strip(), f"pattern.{candidate.path}"))
        elif kind is IdentityKind.MS:
            ms.append((candidate.value.strip(), f"pattern.{candidate.path}"))
    return ifc + ms


def synthetic_identity(seed: FallbackSeed) -> str:
    return f"{SYNTHETIC_PREFIX}{seed.model_id}-{seed.object_id}"


# ── Resolver ──────────────────────────────────────────────────────────────────

def resolve_identity(
    raw: Any,
    flattened: FlattenResult,
    seed: FallbackSeed,
    log: Optional[logging.Logger] = None,
) -> ResolvedIdentity:
    """Pick the single best identity for one viewer object. Never raises."""
    log = log or logger
    tiers: List[Tuple[str, Callable[[], _Hits]]] = [
        ("direct", lambda: from_direct_fields(raw)),
        ("reference", lambda: from_reference_containers(raw)),
        ("flat_key", lambda: from_flat_keys(flattened)),
    ]

    for tier, strategy in tiers:
        hits = strategy()
        if not hits:
            continue
        value, source = hits[0]
        resolved = ResolvedIdentity(identity=value, kind=_kind_for(value), source=source)
        _note_conflicts(resolved, hits, tier, log)
        return resolved

    hits = from_string_patterns(flattened.string_candidates)
    if hits:
        value, source = hits[0]
        return ResolvedIdentity(identity=value, kind=classify_guid(value), source=source)

    resolved = ResolvedIdentity(
        identity=synthetic_identity(seed),
        kind=IdentityKind.SYNTHETIC,
        source="synthetic",
    )
    warning = ResolutionAmbiguity(
        f"no GUID found for object {seed.object_id} in model {seed.model_id}; "
        f"using session-scoped identity {resolved.identity}"
    )
    resolved.warnings.append(warning)
    log.warning("%s", warning)
    return resolved


def _note_conflicts(resolved: ResolvedIdentity, hits: _Hits, tier: str, log: logging.Logger) -> None:
    others = sorted({value for value, _ in hits[1:] if value != resolved.identity})
    if not others:
        return
    warning = ResolutionAmbiguity(
        f"{tier} tier has conflicting GUIDs; using {resolved.identity} from "
        f"{resolved.source}, ignoring {', '.join(others)}"
    )
    resolved.warnings.append(warning)
    log.warning("%s", warning)
