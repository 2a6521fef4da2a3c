"""
Attribute mapper: flattened properties → canonical PartRecord.

Each canonical field has an ordered tuple of source keys. The first key
present in the flat map with a non-empty value wins; otherwise the field
falls back to its default:

  mark      "N/A"
  type      "Unknown"
  weight    None   (numeric)
  length    None   (numeric)
  others    ""

Numbers are parsed the way a browser's parseFloat does it: leading numeric
text is used ("250.5 kg" → 250.5), anything else ("", None, "abc", NaN,
booleans) maps to None. Never to zero, never an exception.

Leaves that do not feed a canonical field (or the identity) are kept
verbatim in extra_attributes, keyed by their full flattened path.

The project name, model id and model name come from the loading context but
are overridden by the object's own "Project", "ModelId" and "FileName"
properties when those are present.
"""
import json
import math
import re
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional, Tuple

from assembly_tracker.extraction.flattener import is_empty
from assembly_tracker.extraction.identity import IDENTITY_ALIASES, IdentityKind, classify_guid

FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "mark": ("Tekla_Assembly.Cast_unit_Mark", "Mark", "Name"),
    "name": ("Name", "Tekla_Assembly.Cast_unit_Mark"),
    "type": ("Type", "Tekla_Assembly.Cast_unit_type"),
    "assembly": ("Tekla_Assembly.Assembly", "Assembly", "Assembly Code"),
    "weight": ("Tekla_Assembly.Cast_unit_weight", "Weight"),
    "phase": ("Phase", "Assembly Phase"),
    "profile": ("Profile", "Section"),
    "material": ("Material", "Grade"),
    "length": ("Length",),
}

# Context overrides carried by the object itself.
METADATA_ALIASES: Dict[str, Tuple[str, ...]] = {
    "project_name": ("Project",),
    "model_id": ("ModelId",),
    "model_name": ("FileName",),
}

NUMERIC_FIELDS = frozenset({"weight", "length"})

FIELD_DEFAULTS: Dict[str, Any] = {
    "mark": "N/A",
    "type": "Unknown",
    "weight": None,
    "length": None,
}

_LEADING_NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")

_CONSUMED_KEYS = frozenset(
    key
    for aliases in list(FIELD_ALIASES.values()) + list(METADATA_ALIASES.values())
    for key in aliases
)
_IDENTITY_KEYS = frozenset(alias.lower() for alias in IDENTITY_ALIASES)


@dataclass
class ModelContext:
    """Where a batch of objects was loaded from."""

    project_id: str = ""
    project_name: str = ""
    model_id: str = ""
    model_name: str = ""


@dataclass
class PartRecord:
    """Canonical, identity-keyed snapshot of one model object.

    identity / identity_kind / identity_source are empty until the record is
    composed with a resolved identity (see extraction.pipeline).
    """

    identity: str = ""
    identity_kind: Optional[IdentityKind] = None
    identity_source: str = ""
    project_id: str = ""
    project_name: str = ""
    model_id: str = ""
    model_name: str = ""
    object_id: str = ""
    mark: str = "N/A"
    name: str = ""
    type: str = "Unknown"
    assembly: str = ""
    weight: Optional[float] = None
    phase: str = ""
    profile: str = ""
    material: str = ""
    length: Optional[float] = None
    extra_attributes: Dict[str, Any] = field(default_factory=dict)

    def to_row(self) -> Dict[str, Any]:
        """Column dict for the assemblypart table."""
        row = asdict(self)
        extra = row.pop("extra_attributes")
        kind = self.identity_kind or classify_guid(self.identity) or IdentityKind.SYNTHETIC
        row["identity_kind"] = kind.value
        row["extra_attributes_json"] = (
            json.dumps(extra, sort_keys=True, default=str) if extra else None
        )
        return row


def parse_number(value: Any) -> Optional[float]:
    """parseFloat-style coercion. Returns None instead of zero or raising."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        match = _LEADING_NUMBER_RE.match(value.strip())
        if not match:
            return None
        number = float(match.group(0))
    else:
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def first_present(flat_map: Mapping, aliases: Tuple[str, ...]) -> Optional[Any]:
    """The first alias whose value is present and non-empty."""
    for alias in aliases:
        value = flat_map.get(alias)
        if not is_empty(value):
            return value
    return None


def extra_attributes(leaves: Mapping) -> Dict[str, Any]:
    """Leaves that feed neither a canonical field nor the identity."""
    extra: Dict[str, Any] = {}
    for path, value in leaves.items():
        last = path.rsplit(".", 1)[-1]
        if path in _CONSUMED_KEYS or last in _CONSUMED_KEYS:
            continue
        if last.lower() in _IDENTITY_KEYS:
            continue
        extra[path] = value
    return extra


def map_attributes(
    flat_map: Mapping,
    leaves: Optional[Mapping] = None,
    context: Optional[ModelContext] = None,
    object_id: str = "",
) -> PartRecord:
    """Build a PartRecord (without identity) from a flattened property map.

    Args:
        flat_map: FlattenResult.flat_map (full paths and bare keys).
        leaves: FlattenResult.leaves; used for extra_attributes. Falls back to
            the dotted keys of flat_map when omitted.
        context: project / model the object was loaded from.
        object_id: the viewer's session-scoped handle for the object.
    """
    context = context or ModelContext()
    fields: Dict[str, Any] = {}

    for name, aliases in FIELD_ALIASES.items():
        value = first_present(flat_map, aliases)
        if name in NUMERIC_FIELDS:
            fields[name] = parse_number(value)
        elif value is None:
            fields[name] = FIELD_DEFAULTS.get(name, "")
        else:
            fields[name] = _text(value)

    metadata = {
        "project_name": context.project_name,
        "model_id": context.model_id,
        "model_name": context.model_name,
    }
    for name, aliases in METADATA_ALIASES.items():
        value = first_present(flat_map, aliases)
        if value is not None:
            metadata[name] = _text(value)

    if leaves is None:
        leaves = {k: v for k, v in flat_map.items() if "." in k}

    return PartRecord(
        project_id=context.project_id,
        object_id=str(object_id),
        extra_attributes=extra_attributes(leaves),
        **metadata,
        **fields,
    )
