"""
Tree flattener for viewer property responses.

Walks an arbitrary nested value (mappings, lists, primitives, any mix) and
produces:

  flat_map           every leaf under its dotted path ("Tekla_Assembly.Cast_unit_Mark")
                     AND under its bare key ("Cast_unit_Mark"); both are
                     first-writer-wins, an empty value (None / blank string) does
                     not count as written
  leaves             full dotted path → value only (no bare-key duplicates); a
                     path reached more than once (list elements share their
                     parent path) collects its non-empty values into a list
  string_candidates  every string leaf with its full path, in depth-first
                     document order

The map walk is breadth-first over an explicit queue. Each frame carries the
set of container ids on its own path from the root, so a node that refers
back to one of its ancestors is skipped (cycle) while the same node reached
through two sibling branches is visited twice. Depth is bounded separately
by max_depth; both limits are counted on the result so they can be tested
independently.

Breadth-first order means a shallow occurrence of a bare key always wins
over a deeper one. String candidates are gathered by a second, depth-first
pre-order walk with the same guards, so a GUID nested early in the document
comes before one that sits shallower further on.
"""
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, FrozenSet, List, Optional, Tuple

from assembly_tracker.extraction.shapes import classify, is_container

DEFAULT_MAX_DEPTH = 32


@dataclass(frozen=True)
class StringCandidate:
    path: str
    value: str


@dataclass
class FlattenResult:
    flat_map: Dict[str, Any] = field(default_factory=dict)
    leaves: Dict[str, Any] = field(default_factory=dict)
    string_candidates: List[StringCandidate] = field(default_factory=list)
    cycles_skipped: int = 0
    depth_truncated: int = 0


# node, dotted path, last structural key, ancestor ids, depth
_Frame = Tuple[Any, str, Optional[str], FrozenSet[int], int]


def join_path(path: str, segment: Optional[str]) -> str:
    if not segment:
        return path
    return f"{path}.{segment}" if path else segment


def is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _write_first(target: Dict[str, Any], key: str, value: Any) -> None:
    if key not in target or (is_empty(target[key]) and not is_empty(value)):
        target[key] = value


def _collect(target: Dict[str, Any], key: str, value: Any) -> None:
    """Like _write_first, but a second non-empty value turns the entry into a list."""
    if key not in target or (is_empty(target[key]) and not is_empty(value)):
        target[key] = value
    elif not is_empty(value):
        existing = target[key]
        if isinstance(existing, list):
            existing.append(value)
        else:
            target[key] = [existing, value]


def flatten(node: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> FlattenResult:
    """Flatten node. Never raises on malformed input; always terminates."""
    result = FlattenResult(string_candidates=string_candidates(node, max_depth))

    if not is_container(node):
        return result

    queue: Deque[_Frame] = deque([(node, "", None, frozenset(), 0)])
    while queue:
        current, path, key, ancestors, depth = queue.popleft()
        shape = classify(current)
        if shape is None:
            continue
        lineage = ancestors | {id(current)}

        for segment, child in shape.children(current):
            child_path = join_path(path, segment)
            child_key = segment if segment else key

            if not is_container(child):
                _record_leaf(result, child_path, child_key, child)
                continue
            if id(child) in lineage:
                result.cycles_skipped += 1
                continue
            if depth + 1 > max_depth:
                result.depth_truncated += 1
                continue
            queue.append((child, child_path, child_key, lineage, depth + 1))

    return result


def string_candidates(node: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> List[StringCandidate]:
    """Every string leaf under node in depth-first pre-order."""
    found: List[StringCandidate] = []
    stack: List[Tuple[Any, str, FrozenSet[int], int]] = [(node, "", frozenset(), 0)]
    while stack:
        current, path, ancestors, depth = stack.pop()
        if not is_container(current):
            if isinstance(current, str):
                found.append(StringCandidate(path=path, value=current))
            continue
        shape = classify(current)
        if shape is None:
            continue
        lineage = ancestors | {id(current)}

        children = []
        for segment, child in shape.children(current):
            if is_container(child) and (id(child) in lineage or depth + 1 > max_depth):
                continue
            children.append((child, join_path(path, segment), lineage, depth + 1))
        stack.extend(reversed(children))
    return found


def _record_leaf(result: FlattenResult, path: str, key: Optional[str], value: Any) -> None:
    if not path:
        return
    _collect(result.leaves, path, value)
    _write_first(result.flat_map, path, value)
    if key and key != path:
        _write_first(result.flat_map, key, value)
