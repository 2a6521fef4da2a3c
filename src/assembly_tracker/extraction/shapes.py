"""
Tagged shapes of viewer property responses.

The viewer returns "JSON-like" trees whose layout depends on the model
format, the API version and the object type. The variants we know about:

  ArrayShape          [...]                      elements share the parent path
  PropertySetShape    {"name": "Tekla Assembly",  a named set; its properties are
                       "properties": [{"name": ..., "value": ...}, ...]}
                                                 recorded as "SetName.PropertyName"
  NamedValueShape     {"name": "Weight", "value": 12.5}
                                                 one property, keyed by its name
  ReferenceObjectShape {"referenceObject": {...}} a node that carries a nested
                                                 object describing the same part
  FlatObjectShape     {"Weight": 12.5, ...}      plain key → value mapping

Every shape answers has_shape(node) and children(node). classify() tries the
shapes in SHAPE_ORDER and returns the first match; leaves (anything that is not
a list or mapping) classify as None.

Children are (segment, value) pairs. A segment of None means the child does
not add anything to the dotted path (array elements, property lists).
"""
from collections.abc import Mapping
from typing import Any, Iterator, List, Optional, Tuple

# Keys under which a property set keeps its list of properties.
PROPERTY_LIST_KEYS = ("properties", "propertySets", "psets", "Properties")

# Keys that name a property set.
SET_NAME_KEYS = ("set", "setName", "propertySetName", "name", "displayName")

# Nested nodes that describe the same real-world object (reference objects,
# IFC product/entity records).
REFERENCE_CONTAINER_KEYS = (
    "referenceObject",
    "reference",
    "externalObject",
    "product",
    "entity",
    "ifcEntity",
)

# Nested nodes that describe a different object (the assembly or group the
# part belongs to). Their GUIDs are shared by siblings and never identify a part.
HIERARCHY_KEYS = ("parent", "parents")

Child = Tuple[Optional[str], Any]


def is_container(node: Any) -> bool:
    return isinstance(node, (list, tuple, Mapping))


def set_segment(name: str) -> str:
    """Property-set names become path segments with inner whitespace as "_".

    "Tekla Assembly" → "Tekla_Assembly", so paths read "Tekla_Assembly.Cast_unit_Mark".
    """
    return "_".join(name.split())


def _property_list(node: Mapping) -> Optional[Tuple[str, list]]:
    for key in PROPERTY_LIST_KEYS:
        value = node.get(key)
        if isinstance(value, (list, tuple)):
            return key, list(value)
    return None


class Shape:
    name = "shape"

    def has_shape(self, node: Any) -> bool:
        raise NotImplementedError

    def children(self, node: Any) -> Iterator[Child]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


class ArrayShape(Shape):
    name = "array"

    def has_shape(self, node: Any) -> bool:
        return isinstance(node, (list, tuple))

    def children(self, node: Any) -> Iterator[Child]:
        for element in node:
            yield None, element


class NamedValueShape(Shape):
    name = "named_value"

    def has_shape(self, node: Any) -> bool:
        if not isinstance(node, Mapping) or "value" not in node:
            return False
        name = node.get("name")
        return isinstance(name, str) and bool(name.strip()) and _property_list(node) is None

    def children(self, node: Any) -> Iterator[Child]:
        yield node["name"].strip(), node["value"]


class PropertySetShape(Shape):
    """A named set whose property list holds at least one named value."""

    name = "property_set"

    def _set_name(self, node: Mapping) -> Optional[Tuple[str, str]]:
        for key in SET_NAME_KEYS:
            value = node.get(key)
            if isinstance(value, str) and value.strip():
                return key, value.strip()
        return None

    def has_shape(self, node: Any) -> bool:
        if not isinstance(node, Mapping):
            return False
        found = _property_list(node)
        if found is None or self._set_name(node) is None:
            return False
        _, props = found
        return any(NAMED_VALUE.has_shape(p) for p in props)

    def children(self, node: Any) -> Iterator[Child]:
        list_key, props = _property_list(node)
        name_key, set_name = self._set_name(node)
        yield set_segment(set_name), props
        for key, value in node.items():
            if key in (list_key, name_key):
                continue
            yield str(key), value


class ReferenceObjectShape(Shape):
    """A mapping that carries one or more nested reference containers.

    Flattening treats it like any mapping; identity resolution asks it for
    its containers.
    """

    name = "reference_object"

    def has_shape(self, node: Any) -> bool:
        return isinstance(node, Mapping) and any(
            isinstance(node.get(key), (Mapping, list, tuple))
            for key in REFERENCE_CONTAINER_KEYS
        )

    def containers(self, node: Any) -> List[Tuple[str, Mapping]]:
        """Nested mappings in REFERENCE_CONTAINER_KEYS order, list elements in order."""
        found: List[Tuple[str, Mapping]] = []
        if not isinstance(node, Mapping):
            return found
        for key in REFERENCE_CONTAINER_KEYS:
            value = node.get(key)
            if isinstance(value, Mapping):
                found.append((key, value))
            elif isinstance(value, (list, tuple)):
                found.extend((key, v) for v in value if isinstance(v, Mapping))
        return found

    def children(self, node: Any) -> Iterator[Child]:
        return FLAT_OBJECT.children(node)


class FlatObjectShape(Shape):
    name = "flat_object"

    def has_shape(self, node: Any) -> bool:
        return isinstance(node, Mapping)

    def children(self, node: Any) -> Iterator[Child]:
        for key, value in node.items():
            # A bare list of property sets adds nothing to the path.
            if key in PROPERTY_LIST_KEYS and isinstance(value, (list, tuple)):
                yield None, value
            else:
                yield str(key), value


ARRAY = ArrayShape()
PROPERTY_SET = PropertySetShape()
NAMED_VALUE = NamedValueShape()
REFERENCE_OBJECT = ReferenceObjectShape()
FLAT_OBJECT = FlatObjectShape()

SHAPE_ORDER = (ARRAY, PROPERTY_SET, NAMED_VALUE, REFERENCE_OBJECT, FLAT_OBJECT)


def classify(node: Any) -> Optional[Shape]:
    """Return the first shape in SHAPE_ORDER that accepts node, or None for leaves."""
    for shape in SHAPE_ORDER:
        if shape.has_shape(node):
            return shape
    return None
