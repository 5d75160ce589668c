"""
Managed object types and the per-type field declarations that drive
diffing, planning and rendering.
"""

import copy
import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Tuple


class ManagedObjectType(str, Enum):
    """Kinds of catalog objects schemasync can own."""

    COLLECTION = "Collection"
    INDEX = "Index"
    FUNCTION = "Function"
    ROLE = "Role"

    @property
    def plural(self) -> str:
        """Config section / listing name for this type."""
        return {
            ManagedObjectType.COLLECTION: "collections",
            ManagedObjectType.INDEX: "indexes",
            ManagedObjectType.FUNCTION: "functions",
            ManagedObjectType.ROLE: "roles",
        }[self]


ObjectKey = Tuple[ManagedObjectType, str]


def canonical_json(value: Any) -> str:
    """Stable text form of a JSON-like value, used for set canonicalization."""
    return json.dumps(value, sort_keys=True, default=str, separators=(",", ":"))


@dataclass(frozen=True)
class FieldSpec:
    """
    Declaration of one managed attribute.

    ``ordered=False`` marks list fields compared as sets. ``forward_reference``
    fields may name objects created later in the same run and are deferred to
    the relational phase. ``optional`` fields are only compared when the
    desired side sets them, so server defaults do not show up as drift.
    ``computed`` names server-populated keys stripped from every entry of a
    nested map or list before comparison.
    """

    name: str
    default: Any = None
    ordered: bool = True
    forward_reference: bool = False
    read_only: bool = False
    optional: bool = False
    computed: Tuple[str, ...] = ()

    def empty(self) -> Any:
        return copy.deepcopy(self.default)

    @property
    def replace(self) -> bool:
        """Map-valued fields must be replaced wholesale on update."""
        return isinstance(self.default, dict)

    def canonical(self, value: Any) -> Any:
        """Normalize a value for comparison."""
        if value is None:
            value = self.empty()
        if self.computed:
            value = _strip_computed(value, self.computed)
        if not self.ordered and isinstance(value, list):
            value = sorted(value, key=canonical_json)
        return value


def _strip_computed(value: Any, keys: Tuple[str, ...]) -> Any:
    if isinstance(value, dict):
        return {
            k: ({ik: iv for ik, iv in v.items() if ik not in keys} if isinstance(v, dict) else v)
            for k, v in value.items()
        }
    if isinstance(value, list):
        return [
            {ik: iv for ik, iv in item.items() if ik not in keys} if isinstance(item, dict) else item
            for item in value
        ]
    return value


@dataclass(frozen=True)
class ObjectSpec:
    """Field declarations for one managed object type."""

    object_type: ManagedObjectType
    fields: Tuple[FieldSpec, ...]

    def __post_init__(self):
        names = [f.name for f in self.fields]
        if "data" not in names:
            raise ValueError(f"{self.object_type.value} spec must declare a `data` field")

    @property
    def field_names(self) -> List[str]:
        return [f.name for f in self.fields]

    @property
    def deferred_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.forward_reference]

    @property
    def read_only_fields(self) -> List[str]:
        return [f.name for f in self.fields if f.read_only]

    def get(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def normalize(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Restrict attributes to the managed field set and fill defaults.

        Keys outside the declared fields (server-computed attributes such as
        timestamps or status) are dropped. Optional fields left unset stay
        ``None``.
        """
        normalized = {}
        for spec in self.fields:
            value = attributes.get(spec.name)
            if value is None and not spec.optional:
                value = spec.empty()
            normalized[spec.name] = copy.deepcopy(value)
        return normalized

    def compared_fields(self, desired: Dict[str, Any]) -> List[str]:
        """Fields that take part in comparison for this desired object."""
        return [
            spec.name for spec in self.fields
            if not (spec.optional and desired.get(spec.name) is None)
        ]


@dataclass
class DesiredObject:
    """A user-declared object definition, rebuilt on every run."""

    object_type: ManagedObjectType
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> ObjectKey:
        return (self.object_type, self.name)

    @property
    def data(self) -> Dict[str, Any]:
        return self.attributes.get("data") or {}


@dataclass
class ObservedObject:
    """An object as currently stored in the remote catalog."""

    object_type: ManagedObjectType
    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> ObjectKey:
        return (self.object_type, self.name)

    @property
    def data(self) -> Dict[str, Any]:
        return self.attributes.get("data") or {}

    @classmethod
    def from_record(
        cls, object_type: ManagedObjectType, record: Dict[str, Any]
    ) -> "ObservedObject":
        attributes = {k: v for k, v in record.items() if k != "name"}
        return cls(object_type=object_type, name=record["name"], attributes=attributes)


def type_rank(order: Iterable[ManagedObjectType]) -> Dict[ManagedObjectType, int]:
    """Position lookup for a type ordering."""
    return {object_type: i for i, object_type in enumerate(order)}
