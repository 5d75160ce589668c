"""
Plan intermediate representation for schemasync.

A plan is an ordered list of typed operations grouped into phases. Backends
render operations into wire steps; nothing here knows the remote syntax.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .diff import FieldDiff
from .objects import ManagedObjectType, ObjectKey


class OperationKind(str, Enum):
    """Kinds of catalog mutations."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class Action(str, Enum):
    """Per-object outcome reported to the operator."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    NOOP = "no-op"


class Phase(str, Enum):
    """Ordered plan phases."""

    SKELETAL = "skeletal"      # creates/updates without forward-referencing fields
    RELATIONAL = "relational"  # fill in forward-referencing fields
    SWEEP = "sweep"            # orphan deletions


class RunMode(str, Enum):
    """How a reconciliation run treats its plan."""

    APPLY = "apply"        # submit the plan
    PREVIEW = "preview"    # report only
    DRY_RUN = "dry_run"    # report and show rendered steps, submit nothing

    @property
    def is_mutating(self) -> bool:
        return self == RunMode.APPLY


_KIND_TO_ACTION = {
    OperationKind.CREATE: Action.CREATED,
    OperationKind.UPDATE: Action.UPDATED,
    OperationKind.DELETE: Action.DELETED,
}


@dataclass
class Operation:
    """A single create, update or delete of one catalog object."""

    kind: OperationKind
    object_type: ManagedObjectType
    name: str
    payload: Dict[str, Any] = field(default_factory=dict)
    previous_payload: Optional[Dict[str, Any]] = None
    phase: Phase = Phase.SKELETAL

    # Fields the write must replace rather than merge
    replace_fields: Tuple[str, ...] = ()

    @property
    def key(self) -> ObjectKey:
        return (self.object_type, self.name)

    @property
    def action(self) -> Action:
        return _KIND_TO_ACTION[self.kind]


@dataclass
class Plan:
    """Ordered operations of one run."""

    operations: List[Operation] = field(default_factory=list)

    def __iter__(self) -> Iterator[Operation]:
        return iter(self.operations)

    def __len__(self) -> int:
        return len(self.operations)

    @property
    def is_empty(self) -> bool:
        return not self.operations

    def extend(self, operations: List[Operation]) -> None:
        self.operations.extend(operations)

    def in_phase(self, phase: Phase) -> List[Operation]:
        return [op for op in self.operations if op.phase == phase]


@dataclass
class ReportEntry:
    """One line of a run report."""

    object_type: ManagedObjectType
    name: str
    action: Action
    field_diffs: List[FieldDiff] = field(default_factory=list)

    @property
    def message(self) -> str:
        return f"{self.object_type.value}: {self.name} {self.action.value}"


@dataclass
class Report:
    """Ordered per-object outcomes of one run."""

    entries: List[ReportEntry] = field(default_factory=list)

    def __iter__(self) -> Iterator[ReportEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def is_empty(self) -> bool:
        return not self.entries

    def add(self, entry: ReportEntry) -> None:
        self.entries.append(entry)

    def as_tuples(self) -> List[Tuple[str, str, str]]:
        return [(e.object_type.value, e.name, e.action.value) for e in self.entries]


@dataclass
class Outcome:
    """Result of one submitted operation."""

    operation: Operation
    action: Action
