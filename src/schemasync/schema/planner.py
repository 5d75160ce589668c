"""
Dependency-ordering planner for schemasync.

Some types reference each other in both directions: a role may grant call
privileges on a function while the function runs as that role. No linear
creation order satisfies both when both are new, so the plan is built in two
phases. Phase 1 creates or updates every object without its
forward-referencing fields. Phase 2 fills those fields in once every target
exists by name. Which fields are deferred is declared per type through
``FieldSpec.forward_reference``.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from .diff import Classification, DiffResult
from .objects import ManagedObjectType, ObjectSpec, type_rank
from .operations import Operation, OperationKind, Phase, Plan


logger = logging.getLogger(__name__)


class DependencyPlanner:
    """Turns diff results into a phase-ordered plan."""

    def __init__(
        self,
        specs: Dict[ManagedObjectType, ObjectSpec],
        type_order: Sequence[ManagedObjectType],
    ):
        self.specs = specs
        self.type_order = list(type_order)
        self._rank = type_rank(self.type_order)

    def plan(self, diffs: List[DiffResult]) -> Plan:
        """
        Build the create/update part of a plan.

        Operations keep the order of ``diffs`` within a type; types follow
        ``type_order`` within each phase.
        """
        ordered = sorted(
            (d for d in diffs if not d.is_noop),
            key=lambda d: self._rank.get(d.object_type, len(self._rank)),
        )

        skeletal: List[Operation] = []
        relational: List[Operation] = []
        for diff in ordered:
            spec = self.specs[diff.object_type]
            op = self._skeletal(diff, spec)
            if op is not None:
                skeletal.append(op)
            op = self._relational(diff, spec)
            if op is not None:
                relational.append(op)

        logger.debug(
            f"Planned {len(skeletal)} skeletal and {len(relational)} relational operations"
        )
        return Plan(operations=skeletal + relational)

    def _writable(self, spec: ObjectSpec, values: Dict[str, Any], fields: List[str]) -> Dict[str, Any]:
        payload = {}
        for name in fields:
            field_spec = spec.get(name)
            if field_spec.optional and values.get(name) is None:
                continue
            payload[name] = values.get(name)
        return payload

    def _skeletal(self, diff: DiffResult, spec: ObjectSpec) -> Optional[Operation]:
        wanted = spec.normalize(diff.desired.attributes)
        deferred = spec.deferred_fields

        if diff.classification == Classification.CREATE:
            payload = {"name": diff.name}
            payload.update(self._writable(spec, wanted, spec.field_names))
            for name in deferred:
                payload[name] = spec.get(name).empty()
            return Operation(
                kind=OperationKind.CREATE,
                object_type=diff.object_type,
                name=diff.name,
                payload=payload,
                phase=Phase.SKELETAL,
            )

        if not [f for f in diff.changed_fields if f not in deferred]:
            return None

        fields = [
            f for f in spec.field_names
            if f not in deferred and f not in spec.read_only_fields
        ]
        current = spec.normalize(diff.observed.attributes)
        payload = self._writable(spec, wanted, fields)
        return Operation(
            kind=OperationKind.UPDATE,
            object_type=diff.object_type,
            name=diff.name,
            payload=payload,
            previous_payload={f: current.get(f) for f in payload},
            phase=Phase.SKELETAL,
            replace_fields=tuple(f for f in payload if spec.get(f).replace),
        )

    def _relational(self, diff: DiffResult, spec: ObjectSpec) -> Optional[Operation]:
        deferred = spec.deferred_fields
        if not deferred:
            return None

        wanted = spec.normalize(diff.desired.attributes)

        if diff.classification == Classification.CREATE:
            populated = [
                f for f in deferred
                if spec.get(f).canonical(wanted.get(f)) != spec.get(f).canonical(None)
            ]
            if not populated:
                return None
            previous = {f: spec.get(f).empty() for f in deferred}
        else:
            if not [f for f in diff.changed_fields if f in deferred]:
                return None
            current = spec.normalize(diff.observed.attributes)
            previous = {f: current.get(f) for f in deferred}

        return Operation(
            kind=OperationKind.UPDATE,
            object_type=diff.object_type,
            name=diff.name,
            payload={f: wanted.get(f) for f in deferred},
            previous_payload=previous,
            phase=Phase.RELATIONAL,
            replace_fields=tuple(f for f in deferred if spec.get(f).replace),
        )
