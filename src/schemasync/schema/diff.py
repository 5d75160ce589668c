"""
Object diff engine for schemasync.

Classifies each desired object against its observed counterpart as a create,
an update or a no-op, and produces a field-level delta for display.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .metadata import RESERVED_KEYS
from .objects import DesiredObject, ManagedObjectType, ObjectSpec, ObservedObject
from ..exceptions import ReadOnlyFieldError, ValidationError


logger = logging.getLogger(__name__)


class Classification(str, Enum):
    """Outcome of comparing one desired object with the catalog."""

    CREATE = "create"
    UPDATE = "update"
    NOOP = "no-op"


@dataclass
class FieldDiff:
    """A before/after pair for one attribute, for human-readable output."""

    field: str
    before: Any
    after: Any


@dataclass
class DiffResult:
    """Classification of one desired object."""

    classification: Classification
    desired: DesiredObject
    observed: Optional[ObservedObject] = None
    changed_fields: List[str] = field(default_factory=list)
    field_diffs: List[FieldDiff] = field(default_factory=list)

    @property
    def object_type(self) -> ManagedObjectType:
        return self.desired.object_type

    @property
    def name(self) -> str:
        return self.desired.name

    @property
    def is_noop(self) -> bool:
        return self.classification == Classification.NOOP


def _display_data(before: Dict[str, Any], after: Dict[str, Any]):
    """Hide reserved metadata keys unless they are part of the change."""
    hidden = [k for k in RESERVED_KEYS if before.get(k) == after.get(k)]
    return (
        {k: v for k, v in before.items() if k not in hidden},
        {k: v for k, v in after.items() if k not in hidden},
    )


class ObjectDiffEngine:
    """Per-type comparison of desired and observed attributes."""

    def __init__(self, specs: Dict[ManagedObjectType, ObjectSpec]):
        self.specs = specs

    def spec_for(self, object_type: ManagedObjectType) -> ObjectSpec:
        try:
            return self.specs[object_type]
        except KeyError:
            raise ValidationError(
                f"{object_type.value} objects are not managed by this backend"
            )

    def classify(
        self,
        desired: DesiredObject,
        observed: Optional[ObservedObject],
    ) -> DiffResult:
        """
        Compare a tagged desired object with the observed one.

        Args:
            desired: Desired object, already carrying merged metadata
            observed: Owned catalog object with the same type and name, if any

        Returns:
            DiffResult with classification and field deltas

        Raises:
            ReadOnlyFieldError: If a read-only field would change
        """
        spec = self.spec_for(desired.object_type)

        if observed is None:
            return DiffResult(classification=Classification.CREATE, desired=desired)

        wanted = spec.normalize(desired.attributes)
        current = spec.normalize(observed.attributes)

        changed: List[str] = []
        diffs: List[FieldDiff] = []
        for name in spec.compared_fields(wanted):
            field_spec = spec.get(name)
            before = field_spec.canonical(current.get(name))
            after = field_spec.canonical(wanted.get(name))
            if before == after:
                continue

            changed.append(name)
            if name == "data":
                before, after = _display_data(before, after)
            diffs.append(FieldDiff(field=name, before=before, after=after))

        read_only = [name for name in changed if name in spec.read_only_fields]
        if read_only:
            raise ReadOnlyFieldError(desired.object_type.value, desired.name, read_only)

        if not changed:
            logger.debug(f"{desired.object_type.value} {desired.name} is up to date")
            return DiffResult(
                classification=Classification.NOOP, desired=desired, observed=observed
            )

        logger.debug(
            f"{desired.object_type.value} {desired.name} differs in: {', '.join(changed)}"
        )
        return DiffResult(
            classification=Classification.UPDATE,
            desired=desired,
            observed=observed,
            changed_fields=changed,
            field_diffs=diffs,
        )

    def classify_all(
        self,
        desired_objects: List[DesiredObject],
        observed: Dict[tuple, ObservedObject],
    ) -> List[DiffResult]:
        """Classify every desired object against an observed lookup."""
        return [self.classify(d, observed.get(d.key)) for d in desired_objects]
