"""
Orphan sweep for schemasync.

Deletes owned catalog objects that disappeared from the desired
configuration, unless their retention policy says to keep them.
"""

import logging
from typing import AbstractSet, Iterable, List, Optional, Sequence

from .metadata import MetadataTagger, RetentionPolicy
from .objects import ManagedObjectType, ObjectKey, ObservedObject, type_rank
from .operations import Operation, OperationKind, Phase


logger = logging.getLogger(__name__)


class OrphanSweeper:
    """Schedules deletions for owned objects absent from desired config."""

    def __init__(
        self,
        tagger: MetadataTagger,
        type_order: Optional[Sequence[ManagedObjectType]] = None,
    ):
        self.tagger = tagger
        # Dependents go first: deletions run in reverse creation order
        self._rank = type_rank(list(reversed(type_order or list(ManagedObjectType))))

    def sweep(
        self,
        desired_names: AbstractSet[ObjectKey],
        observed_owned: Iterable[ObservedObject],
    ) -> List[Operation]:
        """
        Build delete operations for orphans.

        Args:
            desired_names: ``(type, name)`` keys present in desired config
            observed_owned: Every owned object of every managed type, across
                all listing pages

        Returns:
            Delete operations, dependents first, then by name
        """
        deletions = []
        for observed in observed_owned:
            if observed.key in desired_names:
                continue
            # Foreign objects are never deleted, even from a raw listing
            if not self.tagger.is_owned(observed):
                continue
            if self.tagger.retention_of(observed) != RetentionPolicy.DESTROY:
                logger.debug(
                    f"Keeping {observed.object_type.value} {observed.name}: retention policy is retain"
                )
                continue

            deletions.append(
                Operation(
                    kind=OperationKind.DELETE,
                    object_type=observed.object_type,
                    name=observed.name,
                    previous_payload=dict(observed.attributes),
                    phase=Phase.SWEEP,
                )
            )

        deletions.sort(
            key=lambda op: (self._rank.get(op.object_type, len(self._rank)), op.name)
        )
        logger.debug(f"Sweep scheduled {len(deletions)} deletions")
        return deletions
