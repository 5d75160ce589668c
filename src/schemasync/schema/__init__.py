"""
Schema reconciliation package for schemasync.

This package provides:
- Managed object types and per-type field declarations
- Ownership metadata tagging
- Desired/observed diffing
- Two-phase dependency planning and the orphan sweep

The reconciler, executors and preview renderer live in their own modules
and are imported from there.
"""

from .objects import (
    DesiredObject,
    FieldSpec,
    ManagedObjectType,
    ObjectSpec,
    ObservedObject,
)
from .metadata import MetadataTagger, OwnerTag, RetentionPolicy, RuntimeDefaults, tag
from .diff import Classification, DiffResult, FieldDiff, ObjectDiffEngine
from .operations import Action, Operation, OperationKind, Phase, Plan, Report, RunMode
from .planner import DependencyPlanner
from .sweep import OrphanSweeper

__all__ = [
    "DesiredObject",
    "FieldSpec",
    "ManagedObjectType",
    "ObjectSpec",
    "ObservedObject",
    "MetadataTagger",
    "OwnerTag",
    "RetentionPolicy",
    "RuntimeDefaults",
    "tag",
    "Classification",
    "DiffResult",
    "FieldDiff",
    "ObjectDiffEngine",
    "Action",
    "Operation",
    "OperationKind",
    "Phase",
    "Plan",
    "Report",
    "RunMode",
    "DependencyPlanner",
    "OrphanSweeper",
]
