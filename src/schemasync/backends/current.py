"""
Current catalog generation backend.

Indexes and unique constraints live inside a collection's attributes; the
whole plan is applied as one atomic transaction.
"""

from typing import Any, Dict, List

from .base import BackendAdapter
from ..client.base import RemoteClient
from ..schema.executor import AtomicBatchExecutor, PlanExecutor
from ..schema.metadata import OwnerTag
from ..schema.objects import DesiredObject, FieldSpec, ManagedObjectType, ObjectSpec
from ..schema.operations import Operation, OperationKind


COLLECTION_SPEC = ObjectSpec(
    ManagedObjectType.COLLECTION,
    (
        FieldSpec("data", default={}),
        FieldSpec("indexes", default={}, computed=("status",)),
        FieldSpec("constraints", default=[], ordered=False, computed=("status",)),
        FieldSpec("history_days", optional=True),
        FieldSpec("ttl_days", optional=True),
    ),
)

FUNCTION_SPEC = ObjectSpec(
    ManagedObjectType.FUNCTION,
    (
        FieldSpec("body", default=""),
        FieldSpec("role"),
        FieldSpec("signature", optional=True),
        FieldSpec("data", default={}),
    ),
)

ROLE_SPEC = ObjectSpec(
    ManagedObjectType.ROLE,
    (
        FieldSpec("data", default={}),
        FieldSpec("privileges", default=[], ordered=False, forward_reference=True),
        FieldSpec("membership", default=[], ordered=False, forward_reference=True),
    ),
)


class CurrentBackend(BackendAdapter):
    """Atomic backend for the ``catalog`` section."""

    label = "Catalog"
    owner_tag = OwnerTag.CURRENT.value
    specs = {
        ManagedObjectType.COLLECTION: COLLECTION_SPEC,
        ManagedObjectType.FUNCTION: FUNCTION_SPEC,
        ManagedObjectType.ROLE: ROLE_SPEC,
    }
    # Roles exist before functions may run as them
    type_order = (
        ManagedObjectType.COLLECTION,
        ManagedObjectType.ROLE,
        ManagedObjectType.FUNCTION,
    )
    report_order = (
        ManagedObjectType.COLLECTION,
        ManagedObjectType.FUNCTION,
        ManagedObjectType.ROLE,
    )

    def desired_objects(self) -> List[DesiredObject]:
        sections = (
            (ManagedObjectType.COLLECTION, self.config.collections),
            (ManagedObjectType.FUNCTION, self.config.functions),
            (ManagedObjectType.ROLE, self.config.roles),
        )
        return [
            DesiredObject(object_type, name, definition.model_dump(exclude_none=True))
            for object_type, definitions in sections
            for name, definition in definitions.items()
        ]

    def render_operation(self, operation: Operation) -> List[Dict[str, Any]]:
        step = {
            "op": operation.kind.value,
            "type": operation.object_type.value,
            "name": operation.name,
        }
        if operation.kind == OperationKind.DELETE:
            return [step]

        step["set"] = {k: v for k, v in operation.payload.items() if k != "name"}
        if operation.kind == OperationKind.UPDATE:
            step["replace"] = list(operation.replace_fields)
        return [step]

    def create_executor(self, client: RemoteClient) -> PlanExecutor:
        return AtomicBatchExecutor(client, self.render_operation)
