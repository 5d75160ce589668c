"""
Legacy catalog generation backend.

Indexes are standalone objects, query snippets are stored as parsed
expression trees, and each resource-type batch is its own transaction.
"""

from typing import Any, Dict, List, Optional, Union

from .base import BackendAdapter
from ..client.base import RemoteClient
from ..config import LEGACY_SCHEMA_RESOURCES, IndexTerms
from ..exceptions import ExpressionError
from ..expressions import parse_lambda
from ..schema.executor import PlanExecutor, StepwiseExecutor
from ..schema.metadata import OwnerTag
from ..schema.objects import DesiredObject, FieldSpec, ManagedObjectType, ObjectSpec
from ..schema.operations import Operation, OperationKind


BUILTIN_ROLES = ("admin", "server")

COLLECTION_SPEC = ObjectSpec(
    ManagedObjectType.COLLECTION,
    (
        FieldSpec("data", default={}),
        FieldSpec("history_days", optional=True),
        FieldSpec("ttl_days", optional=True),
        FieldSpec("permissions", default={}, optional=True),
    ),
)

INDEX_SPEC = ObjectSpec(
    ManagedObjectType.INDEX,
    (
        FieldSpec("source", default=[], ordered=False, read_only=True),
        FieldSpec("terms", default=[], read_only=True),
        FieldSpec("values", default=[], read_only=True),
        FieldSpec("unique", default=False),
        FieldSpec("serialized", optional=True),
        FieldSpec("data", default={}),
    ),
)

FUNCTION_SPEC = ObjectSpec(
    ManagedObjectType.FUNCTION,
    (
        FieldSpec("body"),
        FieldSpec("role"),
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

_PRIVILEGE_TARGETS = {
    "collection": ManagedObjectType.COLLECTION,
    "index": ManagedObjectType.INDEX,
    "function": ManagedObjectType.FUNCTION,
}


def ref(object_type: ManagedObjectType, name: str) -> Dict[str, str]:
    """Typed reference to a catalog object."""
    return {"type": object_type.value, "name": name}


def _path(value: str) -> List[str]:
    return [part for part in value.split(".") if part]


def render_terms(terms: Optional[IndexTerms]) -> List[Dict[str, Any]]:
    """
    Render index terms or values.

    ``fields`` entries are dotted paths, or ``{path, reverse}`` mappings for
    values; ``bindings`` name source binding functions.
    """
    if terms is None:
        return []

    rendered = []
    for field in terms.fields:
        if isinstance(field, str):
            rendered.append({"field": _path(field)})
            continue
        if "path" not in field:
            raise ExpressionError(f"Index field needs a `path`: {field}")
        entry = {"field": _path(field["path"])}
        if field.get("reverse"):
            entry["reverse"] = True
        rendered.append(entry)

    rendered.extend({"binding": name} for name in terms.bindings)
    return rendered


def render_source(source: Union[str, Dict[str, Any], List[Any]]) -> List[Dict[str, Any]]:
    """Render an index source: a collection name, a list, or ``{collection, fields}``."""
    if not isinstance(source, list):
        source = [source]

    rendered = []
    for item in source:
        if isinstance(item, str):
            rendered.append({"collection": ref(ManagedObjectType.COLLECTION, item)})
            continue
        if "collection" not in item:
            raise ExpressionError(f"Index source needs a `collection`: {item}")
        entry = {"collection": ref(ManagedObjectType.COLLECTION, item["collection"])}
        bindings = item.get("fields") or {}
        if bindings:
            entry["fields"] = {
                name: parse_lambda(body).to_wire() for name, body in bindings.items()
            }
        rendered.append(entry)
    return rendered


def _action(value: Union[bool, str]) -> Any:
    if isinstance(value, bool):
        return value
    return parse_lambda(value).to_wire()


def render_privilege(privilege: Dict[str, Any]) -> Dict[str, Any]:
    resource = None
    for key, object_type in _PRIVILEGE_TARGETS.items():
        if privilege.get(key):
            resource = ref(object_type, privilege[key])
    for key in LEGACY_SCHEMA_RESOURCES:
        if privilege.get(key):
            resource = {"type": "schema", "name": key}

    actions = privilege.get("actions") or {}
    return {
        "resource": resource,
        "actions": {name: _action(value) for name, value in actions.items()},
    }


def render_membership(membership: Any) -> List[Dict[str, Any]]:
    """Render a membership rule, or a list of them; bare strings name collections."""
    if membership is None:
        return []
    if not isinstance(membership, list):
        membership = [membership]

    rendered = []
    for rule in membership:
        if isinstance(rule, str):
            rule = {"resource": rule}
        entry = {"resource": ref(ManagedObjectType.COLLECTION, rule["resource"])}
        if rule.get("predicate"):
            entry["predicate"] = parse_lambda(rule["predicate"]).to_wire()
        rendered.append(entry)
    return rendered


def render_role_binding(role: Optional[str]) -> Any:
    if role is None or role in BUILTIN_ROLES:
        return role
    return ref(ManagedObjectType.ROLE, role)


class LegacyBackend(BackendAdapter):
    """Stepwise backend for the ``catalog_v4`` section."""

    label = "Legacy catalog"
    owner_tag = OwnerTag.LEGACY.value
    # Objects tagged by the oldest releases carry a bare boolean marker
    accepted_owner_tags = (True,)
    specs = {
        ManagedObjectType.COLLECTION: COLLECTION_SPEC,
        ManagedObjectType.INDEX: INDEX_SPEC,
        ManagedObjectType.FUNCTION: FUNCTION_SPEC,
        ManagedObjectType.ROLE: ROLE_SPEC,
    }
    type_order = (
        ManagedObjectType.COLLECTION,
        ManagedObjectType.INDEX,
        ManagedObjectType.ROLE,
        ManagedObjectType.FUNCTION,
    )
    report_order = (
        ManagedObjectType.COLLECTION,
        ManagedObjectType.INDEX,
        ManagedObjectType.FUNCTION,
        ManagedObjectType.ROLE,
    )

    def desired_objects(self) -> List[DesiredObject]:
        objects = []
        builders = (
            (ManagedObjectType.COLLECTION, self.config.collections, self._collection),
            (ManagedObjectType.INDEX, self.config.indexes, self._index),
            (ManagedObjectType.FUNCTION, self.config.functions, self._function),
            (ManagedObjectType.ROLE, self.config.roles, self._role),
        )
        for object_type, definitions, build in builders:
            for name, definition in definitions.items():
                try:
                    attributes = build(definition)
                except ExpressionError as e:
                    raise ExpressionError(
                        f"{object_type.value} {name}: {e.message}", e.position
                    ) from e
                objects.append(DesiredObject(object_type, name, attributes))
        return objects

    def _collection(self, definition) -> Dict[str, Any]:
        return definition.model_dump(exclude_none=True)

    def _index(self, definition) -> Dict[str, Any]:
        attributes = {
            "source": render_source(definition.source),
            "terms": render_terms(definition.terms),
            "values": render_terms(definition.values),
            "unique": definition.unique,
            "data": definition.data,
        }
        if definition.serialized is not None:
            attributes["serialized"] = definition.serialized
        return attributes

    def _function(self, definition) -> Dict[str, Any]:
        return {
            "body": parse_lambda(definition.body).to_wire(),
            "role": render_role_binding(definition.role),
            "data": definition.data,
        }

    def _role(self, definition) -> Dict[str, Any]:
        return {
            "data": definition.data,
            "privileges": [render_privilege(p) for p in definition.privileges],
            "membership": render_membership(definition.membership),
        }

    def render_operation(self, operation: Operation) -> List[Dict[str, Any]]:
        """
        Render one operation.

        Updates first null every replaced field and then write the new value,
        so keys removed from a map do not survive the legacy merge semantics.
        """
        base = {"type": operation.object_type.value, "name": operation.name}

        if operation.kind == OperationKind.DELETE:
            return [{"op": "delete", **base}]

        values = {k: v for k, v in operation.payload.items() if k != "name"}
        if operation.kind == OperationKind.CREATE:
            return [{"op": "create", **base, "set": values}]

        steps = []
        if operation.replace_fields:
            steps.append({
                "op": "update",
                **base,
                "set": {field: None for field in operation.replace_fields},
            })
        steps.append({"op": "update", **base, "set": values})
        return steps

    def create_executor(self, client: RemoteClient) -> PlanExecutor:
        return StepwiseExecutor(client, self.render_operation)
