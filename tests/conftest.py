"""
Pytest configuration and shared fixtures for schemasync tests.

The central fixture is ``FakeCatalog``, an in-memory remote catalog that
honours listing pagination, applies transactions all-or-nothing, checks
references step by step and rejects creates of existing names.
"""

import copy
import os
import tempfile
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest
import yaml

from schemasync.client.base import ListObjects, RemoteClient, Transaction
from schemasync.config import CatalogConfig, LegacyCatalogConfig
from schemasync.exceptions import ConflictError, TransportError
from schemasync.logger import Logger
from schemasync.schema.objects import ManagedObjectType


BUILTIN_ROLES = ("admin", "server")

CURRENT_TAG = {"owner_tag": "managed:v10", "retention_policy": "destroy"}
LEGACY_TAG = {"owner_tag": "managed:v4", "retention_policy": "destroy"}


# ============================================================================
# In-memory catalog
# ============================================================================

def _merge(current: Any, update: Any) -> Any:
    """Deep-merge ``update`` into ``current``; ``None`` removes a key."""
    if not isinstance(current, dict) or not isinstance(update, dict):
        return copy.deepcopy(update)
    merged = dict(current)
    for key, value in update.items():
        if value is None:
            merged.pop(key, None)
        else:
            merged[key] = _merge(current.get(key), value)
    return merged


class FakeCatalog(RemoteClient):
    """In-memory stand-in for the remote catalog."""

    def __init__(self):
        self.objects: Dict[str, Dict[str, Dict[str, Any]]] = {
            t.value: {} for t in ManagedObjectType
        }
        self.queries: List[Any] = []
        self.reject: Optional[Callable[[Dict[str, Any]], bool]] = None
        self.transport_error: Optional[TransportError] = None
        self.closed = False

    # -- test helpers -------------------------------------------------------

    def seed(self, object_type: ManagedObjectType, name: str, **attributes) -> None:
        self.objects[object_type.value][name] = {"name": name, **copy.deepcopy(attributes)}

    def get(self, object_type: ManagedObjectType, name: str) -> Optional[Dict[str, Any]]:
        return self.objects[object_type.value].get(name)

    def names(self, object_type: ManagedObjectType) -> List[str]:
        return sorted(self.objects[object_type.value])

    @property
    def transactions(self) -> List[Transaction]:
        return [q for q in self.queries if isinstance(q, Transaction)]

    def listings(self, object_type: ManagedObjectType) -> List[ListObjects]:
        return [
            q for q in self.queries
            if isinstance(q, ListObjects) and q.object_type == object_type
        ]

    # -- RemoteClient -------------------------------------------------------

    async def query(self, operation):
        self.queries.append(operation)
        if self.transport_error is not None:
            raise self.transport_error
        if isinstance(operation, ListObjects):
            return self._list(operation)
        if isinstance(operation, Transaction):
            return self._apply(operation)
        raise TypeError(f"Unsupported operation {operation!r}")

    async def close(self) -> None:
        self.closed = True

    def _list(self, operation: ListObjects) -> Dict[str, Any]:
        names = self.names(operation.object_type)
        start = 0
        if operation.after is not None:
            start = names.index(operation.after) + 1
        end = start + operation.size
        bucket = self.objects[operation.object_type.value]
        return {
            "data": [copy.deepcopy(bucket[n]) for n in names[start:end]],
            "after": names[end - 1] if end < len(names) else None,
        }

    def _apply(self, transaction: Transaction) -> List[Dict[str, Any]]:
        staged = copy.deepcopy(self.objects)
        records = [self._apply_step(staged, i, step) for i, step in enumerate(transaction.steps)]
        self.objects = staged
        return records

    def _apply_step(self, staged, index: int, step: Dict[str, Any]) -> Dict[str, Any]:
        if self.reject is not None and self.reject(step):
            raise ConflictError("rejected by test", code="rejected", step_index=index)

        object_type, name, op = step["type"], step["name"], step["op"]
        bucket = staged[object_type]
        values = step.get("set") or {}

        if op == "create":
            if name in bucket:
                raise ConflictError(
                    "instance already exists", code="instance_already_exists", step_index=index
                )
            self._check_references(staged, object_type, values, index)
            bucket[name] = {"name": name, **copy.deepcopy(values)}
            action = "created"

        elif op == "update":
            if name not in bucket:
                raise ConflictError(
                    "instance not found", code="instance_not_found", step_index=index
                )
            self._check_references(staged, object_type, values, index)
            record = bucket[name]
            replace = set(step.get("replace") or ())
            for key, value in values.items():
                if value is None:
                    record.pop(key, None)
                elif key in replace:
                    record[key] = copy.deepcopy(value)
                else:
                    record[key] = _merge(record.get(key), value)
            action = "updated"

        elif op == "delete":
            if name not in bucket:
                raise ConflictError(
                    "instance not found", code="instance_not_found", step_index=index
                )
            del bucket[name]
            action = "deleted"

        else:
            raise ConflictError(f"unknown step {op}", code="invalid_request", step_index=index)

        return {"type": object_type, "name": name, "action": action}

    def _resolves(self, staged, reference: Any, types: Tuple[str, ...]) -> bool:
        if isinstance(reference, dict):
            if reference.get("type") == "schema":
                return True
            return reference.get("name") in staged.get(reference.get("type"), {})
        return any(reference in staged[t] for t in types)

    def _check_references(self, staged, object_type: str, values: Dict[str, Any], index: int) -> None:
        unresolved = []

        role = values.get("role")
        if object_type == "Function" and role is not None and role not in BUILTIN_ROLES:
            if not self._resolves(staged, role, ("Role",)):
                unresolved.append(role)

        for privilege in values.get("privileges") or []:
            resource = privilege.get("resource")
            if not self._resolves(staged, resource, ("Collection", "Function", "Index")):
                unresolved.append(resource)

        for rule in values.get("membership") or []:
            resource = rule.get("resource")
            if not self._resolves(staged, resource, ("Collection",)):
                unresolved.append(resource)

        if object_type == "Index":
            for source in values.get("source") or []:
                if not self._resolves(staged, source.get("collection"), ("Collection",)):
                    unresolved.append(source.get("collection"))

        if unresolved:
            raise ConflictError(
                f"invalid reference: {unresolved[0]}", code="invalid_ref", step_index=index
            )


class RecordingLogger(Logger):
    """Captures run log lines as ``(level, message)`` pairs."""

    def __init__(self):
        self.lines: List[Tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.lines.append(("info", message))

    def success(self, message: str) -> None:
        self.lines.append(("success", message))

    def error(self, message: str) -> None:
        self.lines.append(("error", message))

    def messages(self, level: Optional[str] = None) -> List[str]:
        return [m for lvl, m in self.lines if level is None or lvl == level]

    def clear(self) -> None:
        self.lines.clear()


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def catalog() -> FakeCatalog:
    """Empty in-memory catalog."""
    return FakeCatalog()


@pytest.fixture
def run_logger() -> RecordingLogger:
    """Logger recording every emitted line."""
    return RecordingLogger()


@pytest.fixture
def client_settings() -> Dict[str, Any]:
    return {"secret": "test-secret", "endpoint": "http://catalog.test"}


@pytest.fixture
def make_catalog_config(client_settings):
    """Factory for current-generation sections."""
    def factory(**sections) -> CatalogConfig:
        return CatalogConfig(client=client_settings, **sections)
    return factory


@pytest.fixture
def make_legacy_config(client_settings):
    """Factory for legacy-generation sections."""
    def factory(**sections) -> LegacyCatalogConfig:
        return LegacyCatalogConfig(client=client_settings, **sections)
    return factory


@pytest.fixture
def lambda_body() -> str:
    """A commented legacy function body."""
    return """
/*
 * Leading comment block
 */
Lambda(
  "ref", // Comment
  // Comment
  [
    Var("ref" /* Inline comment */),
    "this/is/not/a/comment"
  ]
)
"""


@pytest.fixture
def sample_config_data() -> Dict[str, Any]:
    """Configuration file content with both catalog generations."""
    return {
        "catalog": {
            "client": {"secret": "${SCHEMASYNC_TEST_SECRET}", "endpoint": "http://catalog.test"},
            "retention_policy": "destroy",
            "collections": {
                "users": {"data": {"team": "core"}},
                "logs": {"history_days": 7},
            },
            "functions": {
                "register": {"body": "(x) => x", "role": "customer"},
            },
            "roles": {
                "customer": {
                    "privileges": [{"resource": "register", "actions": {"call": True}}],
                    "membership": [{"resource": "users"}],
                },
            },
        },
        "catalog_v4": {
            "client": {"secret": "legacy-secret", "scheme": "http", "domain": "legacy.test", "port": 8443},
            "deletion_policy": "retain",
            "collections": {"archive": {}},
            "indexes": {
                "archive_by_day": {"source": "archive", "terms": {"fields": ["data.day"]}},
            },
        },
        "logging": {"level": "DEBUG"},
    }


@pytest.fixture
def temp_config_file(sample_config_data, monkeypatch):
    """Write the sample configuration to a temporary YAML file."""
    monkeypatch.setenv("SCHEMASYNC_TEST_SECRET", "expanded-secret")
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(sample_config_data, f)
        path = f.name
    yield path
    os.unlink(path)
