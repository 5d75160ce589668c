"""
Abstract remote catalog client.

The reconciler talks to the catalog through exactly two query shapes: a
paginated listing of one object type and a transaction of rendered steps.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from ..exceptions import TransportError
from ..schema.objects import ManagedObjectType


@dataclass
class ListObjects:
    """Fetch one page of objects of a type."""

    object_type: ManagedObjectType
    after: Optional[str] = None
    size: int = 64

    def to_wire(self) -> Dict[str, Any]:
        return {
            "op": "list",
            "type": self.object_type.value,
            "after": self.after,
            "size": self.size,
        }


@dataclass
class Transaction:
    """Rendered steps the catalog applies all-or-nothing."""

    steps: List[Dict[str, Any]] = field(default_factory=list)
    label: str = "plan"

    def to_wire(self) -> Dict[str, Any]:
        return {"op": "transaction", "label": self.label, "steps": self.steps}


Operation = Union[ListObjects, Transaction]


@dataclass
class Page:
    """One page of a listing; ``after`` is the cursor of the next page."""

    data: List[Dict[str, Any]] = field(default_factory=list)
    after: Optional[str] = None

    @classmethod
    def from_result(cls, result: Any) -> "Page":
        if not isinstance(result, dict):
            raise TransportError(
                f"Malformed listing result: expected a mapping, got {type(result).__name__}"
            )
        data = result.get("data") or []
        if not isinstance(data, list) or not all(isinstance(record, dict) for record in data):
            raise TransportError("Malformed listing result: `data` must be a list of records")
        return cls(data=list(data), after=result.get("after"))


class RemoteClient(ABC):
    """
    Abstract base class for catalog clients.

    ``query`` returns a listing page mapping for ``ListObjects`` and one
    classification record per step for ``Transaction``. Implementations
    raise ``ConflictError`` when the catalog rejects a step and
    ``TransportError`` for anything else.
    """

    @abstractmethod
    async def query(self, operation: Operation) -> Any:
        """Run one operation against the catalog."""
        pass

    async def close(self) -> None:
        """Release client resources."""
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
