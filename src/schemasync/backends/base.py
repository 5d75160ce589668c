"""
Abstract base class for catalog backends.

A backend is one catalog generation: the object types it manages, its field
declarations, its owner tag, how it turns configuration into desired objects
and how it renders plan operations into wire steps. Diffing, planning and the
orphan sweep are shared by every backend.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from ..client.base import RemoteClient
from ..config import SectionConfig
from ..schema.executor import PlanExecutor
from ..schema.metadata import MetadataTagger, RuntimeDefaults
from ..schema.objects import DesiredObject, ManagedObjectType, ObjectSpec, ObservedObject
from ..schema.operations import Operation


logger = logging.getLogger(__name__)


class BackendAdapter(ABC):
    """
    Strategy for one catalog generation.

    Subclasses declare ``label``, ``owner_tag``, ``specs``, ``type_order``
    (phase-1 creation order) and ``report_order``.
    """

    label: str = ""
    owner_tag: Any = None
    accepted_owner_tags: Sequence[Any] = ()
    specs: Dict[ManagedObjectType, ObjectSpec] = {}
    type_order: Sequence[ManagedObjectType] = ()
    report_order: Sequence[ManagedObjectType] = ()

    def __init__(self, config: SectionConfig):
        """
        Initialize the backend with its configuration section.

        Args:
            config: Validated section (``catalog`` or ``catalog_v4``)
        """
        self.config = config
        self.runtime_defaults = RuntimeDefaults(
            owner_tag=self.owner_tag,
            retention_policy=config.retention_policy,
        )
        self.tagger = MetadataTagger(self.runtime_defaults, self.accepted_owner_tags)
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @property
    def managed_types(self) -> List[ManagedObjectType]:
        return list(self.specs)

    @property
    def page_size(self) -> int:
        return self.config.page_size

    @property
    def concurrency(self) -> int:
        return self.config.concurrency

    @abstractmethod
    def desired_objects(self) -> List[DesiredObject]:
        """
        Build untagged desired objects from configuration, in config order.

        Attribute values must already be in the catalog's stored form so they
        compare equal to what a listing returns.
        """
        pass

    @abstractmethod
    def render_operation(self, operation: Operation) -> List[Dict[str, Any]]:
        """Render one plan operation into one or more wire steps."""
        pass

    @abstractmethod
    def create_executor(self, client: RemoteClient) -> PlanExecutor:
        pass

    def observed_from_record(
        self, object_type: ManagedObjectType, record: Dict[str, Any]
    ) -> Optional[ObservedObject]:
        """Turn a listing record into an observed object."""
        if "name" not in record:
            self.logger.warning(f"Skipping {object_type.value} record without a name")
            return None
        return ObservedObject.from_record(object_type, record)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(label={self.label!r}, owner_tag={self.owner_tag!r})"
