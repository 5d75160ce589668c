"""
Ownership and retention metadata for schemasync.

Every managed object carries two reserved keys in its ``data`` map: the owner
tag naming the tool generation that created it, and the retention policy
consulted by the orphan sweep.
"""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional

from .objects import ObservedObject


logger = logging.getLogger(__name__)

OWNER_TAG_KEY = "owner_tag"
RETENTION_POLICY_KEY = "retention_policy"
RESERVED_KEYS = (OWNER_TAG_KEY, RETENTION_POLICY_KEY)


class OwnerTag(str, Enum):
    """Generation markers written by schemasync."""

    CURRENT = "managed:v10"
    LEGACY = "managed:v4"


class RetentionPolicy(str, Enum):
    """Whether the orphan sweep may delete an object."""

    RETAIN = "retain"
    DESTROY = "destroy"


@dataclass(frozen=True)
class RuntimeDefaults:
    """Metadata stamped underneath user-supplied ``data``."""

    owner_tag: Any
    retention_policy: str = RetentionPolicy.DESTROY.value

    def as_data(self) -> Dict[str, Any]:
        return {
            OWNER_TAG_KEY: self.owner_tag,
            RETENTION_POLICY_KEY: self.retention_policy,
        }


def tag(attributes: Dict[str, Any], runtime_defaults: RuntimeDefaults) -> Dict[str, Any]:
    """
    Merge ownership metadata underneath the user's ``data`` map.

    User keys win on conflict; both reserved keys are always present in the
    result. The input is not modified.
    """
    tagged = copy.deepcopy(attributes)
    user_data = tagged.get("data") or {}
    tagged["data"] = {**runtime_defaults.as_data(), **user_data}
    return tagged


def strip_reserved(data: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """User-visible part of a data map."""
    return {k: v for k, v in (data or {}).items() if k not in RESERVED_KEYS}


class MetadataTagger:
    """Stamps and reads ownership metadata for one tool generation."""

    def __init__(
        self,
        runtime_defaults: RuntimeDefaults,
        accepted_owner_tags: Optional[Iterable[Any]] = None,
    ):
        self.runtime_defaults = runtime_defaults
        accepted = set(accepted_owner_tags or ())
        accepted.add(runtime_defaults.owner_tag)
        self.accepted_owner_tags: FrozenSet[Any] = frozenset(accepted)

    @property
    def owner_tag(self) -> Any:
        return self.runtime_defaults.owner_tag

    def tag(self, attributes: Dict[str, Any]) -> Dict[str, Any]:
        return tag(attributes, self.runtime_defaults)

    def is_owned(self, observed: ObservedObject) -> bool:
        """True iff the stored owner tag matches this generation."""
        marker = observed.data.get(OWNER_TAG_KEY)
        # bool markers must not match 1/0 through hash equality
        for accepted in self.accepted_owner_tags:
            if type(marker) is type(accepted) and marker == accepted:
                return True
        return False

    def retention_of(self, observed: ObservedObject) -> RetentionPolicy:
        value = observed.data.get(RETENTION_POLICY_KEY, RetentionPolicy.DESTROY.value)
        try:
            return RetentionPolicy(value)
        except ValueError:
            logger.warning(
                f"{observed.object_type.value} {observed.name} has unknown retention "
                f"policy {value!r}; treating it as retain"
            )
            return RetentionPolicy.RETAIN
