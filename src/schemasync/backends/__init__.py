"""
Catalog backends for schemasync.

Each backend is one catalog generation sharing the diff engine, planner and
orphan sweep, and differing in how a plan is rendered and submitted.
"""

from .base import BackendAdapter
from .current import CurrentBackend
from .legacy import LegacyBackend
from .factory import BackendFactory

__all__ = [
    "BackendAdapter",
    "CurrentBackend",
    "LegacyBackend",
    "BackendFactory",
]
