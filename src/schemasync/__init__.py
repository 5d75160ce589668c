"""
schemasync: declarative schema reconciliation for remote catalogs.

schemasync converges collections, indexes, functions and roles in a remote
schema catalog to a versioned YAML description, touching only the objects it
owns.
"""

__version__ = "0.1.0"
__author__ = "schemasync Contributors"

from .config import SchemaSyncConfig
from .exceptions import SchemaSyncError, ConfigurationError, ConflictError, TransportError

__all__ = [
    "__version__",
    "SchemaSyncConfig",
    "SchemaSyncError",
    "ConfigurationError",
    "ConflictError",
    "TransportError",
]
