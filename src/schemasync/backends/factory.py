"""
Backend factory for creating catalog backends from configuration sections.
"""

import logging
from typing import Dict, List, Type

from .base import BackendAdapter
from .current import CurrentBackend
from .legacy import LegacyBackend
from ..config import SchemaSyncConfig, SectionConfig
from ..exceptions import ConfigurationError, ValidationError


logger = logging.getLogger(__name__)


class BackendFactory:
    """
    Factory for creating backends based on which configuration sections exist.

    ``catalog`` selects the current, atomic generation and ``catalog_v4`` the
    legacy, stepwise one. Deploy runs them in that order; remove reverses it.
    """

    # Registry of available backend implementations, in deploy order
    _BACKEND_REGISTRY: Dict[str, Type[BackendAdapter]] = {
        "catalog": CurrentBackend,
        "catalog_v4": LegacyBackend,
    }

    @classmethod
    def create_backend(cls, section: str, config: SectionConfig) -> BackendAdapter:
        """
        Create the backend for one configuration section.

        Raises:
            ValidationError: If the section has no backend
            ConfigurationError: If the backend cannot be built from the section
        """
        if section not in cls._BACKEND_REGISTRY:
            available = list(cls._BACKEND_REGISTRY.keys())
            raise ValidationError(
                f"Unsupported catalog section: {section}. Available sections: {available}"
            )

        backend_class = cls._BACKEND_REGISTRY[section]
        try:
            backend = backend_class(config)
        except (TypeError, AttributeError) as e:
            raise ConfigurationError(
                f"Failed to create backend for section {section}: {e}", cause=e
            ) from e

        logger.debug(f"Created {backend!r} for section {section}")
        return backend

    @classmethod
    def create_backends(cls, config: SchemaSyncConfig, reverse: bool = False) -> List[BackendAdapter]:
        """Create a backend for every configured section, in deploy order."""
        backends = [
            cls.create_backend(section, getattr(config, section))
            for section in cls._BACKEND_REGISTRY
            if getattr(config, section, None) is not None
        ]
        if not backends:
            raise ConfigurationError(
                "Configuration needs a `catalog` or `catalog_v4` section"
            )
        return list(reversed(backends)) if reverse else backends

    @classmethod
    def get_supported_sections(cls) -> List[str]:
        return list(cls._BACKEND_REGISTRY.keys())
