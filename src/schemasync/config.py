"""
Configuration system for schemasync using Pydantic.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .exceptions import ConfigurationError


# Schema-level privilege targets of the legacy generation
LEGACY_SCHEMA_RESOURCES = ("collections", "indexes", "databases", "roles", "functions", "keys")


class ClientConfig(BaseModel):
    """Remote catalog connection configuration."""

    secret: str = Field(..., description="Catalog access secret")
    endpoint: Optional[str] = Field(None, description="Full catalog URL")
    scheme: Optional[Literal["http", "https"]] = Field(None, description="URL scheme")
    domain: Optional[str] = Field(None, description="Catalog host name")
    port: Optional[int] = Field(None, description="Catalog port")
    timeout: int = Field(30, gt=0, description="Request timeout in seconds")

    @field_validator("secret")
    @classmethod
    def validate_secret(cls, v):
        if not v or not v.strip():
            raise ValueError("Catalog secret is required")
        return v

    @model_validator(mode="after")
    def check_endpoint(self) -> "ClientConfig":
        parts = [self.scheme, self.domain, self.port]
        if self.endpoint and any(p is not None for p in parts):
            raise ValueError("Use either `endpoint` or `scheme`/`domain`/`port`, not both")
        if not self.endpoint and not self.domain:
            raise ValueError("Either `endpoint` or `domain` is required")
        return self

    @property
    def base_url(self) -> str:
        """Catalog base URL."""
        if self.endpoint:
            return self.endpoint
        url = f"{self.scheme or 'https'}://{self.domain}"
        if self.port:
            url += f":{self.port}"
        return url


class CollectionDefinition(BaseModel):
    """A collection with its nested indexes and unique constraints."""

    model_config = ConfigDict(extra="forbid")

    data: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")
    indexes: Dict[str, Dict[str, Any]] = Field(
        default_factory=dict, description="Named indexes with terms/values"
    )
    constraints: List[Dict[str, Any]] = Field(
        default_factory=list, description="Unique constraints"
    )
    history_days: Optional[int] = Field(None, ge=0, description="Days of history to keep")
    ttl_days: Optional[int] = Field(None, ge=0, description="Document time to live")


class FunctionDefinition(BaseModel):
    """A stored function."""

    model_config = ConfigDict(extra="forbid")

    body: str = Field(..., description="Function body")
    role: Optional[str] = Field(None, description="Role the function runs as")
    signature: Optional[str] = Field(None, description="Function signature")
    data: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")


class RoleDefinition(BaseModel):
    """An access role."""

    model_config = ConfigDict(extra="forbid")

    privileges: List[Dict[str, Any]] = Field(
        default_factory=list, description="Resource privileges"
    )
    membership: List[Dict[str, Any]] = Field(
        default_factory=list, description="Membership rules"
    )
    data: Dict[str, Any] = Field(default_factory=dict, description="Free-form metadata")

    @field_validator("privileges")
    @classmethod
    def validate_privileges(cls, v):
        for privilege in v:
            if "resource" not in privilege:
                raise ValueError("Every privilege needs a `resource`")
        return v

    @field_validator("membership")
    @classmethod
    def validate_membership(cls, v):
        for rule in v:
            if "resource" not in rule:
                raise ValueError("Every membership rule needs a `resource`")
        return v


class SectionConfig(BaseModel):
    """Settings shared by both catalog generations."""

    client: ClientConfig = Field(..., description="Catalog connection")
    retention_policy: Literal["retain", "destroy"] = Field(
        "destroy",
        validation_alias=AliasChoices("retention_policy", "deletion_policy"),
        description="Default retention policy stamped on new objects",
    )
    concurrency: int = Field(4, gt=0, description="Concurrent catalog listings")
    page_size: int = Field(64, gt=0, le=10000, description="Listing page size")


class CatalogConfig(SectionConfig):
    """Current catalog generation, applied atomically."""

    collections: Dict[str, CollectionDefinition] = Field(default_factory=dict)
    functions: Dict[str, FunctionDefinition] = Field(default_factory=dict)
    roles: Dict[str, RoleDefinition] = Field(default_factory=dict)


class LegacyCollectionDefinition(BaseModel):
    """A legacy collection."""

    model_config = ConfigDict(extra="forbid")

    data: Dict[str, Any] = Field(default_factory=dict)
    history_days: Optional[int] = Field(None, ge=0)
    ttl_days: Optional[int] = Field(None, ge=0)
    permissions: Optional[Dict[str, Any]] = Field(None)


class IndexTerms(BaseModel):
    """Index terms or values: dotted field paths and binding names."""

    model_config = ConfigDict(extra="forbid")

    fields: List[Union[str, Dict[str, Any]]] = Field(default_factory=list)
    bindings: List[str] = Field(default_factory=list)


class LegacyIndexDefinition(BaseModel):
    """A legacy standalone index."""

    model_config = ConfigDict(extra="forbid")

    source: Union[str, Dict[str, Any], List[Union[str, Dict[str, Any]]]] = Field(
        ..., description="Source collection(s)"
    )
    terms: Optional[IndexTerms] = Field(None)
    values: Optional[IndexTerms] = Field(None)
    unique: bool = Field(False)
    serialized: Optional[bool] = Field(None)
    data: Dict[str, Any] = Field(default_factory=dict)


class LegacyFunctionDefinition(BaseModel):
    """A legacy stored function; ``body`` is a ``Lambda`` snippet."""

    model_config = ConfigDict(extra="forbid")

    body: str = Field(...)
    role: Optional[str] = Field(None)
    data: Dict[str, Any] = Field(default_factory=dict)


class LegacyRoleDefinition(BaseModel):
    """A legacy access role."""

    model_config = ConfigDict(extra="forbid")

    privileges: List[Dict[str, Any]] = Field(default_factory=list)
    membership: Union[str, Dict[str, Any], List[Union[str, Dict[str, Any]]], None] = Field(None)
    data: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("privileges")
    @classmethod
    def validate_privileges(cls, v):
        targets = ("collection", "index", "function") + LEGACY_SCHEMA_RESOURCES
        for privilege in v:
            named = [key for key in targets if privilege.get(key)]
            if len(named) != 1:
                raise ValueError(
                    f"Privilege must name exactly one of {', '.join(targets)}: {privilege}"
                )
        return v


class LegacyCatalogConfig(SectionConfig):
    """Legacy catalog generation, applied step by step."""

    version: int = Field(4, description="Legacy query language version")
    collections: Dict[str, LegacyCollectionDefinition] = Field(default_factory=dict)
    indexes: Dict[str, LegacyIndexDefinition] = Field(default_factory=dict)
    functions: Dict[str, LegacyFunctionDefinition] = Field(default_factory=dict)
    roles: Dict[str, LegacyRoleDefinition] = Field(default_factory=dict)

    @field_validator("version")
    @classmethod
    def validate_version(cls, v):
        if v != 4:
            raise ValueError(f"Unsupported legacy version: {v}")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        "INFO", description="Log level"
    )
    format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format",
    )
    file: Optional[str] = Field(None, description="Log file path")
    max_size: int = Field(10485760, description="Max log file size in bytes")  # 10MB
    backup_count: int = Field(5, description="Number of backup log files")


class SchemaSyncConfig(BaseSettings):
    """Main schemasync configuration."""

    catalog: Optional[CatalogConfig] = Field(
        None, description="Current catalog generation"
    )
    catalog_v4: Optional[LegacyCatalogConfig] = Field(
        None, description="Legacy catalog generation"
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHEMASYNC_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "SchemaSyncConfig":
        """Load configuration from a YAML file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}

            if not isinstance(data, dict):
                raise ConfigurationError(
                    f"Configuration file must contain a mapping: {path}"
                )

            # Expand environment variables in the data
            data = cls._expand_env_vars(data)

            return cls(**data)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file: {e}")
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    @classmethod
    def _expand_env_vars(cls, data: Any) -> Any:
        """Recursively expand environment variables in configuration data."""
        if isinstance(data, dict):
            return {k: cls._expand_env_vars(v) for k, v in data.items()}
        elif isinstance(data, list):
            return [cls._expand_env_vars(item) for item in data]
        elif isinstance(data, str):
            return os.path.expandvars(data)
        else:
            return data

    @property
    def sections(self) -> List[str]:
        """Configured generations, in deploy order."""
        return [name for name in ("catalog", "catalog_v4") if getattr(self, name) is not None]

    def validate_config(self) -> None:
        """Validate the entire configuration for consistency."""
        if not self.sections:
            raise ConfigurationError(
                "Configuration needs a `catalog` or `catalog_v4` section"
            )

