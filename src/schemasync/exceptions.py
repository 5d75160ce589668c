"""
Exception classes for schemasync.
"""

from typing import Any, Dict, List, Optional


class SchemaSyncError(Exception):
    """Base exception for all schemasync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(SchemaSyncError):
    """Raised when there's an error in configuration."""

    pass


class ValidationError(SchemaSyncError):
    """Raised when there's a validation error."""

    pass


class ExpressionError(ValidationError):
    """Raised when a query snippet cannot be parsed into an expression tree."""

    def __init__(self, message: str, position: Optional[int] = None) -> None:
        details = {}
        if position is not None:
            details["position"] = position
        super().__init__(message, details)
        self.position = position


class RemoteError(SchemaSyncError):
    """Raised when the remote catalog fails a query."""

    pass


class TransportError(RemoteError):
    """Raised on network, authentication or protocol failures."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if status_code:
            details["status_code"] = status_code
        super().__init__(message, details, cause)
        self.status_code = status_code


class ConflictError(RemoteError):
    """Raised when the remote catalog rejects an operation of a transaction."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        step_index: Optional[int] = None,
        summary: Optional[str] = None,
        object_type: Optional[str] = None,
        name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if code:
            details["code"] = code
        if step_index is not None:
            details["step"] = step_index
        if object_type:
            details["type"] = object_type
        if name:
            details["name"] = name
        super().__init__(message, details, cause)
        self.code = code
        self.step_index = step_index
        self.summary = summary
        self.object_type = object_type
        self.name = name

    def with_context(self, object_type: str, name: str) -> "ConflictError":
        """Copy of this error naming the object whose step was rejected."""
        return ConflictError(
            self.message,
            code=self.code,
            step_index=self.step_index,
            summary=self.summary,
            object_type=object_type,
            name=name,
            cause=self.cause,
        )


class ReadOnlyFieldError(ConflictError):
    """Raised when a plan would change fields that cannot be updated in place."""

    def __init__(self, object_type: str, name: str, fields: List[str]) -> None:
        super().__init__(
            f"Field {', '.join(fields)} are readonly. Check {object_type.lower()} `{name}`",
            code="readonly_field",
            object_type=object_type,
            name=name,
        )
        self.fields = fields


class PlanExecutionError(SchemaSyncError):
    """Raised when a submitted plan fails on the remote side."""

    def __init__(
        self,
        message: str,
        object_type: Optional[str] = None,
        name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if object_type:
            details["type"] = object_type
        if name:
            details["name"] = name
        super().__init__(message, details, cause)
        self.object_type = object_type
        self.name = name


class PartialApplyError(PlanExecutionError):
    """Raised when a stepwise plan fails after some steps were committed."""

    def __init__(
        self,
        message: str,
        applied_steps: List[str],
        failed_step: str,
        object_type: Optional[str] = None,
        name: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, object_type, name, cause)
        self.applied_steps = applied_steps
        self.failed_step = failed_step
        self.details["applied"] = ",".join(applied_steps) or "none"
        self.details["failed_step"] = failed_step
