"""
Error types for the Charge Point Pipeline.

Every error raised by the package derives from ChargePointPipelineError,
so callers can catch the whole family with a single except clause.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class ChargePointPipelineError(Exception):
    """Base exception for all pipeline errors."""

    def __init__(
        self,
        message: str,
        *,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def __str__(self) -> str:
        parts = [self.message]

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")

        if self.cause is not None:
            parts.append(f"Caused by: {type(self.cause).__name__}: {self.cause}")

        return " | ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": type(self).__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


class ConfigurationError(ChargePointPipelineError):
    """Raised when settings are invalid."""


class SchemaValidationError(ChargePointPipelineError):
    """Raised when a DataFrame lacks columns a transformation needs."""

    def __init__(self, message: str, *, missing_columns: Optional[List[str]] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.missing_columns = list(missing_columns or [])
        if self.missing_columns:
            self.context["missing_columns"] = self.missing_columns


class TransformationError(ChargePointPipelineError):
    """Raised when a step of a transformation pipeline fails."""

    def __init__(self, message: str, *, step_name: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.step_name = step_name
        if step_name:
            self.context["step"] = step_name


class IngestionError(ChargePointPipelineError):
    """Raised when raw messages cannot be read or written."""

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.path = path
        if path:
            self.context["path"] = path


class DataQualityError(ChargePointPipelineError):
    """Raised when critical data quality checks fail."""

    def __init__(self, message: str, *, failed_rules: Optional[List[str]] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.failed_rules = list(failed_rules or [])
        if self.failed_rules:
            self.context["failed_rules"] = self.failed_rules
