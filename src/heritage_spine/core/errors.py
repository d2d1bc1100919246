"""
Structured error types for the heritage publishing pipeline.

Every failure the pipeline can raise is a :class:`PublishError` subclass that
carries a category, a structured context and (optionally) the underlying
exception.  The CLI relies on this to print a human-readable message and exit
non-zero; the log channel relies on ``to_dict()`` for structured fields.

Manifesto:
    - **Typed hierarchy:** one class per failure mode the operator must act on
    - **Rich context:** phase, source file, resource and graph ids travel with
      the error instead of being formatted into the message
    - **Error chaining:** the original exception is kept as ``cause``
    - **Fatal by default:** nothing here is retried automatically

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                       PublishError                           │
        │              (category, context, cause)                      │
        ├─────────────────────────────────────────────────────────────┤
        │  InvalidInputError     MalformedGraphError   ParseError      │
        │  (VALIDATION)          (SOURCE)              (PARSE)         │
        │                                                              │
        │  PathTraversalError    LookupFailureError    PhaseOrderError │
        │  (STORAGE)             (SOURCE)              (PIPELINE)      │
        │                                                              │
        │  ConfigError                                                 │
        │   └── MissingConfigError                                     │
        └─────────────────────────────────────────────────────────────┘

Recovery rules:
    ``InvalidInputError`` raised while slugging a title is recovered by the
    metadata extractor.  ``MalformedGraphError``, ``PathTraversalError`` and
    ``LookupFailureError`` abort the run.

Examples:
    >>> err = LookupFailureError("resource not found").with_context(
    ...     resource_id="4b1c", graph_id="076f"
    ... )
    >>> err.to_dict()["context"]["resource_id"]
    '4b1c'

Tags:
    error-handling, exception-hierarchy, error-context, heritage-spine
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and log routing."""

    STORAGE = "STORAGE"           # Disk, output directory, path escapes
    SOURCE = "SOURCE"             # Source files, graph definitions, lookups
    PARSE = "PARSE"               # Malformed JSON
    VALIDATION = "VALIDATION"     # Bad input values
    CONFIG = "CONFIG"             # Missing or invalid configuration
    PIPELINE = "PIPELINE"         # Phase ordering, orchestration
    INTERNAL = "INTERNAL"         # Bugs, unexpected state


@dataclass
class ErrorContext:
    """
    Structured metadata attached to an error.

    Only the fields that are set are emitted by :meth:`to_dict`, so the same
    context type serves graph loading, batch extraction and publishing.

    Attributes:
        phase: Pipeline phase (``"preindex"``, ``"reindex"``, ``"graphs"`` ...)
        source_file: Business-data or graph file being processed
        resource_id: Resource instance identifier
        graph_id: Graph (model) identifier
        path: Filesystem path involved
        metadata: Additional key-value pairs
    """

    phase: str | None = None
    source_file: str | None = None
    resource_id: str | None = None
    graph_id: str | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result = {}
        for key in ["phase", "source_file", "resource_id", "graph_id", "path"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class PublishError(Exception):
    """
    Base exception for all pipeline errors.

    Subclasses set ``default_category``; callers may override it per instance.
    The optional ``cause`` is chained as ``__cause__`` so tracebacks show the
    original failure.

    Examples:
        >>> try:
        ...     raise OSError("disk full")
        ... except OSError as e:
        ...     err = PublishError("could not write chunk", cause=e)
        >>> err.cause
        OSError('disk full')
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> PublishError:
        """
        Add context to this error (fluent API).

        Usage:
            raise MalformedGraphError("no graph").with_context(path=filename)
        """
        for key, value in kwargs.items():
            if hasattr(self.context, key) and key != "metadata":
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
        }

        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict

        if self.cause is not None:
            result["cause"] = str(self.cause)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# INPUT / SOURCE ERRORS
# =============================================================================


class InvalidInputError(PublishError):
    """An input value cannot be used (empty title, missing identifier)."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, message: str, *, value: Any = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.value = value

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        if self.value is not None:
            result["value"] = repr(self.value)
        return result


class MalformedGraphError(PublishError):
    """A graph definition file is missing or does not hold exactly one graph."""

    default_category = ErrorCategory.SOURCE


class LookupFailureError(PublishError):
    """A resource identifier could not be resolved against its model."""

    default_category = ErrorCategory.SOURCE


class ParseError(PublishError):
    """JSON content could not be parsed."""

    default_category = ErrorCategory.PARSE


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class PathTraversalError(PublishError):
    """A resolved output path escapes its base directory."""

    default_category = ErrorCategory.STORAGE

    def __init__(self, path: str, base: str, message: str | None = None):
        self.path = path
        self.base = base
        super().__init__(message or f"Path traversal detected: {path} is outside {base}")
        self.context.path = path


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(PublishError):
    """Configuration error. The configuration must be fixed before rerunning."""

    default_category = ErrorCategory.CONFIG


class MissingConfigError(ConfigError):
    """Required configuration (policy, graph list, project file) is absent."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


# =============================================================================
# PIPELINE ERRORS
# =============================================================================


class PhaseOrderError(PublishError):
    """A loader phase was entered without proof that the previous one completed."""

    default_category = ErrorCategory.PIPELINE


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "PublishError",
    "InvalidInputError",
    "MalformedGraphError",
    "LookupFailureError",
    "ParseError",
    "PathTraversalError",
    "ConfigError",
    "MissingConfigError",
    "PhaseOrderError",
]
