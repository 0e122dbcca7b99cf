"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines all custom exceptions for the inventory exporter.

- Provides clear exception hierarchy
- Separates fatal (per-snapshot) from per-category failures
- Supports error categorization for scrape-health reporting
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
ExporterException (base)
├── ConfigurationError
├── SessionError
├── APIError
├── TaskError
│   └── TaskAbortedError
├── FetchError
└── RenderError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, part of a scrape is missing."""

    HIGH = "high"
    """Serious issue, a whole scrape is missing."""

    CRITICAL = "critical"
    """Exporter cannot run."""


# ============================================================
# ERROR CLASSIFICATION
# ============================================================

class ErrorClassification(Enum):
    """Classification of error recoverability."""

    RECOVERABLE = "recoverable"
    """Next scrape is expected to succeed."""

    TRANSIENT = "transient"
    """Temporary upstream error, retry may succeed."""

    NON_RECOVERABLE = "non_recoverable"
    """Permanent error, requires intervention."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class ExporterException(Exception):
    """
    Base exception for all exporter errors.

    All exceptions carry:
    - severity: for logging
    - context: for debugging
    - classification: for error handling decisions
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_classification: ErrorClassification = ErrorClassification.RECOVERABLE

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        classification: Optional[ErrorClassification] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.classification = classification or self.default_classification
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause is not None:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "classification": self.classification.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }

    def __str__(self) -> str:
        return self.message


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(ExporterException):
    """Error in configuration, filter names or task plan."""

    default_severity = Severity.CRITICAL
    default_classification = ErrorClassification.NON_RECOVERABLE

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


# ============================================================
# REMOTE API ERRORS
# ============================================================

class SessionError(ExporterException):
    """
    Authentication or connection setup failed.

    Fatal to the whole snapshot: no fetch task runs.
    """

    default_severity = Severity.HIGH
    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if url:
            context["url"] = url
        if status is not None:
            context["status"] = status

        super().__init__(message, context=context, **kwargs)
        self.status = status


class APIError(ExporterException):
    """A remote call failed on an established session."""

    default_classification = ErrorClassification.TRANSIENT

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if url:
            context["url"] = url
        if status is not None:
            context["status"] = status

        super().__init__(message, context=context, **kwargs)
        self.status = status


# ============================================================
# ORCHESTRATION ERRORS
# ============================================================

class TaskError(ExporterException):
    """One category fetch failed. Sibling tasks keep running."""

    def __init__(self, task: str, message: str, **kwargs):
        context = kwargs.pop("context", {})
        context["task"] = task
        super().__init__(message, context=context, **kwargs)
        self.task = task


class TaskAbortedError(TaskError):
    """Task was cancelled before reaching a terminal state."""

    default_classification = ErrorClassification.TRANSIENT

    def __init__(self, task: str, reason: str = "cancelled"):
        super().__init__(task, f"task {task} aborted: {reason}")
        self.reason = reason


class FetchError(ExporterException):
    """
    Aggregate of every non-successful task of one snapshot.

    Skipped tasks are listed apart from failed ones so that
    "could not reach" and "did not attempt" stay distinguishable.
    """

    def __init__(
        self,
        failed: Optional[Dict[str, BaseException]] = None,
        aborted: Optional[List[str]] = None,
        skipped: Optional[List[str]] = None,
        critical: bool = False,
    ):
        self.failed = dict(failed or {})
        self.aborted = list(aborted or [])
        self.skipped = list(skipped or [])
        self.critical = critical

        parts = []
        if self.failed:
            parts.append(
                "failed: " + ", ".join(f"{name} ({err})" for name, err in self.failed.items())
            )
        if self.aborted:
            parts.append("aborted: " + ", ".join(self.aborted))
        if self.skipped:
            parts.append("skipped: " + ", ".join(self.skipped))

        super().__init__(
            "; ".join(parts) or "no task failed",
            severity=Severity.HIGH if critical else Severity.MEDIUM,
            context={
                "failed": sorted(self.failed),
                "aborted": self.aborted,
                "skipped": self.skipped,
            },
        )

    @property
    def categories(self) -> List[str]:
        """Every category missing from the snapshot."""
        return sorted(set(self.failed) | set(self.aborted) | set(self.skipped))


class RenderError(ExporterException):
    """The metric walk over a snapshot failed."""


# ============================================================
# HELPERS
# ============================================================

def classify_exception(exc: BaseException) -> ErrorClassification:
    """Classify an exception for error handling."""
    if isinstance(exc, ExporterException):
        return exc.classification

    if isinstance(exc, (ConnectionError, TimeoutError, OSError)):
        return ErrorClassification.TRANSIENT

    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ErrorClassification.RECOVERABLE

    if isinstance(exc, (SystemExit, KeyboardInterrupt, MemoryError)):
        return ErrorClassification.NON_RECOVERABLE

    return ErrorClassification.RECOVERABLE


def wrap_exception(
    exc: BaseException,
    wrapper_class: type = ExporterException,
    message: Optional[str] = None,
    **kwargs,
) -> ExporterException:
    """Wrap a standard exception in an ExporterException."""
    msg = message or f"{type(exc).__name__}: {exc}"
    return wrapper_class(message=msg, cause=exc, **kwargs)


__all__ = [
    "Severity",
    "ErrorClassification",
    "ExporterException",
    "ConfigurationError",
    "SessionError",
    "APIError",
    "TaskError",
    "TaskAbortedError",
    "FetchError",
    "RenderError",
    "classify_exception",
    "wrap_exception",
]
