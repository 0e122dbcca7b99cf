"""
Core Module Package.

Shared infrastructure every other package depends on.

Components:
- clock: Injectable time source
- exceptions: Custom exception hierarchy
"""

from .clock import ClockProtocol, SystemClock, MockClock
from .exceptions import (
    Severity,
    ErrorClassification,
    ExporterException,
    ConfigurationError,
    SessionError,
    APIError,
    TaskError,
    TaskAbortedError,
    FetchError,
    RenderError,
    classify_exception,
    wrap_exception,
)


__all__ = [
    "ClockProtocol",
    "SystemClock",
    "MockClock",
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
