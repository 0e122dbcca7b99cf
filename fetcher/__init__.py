"""
Fetcher Package.

Schedules concurrent, interdependent fetches of the platform
inventory and assembles them into a snapshot.
"""

from .models import (
    TaskStatus,
    TaskHandler,
    TaskDefinition,
    TaskOutcome,
    CFConfig,
)
from .graph import DependencyGraph
from .session import (
    CFSession,
    MAX_PAGE_SIZE,
    LARGE_QUERY,
    SORT_DESC,
    TASK_ACTIVE_STATES,
)
from .worker import Worker
from .fetcher import Fetcher, GENERIC_TASKS


__all__ = [
    # Models
    "TaskStatus",
    "TaskHandler",
    "TaskDefinition",
    "TaskOutcome",
    "CFConfig",

    # Scheduling
    "DependencyGraph",
    "Worker",

    # Session
    "CFSession",
    "MAX_PAGE_SIZE",
    "LARGE_QUERY",
    "SORT_DESC",
    "TASK_ACTIVE_STATES",

    # Fetcher
    "Fetcher",
    "GENERIC_TASKS",
]
