"""
Fetcher - Models.

============================================================
RESPONSIBILITY
============================================================
Defines data models for the fetch orchestrator.

- Task status and outcomes
- Task definitions (handler, dependencies, filter flags)
- Platform API connection settings

============================================================
"""

from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, FrozenSet, List, Optional, TYPE_CHECKING
import os

from filters import Category

if TYPE_CHECKING:
    from models import CFObjects
    from .session import CFSession


# ============================================================
# TASK STATUS
# ============================================================

class TaskStatus(Enum):
    """Terminal and non-terminal states of a fetch task."""

    PENDING = "pending"
    """Waiting for dependencies or a free worker."""

    RUNNING = "running"
    """Handler is executing."""

    SUCCEEDED = "succeeded"
    """Handler returned and its category is populated."""

    FAILED = "failed"
    """Handler raised, category is absent."""

    SKIPPED = "skipped"
    """Never executed because a dependency did not succeed."""

    ABORTED = "aborted"
    """Cancelled by a deadline or cancellation of the scrape."""

    @property
    def is_terminal(self) -> bool:
        return self not in (TaskStatus.PENDING, TaskStatus.RUNNING)


# ============================================================
# TASK DEFINITION
# ============================================================

TaskHandler = Callable[["CFSession", "CFObjects"], Awaitable[None]]


@dataclass
class TaskDefinition:
    """Definition of a fetch task for registration."""

    name: str
    """Unique task name (usually the category it populates)."""

    handler: TaskHandler
    """Coroutine fetching the category into the snapshot."""

    dependencies: List[str] = field(default_factory=list)
    """Tasks whose stores must be populated first."""

    flags: FrozenSet[Category] = field(default_factory=frozenset)
    """Filter categories enabling this task. Empty means always."""

    critical: bool = False
    """Whether failure is escalated to the snapshot's top-level error."""

    @property
    def unconditional(self) -> bool:
        return not self.flags


# ============================================================
# TASK OUTCOME
# ============================================================

@dataclass
class TaskOutcome:
    """Result of one task in one scrape."""

    name: str
    status: TaskStatus
    error: Optional[BaseException] = None
    started_at: Optional[datetime] = None
    duration_seconds: float = 0.0
    failed_dependencies: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "name": self.name,
            "status": self.status.value,
            "error": str(self.error) if self.error else None,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "duration_seconds": self.duration_seconds,
            "failed_dependencies": list(self.failed_dependencies),
        }


# ============================================================
# API CONNECTION CONFIGURATION
# ============================================================

@dataclass
class CFConfig:
    """Connection settings of the platform API."""

    url: str = ""
    """API endpoint, e.g. https://api.sys.example.com"""

    client_id: str = ""
    client_secret: str = ""
    """Client credentials grant (preferred)."""

    username: str = ""
    password: str = ""
    """Password grant, used when no client id is set."""

    skip_ssl_validation: bool = False
    """Disable TLS certificate verification."""

    request_timeout_seconds: float = 60.0
    """Timeout of a single HTTP request."""

    @classmethod
    def from_env(cls) -> "CFConfig":
        """Load configuration from environment variables."""
        return cls(
            url=os.getenv("CF_API_URL", ""),
            client_id=os.getenv("CF_CLIENT_ID", ""),
            client_secret=os.getenv("CF_CLIENT_SECRET", ""),
            username=os.getenv("CF_USERNAME", ""),
            password=os.getenv("CF_PASSWORD", ""),
            skip_ssl_validation=os.getenv("CF_SKIP_SSL_VALIDATION", "false").lower() == "true",
            request_timeout_seconds=float(os.getenv("CF_REQUEST_TIMEOUT_SECONDS", "60")),
        )

    @property
    def uses_client_credentials(self) -> bool:
        return bool(self.client_id)

    def validate(self) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.url:
            errors.append("cf.api-url is required")
        elif not self.url.startswith(("http://", "https://")):
            errors.append("cf.api-url must start with http:// or https://")

        if self.client_id:
            if not self.client_secret:
                errors.append("cf.client-secret is required with cf.client-id")
        elif not (self.username and self.password):
            errors.append("either cf.client-id/cf.client-secret or cf.username/cf.password is required")

        if self.request_timeout_seconds <= 0:
            errors.append("request timeout must be positive")

        return errors


__all__ = [
    "TaskStatus",
    "TaskHandler",
    "TaskDefinition",
    "TaskOutcome",
    "CFConfig",
]
