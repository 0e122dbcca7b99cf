"""
Fetcher - Inventory Fetcher.

============================================================
RESPONSIBILITY
============================================================
Produces one inventory snapshot per scrape.

- Opens an authenticated API session
- Registers the fetch task of every category
- Runs the plan and records errors and timing

============================================================
FAILURE MODEL
============================================================
- Session cannot be established: no task runs, the
  snapshot carries only the top-level error
- A critical task fails: the aggregate error becomes the
  top-level error as well
- Any other task fails: the aggregate error is kept in
  fetch_error, the snapshot is a best-effort partial one

============================================================
"""

import logging
import time
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from core.exceptions import SessionError, wrap_exception
from filters import Category, Filter
from models import CFObjects, Resource

from .models import CFConfig, TaskHandler
from .session import CFSession, SORT_DESC
from .worker import Worker


logger = logging.getLogger(__name__)


SessionFactory = Callable[[CFConfig], Awaitable[CFSession]]


# ============================================================
# GENERIC CATEGORIES
# ============================================================

# task name, API path, enabling categories, dependencies, extra query
GENERIC_TASKS: List[Tuple[str, str, Tuple[Category, ...], Tuple[str, ...], Optional[Dict[str, str]]]] = [
    ("org_quotas", "/v3/organization_quotas", (Category.ORGANIZATIONS,), (), None),
    ("space_quotas", "/v3/space_quotas", (Category.SPACES,), (), None),
    ("domains", "/v3/domains", (Category.DOMAINS,), (), None),
    ("processes", "/v3/processes", (Category.APPLICATIONS,), ("applications",), None),
    ("routes", "/v3/routes", (Category.ROUTES,), (), None),
    ("security_groups", "/v3/security_groups", (Category.SECURITY_GROUPS,), (), None),
    ("stacks", "/v3/stacks", (Category.STACKS,), (), None),
    ("buildpacks", "/v3/buildpacks", (Category.BUILDPACKS,), (), None),
    ("service_brokers", "/v3/service_brokers", (Category.SERVICES,), (), None),
    ("service_offerings", "/v3/service_offerings", (Category.SERVICES,), (), None),
    ("service_instances", "/v3/service_instances", (Category.SERVICE_INSTANCES,), (), None),
    ("service_plans", "/v3/service_plans", (Category.SERVICE_PLANS,), ("service_offerings",), None),
    ("segments", "/v3/isolation_segments", (Category.ISOLATION_SEGMENTS,), (), None),
    ("service_bindings", "/v3/service_credential_bindings", (Category.SERVICE_BINDINGS,), (), None),
    ("service_route_bindings", "/v3/service_route_bindings", (Category.SERVICE_ROUTE_BINDINGS,), (), None),
    ("users", "/v3/users", (Category.EVENTS,), (), None),
    ("events", "/v3/audit_events", (Category.EVENTS,), (), SORT_DESC),
]


# ============================================================
# FETCHER
# ============================================================

class Fetcher:
    """
    Builds inventory snapshots from the platform API.

    One Fetcher lives for the whole process; every call to
    get_objects() produces an independent snapshot.
    """

    def __init__(
        self,
        threads: int,
        config: CFConfig,
        filter: Filter,
        session_factory: Optional[SessionFactory] = None,
    ):
        """
        Initialize fetcher.

        Args:
            threads: Maximum concurrent fetch tasks
            config: API connection settings
            filter: Collector filter
            session_factory: Coroutine opening a session (defaults to CFSession.create)
        """
        self._config = config
        self._worker = Worker(threads, filter)
        self._session_factory = session_factory or CFSession.create

    @property
    def filter(self) -> Filter:
        return self._worker.filter

    @property
    def worker(self) -> Worker:
        return self._worker

    async def get_objects(self, timeout: Optional[float] = None) -> CFObjects:
        """
        Collect a snapshot of the inventory.

        Args:
            timeout: Optional deadline in seconds for the fetch tasks

        Returns:
            Populated snapshot with took set to the elapsed seconds
        """
        logger.info("collecting objects from cloud foundry API")
        start = time.monotonic()

        objs = await self._fetch(timeout)

        objs.took = time.monotonic() - start
        logger.info(f"collecting objects from cloud foundry API (done, {objs.took:.0f} sec)")
        return objs

    # --------------------------------------------------------
    # Task plan
    # --------------------------------------------------------

    def work_init(self) -> None:
        """Register every fetch task for the next run."""
        worker = self._worker
        worker.reset()

        worker.push("info", self.fetch_info, critical=True)

        # metadata and application metrics need the whole hierarchy
        worker.push_if(
            "organizations", self.fetch_orgs,
            Category.ORGANIZATIONS, Category.APPLICATIONS, Category.METADATA,
        )
        worker.push_if(
            "spaces", self.fetch_spaces,
            Category.SPACES, Category.APPLICATIONS, Category.METADATA,
            dependencies=["organizations"],
        )
        worker.push_if(
            "applications", self.fetch_applications,
            Category.APPLICATIONS, Category.METADATA,
            dependencies=["spaces"],
        )
        worker.push_if("tasks", self.fetch_tasks, Category.TASKS)

        for name, path, categories, dependencies, query in GENERIC_TASKS:
            worker.push_if(
                name,
                self._list_handler(name, path, query),
                *categories,
                dependencies=dependencies,
            )

    async def _fetch(self, timeout: Optional[float]) -> CFObjects:
        objs = CFObjects()

        try:
            session = await self._session_factory(self._config)
        except SessionError as e:
            logger.error(f"unable to initialize cloud foundry clients: {e}")
            objs.error = e
            return objs
        except Exception as e:
            logger.error(f"unable to initialize cloud foundry clients: {e}", exc_info=True)
            objs.error = wrap_exception(e, SessionError, url=self._config.url)
            return objs

        async with session:
            self.work_init()
            error = await self._worker.do(session, objs, timeout=timeout)

        if error is not None:
            objs.fetch_error = error
            if error.critical:
                objs.error = error

        return objs

    # --------------------------------------------------------
    # Task handlers
    # --------------------------------------------------------

    async def fetch_info(self, session: CFSession, objs: CFObjects) -> None:
        objs.info = await session.get_info()

    async def fetch_orgs(self, session: CFSession, objs: CFObjects) -> None:
        objs.insert("organizations", await session.get_organizations())

    async def fetch_spaces(self, session: CFSession, objs: CFObjects) -> None:
        objs.insert("spaces", await session.get_spaces())

    async def fetch_applications(self, session: CFSession, objs: CFObjects) -> None:
        objs.insert("applications", await session.get_applications())

    async def fetch_tasks(self, session: CFSession, objs: CFObjects) -> None:
        objs.insert("tasks", await session.get_tasks())

    def _list_handler(
        self,
        category: str,
        path: str,
        query: Optional[Dict[str, str]] = None,
    ) -> TaskHandler:
        """Handler listing a category without a dedicated type."""

        async def handler(session: CFSession, objs: CFObjects) -> None:
            resources = await session.list_typed(path, Resource, query)
            objs.insert(category, resources)

        handler.__name__ = f"fetch_{category}"
        return handler


__all__ = [
    "Fetcher",
    "GENERIC_TASKS",
]
