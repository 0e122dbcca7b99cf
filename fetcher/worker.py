"""
Fetcher - Worker.

============================================================
RESPONSIBILITY
============================================================
Schedules fetch tasks against one API session.

- Builds the task plan from the collector filter
- Force-includes dependencies of included tasks
- Runs ready tasks on a bounded pool of workers
- Skips dependents of tasks that did not succeed
- Folds task outcomes into one aggregate error

============================================================
SCHEDULING
============================================================
A task is ready once every dependency is terminal. If all
dependencies succeeded it is queued for the pool, otherwise
it is marked SKIPPED without ever being invoked. Waiting
tasks never hold a worker. One failing task never aborts
its siblings.

A caller deadline (or cancellation of do()) cancels the
in-flight tasks; they and every task not yet started end
up ABORTED.

============================================================
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Set, TYPE_CHECKING

from core.exceptions import (
    ConfigurationError,
    FetchError,
    TaskAbortedError,
    TaskError,
    classify_exception,
)
from filters import Category, Filter

from .graph import DependencyGraph
from .models import TaskDefinition, TaskHandler, TaskOutcome, TaskStatus

if TYPE_CHECKING:
    from models import CFObjects
    from .session import CFSession


logger = logging.getLogger(__name__)


# ============================================================
# WORKER
# ============================================================

class Worker:
    """
    Registry and scheduler of fetch tasks.

    Tasks are registered once per scrape with push()/push_if();
    do() evaluates the filter, builds the plan and runs it.
    """

    def __init__(self, threads: int, filter: Filter):
        """
        Initialize worker.

        Args:
            threads: Maximum number of tasks in flight
            filter: Collector filter deciding which tasks run

        Raises:
            ConfigurationError: If threads is not positive
        """
        if threads < 1:
            raise ConfigurationError(
                message="worker count must be at least 1",
                config_key="cf.api-workers",
                actual_value=threads,
            )

        self._threads = threads
        self.filter = filter
        self._definitions: Dict[str, TaskDefinition] = {}
        self._graph = DependencyGraph()

    @property
    def threads(self) -> int:
        return self._threads

    # --------------------------------------------------------
    # Registration
    # --------------------------------------------------------

    def reset(self) -> None:
        """Forget every registered task."""
        self._definitions = {}
        self._graph = DependencyGraph()

    def push(
        self,
        name: str,
        handler: TaskHandler,
        dependencies: Iterable[str] = (),
        critical: bool = False,
    ) -> None:
        """Register an unconditional task."""
        self._register(TaskDefinition(
            name=name,
            handler=handler,
            dependencies=list(dependencies),
            critical=critical,
        ))

    def push_if(
        self,
        name: str,
        handler: TaskHandler,
        *categories: Category,
        dependencies: Iterable[str] = (),
        critical: bool = False,
    ) -> None:
        """Register a task enabled when any of the categories is."""
        if not categories:
            raise ConfigurationError(
                message=f"Conditional task '{name}' needs at least one category",
                config_key="tasks",
                actual_value=name,
            )

        self._register(TaskDefinition(
            name=name,
            handler=handler,
            dependencies=list(dependencies),
            flags=frozenset(categories),
            critical=critical,
        ))

    def _register(self, definition: TaskDefinition) -> None:
        if definition.name in self._definitions:
            raise ConfigurationError(
                message=f"Task '{definition.name}' registered twice",
                config_key="tasks",
                actual_value=definition.name,
            )

        self._definitions[definition.name] = definition
        self._graph.add_node(definition.name, definition.dependencies)
        logger.debug(f"Registered task: {definition.name}")

    # --------------------------------------------------------
    # Planning
    # --------------------------------------------------------

    def plan(self) -> List[TaskDefinition]:
        """
        Build the task plan for the current filter.

        Returns:
            Included tasks, dependencies first

        Raises:
            ConfigurationError: On unknown dependencies or cycles
        """
        self._graph.validate()

        selected = [
            name for name, definition in self._definitions.items()
            if definition.unconditional or self.filter.any_enabled(definition.flags)
        ]
        included = self._graph.closure(selected)

        for name in self._graph.nodes:
            if name in included and name not in selected:
                required_by = sorted(
                    dependent for dependent in self._graph.get_dependents(name)
                    if dependent in included
                )
                logger.info(
                    f"Task {name} force-included, required by: {', '.join(required_by)}"
                )

        order = self._graph.subgraph(included).get_order()
        return [self._definitions[name] for name in order]

    # --------------------------------------------------------
    # Execution
    # --------------------------------------------------------

    async def do(
        self,
        session: "CFSession",
        objs: "CFObjects",
        timeout: Optional[float] = None,
    ) -> Optional[FetchError]:
        """
        Run the task plan.

        Args:
            session: Authenticated API session shared by all tasks
            objs: Snapshot the tasks populate
            timeout: Optional deadline in seconds for the whole plan

        Returns:
            Aggregate error, None if every task succeeded
        """
        plan = self.plan()
        execution = _Execution(plan, session, objs, self._threads)
        return await execution.run(timeout)


# ============================================================
# EXECUTION (one scrape)
# ============================================================

class _Execution:
    """State of one run of a task plan."""

    def __init__(
        self,
        plan: List[TaskDefinition],
        session: "CFSession",
        objs: "CFObjects",
        threads: int,
    ):
        self._definitions = {definition.name: definition for definition in plan}
        self._session = session
        self._objs = objs
        self._threads = threads

        self._graph = DependencyGraph()
        for definition in plan:
            self._graph.add_node(definition.name, definition.dependencies)

        self._outcomes: Dict[str, TaskOutcome] = {
            definition.name: TaskOutcome(name=definition.name, status=TaskStatus.PENDING)
            for definition in plan
        }
        self._waiting: Dict[str, Set[str]] = {
            definition.name: set(definition.dependencies) for definition in plan
        }
        self._remaining = len(plan)
        self._ready: "asyncio.Queue[str]" = asyncio.Queue()
        self._finished = asyncio.Event()

    async def run(self, timeout: Optional[float]) -> Optional[FetchError]:
        if not self._definitions:
            return None

        for name, waiting in self._waiting.items():
            if not waiting:
                self._ready.put_nowait(name)

        pool_size = min(self._threads, len(self._definitions))
        workers = [
            asyncio.create_task(self._work(), name=f"fetch-worker-{i}")
            for i in range(pool_size)
        ]

        logger.debug(f"Running {len(self._definitions)} tasks on {pool_size} workers")

        try:
            await asyncio.wait_for(self._finished.wait(), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Fetch deadline of {timeout}s exceeded, aborting remaining tasks")
            await self._stop(workers)
            self._abort_remaining(f"deadline of {timeout}s exceeded")
        except asyncio.CancelledError:
            logger.warning("Fetch cancelled, aborting remaining tasks")
            await self._stop(workers)
            self._abort_remaining("scrape cancelled")
            self._publish()
            raise
        else:
            await self._stop(workers)

        self._publish()
        return self._fold()

    # --------------------------------------------------------
    # Workers
    # --------------------------------------------------------

    async def _work(self) -> None:
        while True:
            name = await self._ready.get()
            await self._execute(self._definitions[name])

    async def _execute(self, definition: TaskDefinition) -> None:
        outcome = self._outcomes[definition.name]
        outcome.status = TaskStatus.RUNNING
        outcome.started_at = datetime.now(timezone.utc)
        start = time.monotonic()

        try:
            await definition.handler(self._session, self._objs)
        except asyncio.CancelledError:
            outcome.status = TaskStatus.ABORTED
            outcome.error = TaskAbortedError(definition.name)
            outcome.duration_seconds = time.monotonic() - start
            raise
        except Exception as e:
            outcome.status = TaskStatus.FAILED
            outcome.error = TaskError(
                definition.name,
                f"{type(e).__name__}: {e}",
                cause=e,
                classification=classify_exception(e),
            )
            outcome.duration_seconds = time.monotonic() - start
            logger.error(f"Task {definition.name} failed: {e}")
        else:
            outcome.status = TaskStatus.SUCCEEDED
            outcome.duration_seconds = time.monotonic() - start
            logger.debug(
                f"Task {definition.name} done ({outcome.duration_seconds:.2f}s)"
            )

        self._complete(definition.name)

    async def _stop(self, workers: List["asyncio.Task[None]"]) -> None:
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

    # --------------------------------------------------------
    # Bookkeeping
    # --------------------------------------------------------

    def _complete(self, name: str) -> None:
        """Record a terminal task and release its dependents."""
        self._remaining -= 1

        for dependent in self._graph.get_dependents(name):
            waiting = self._waiting[dependent]
            waiting.discard(name)
            if waiting:
                continue

            failed = [
                dep for dep in self._definitions[dependent].dependencies
                if not self._outcomes[dep].succeeded
            ]
            if failed:
                outcome = self._outcomes[dependent]
                outcome.status = TaskStatus.SKIPPED
                outcome.failed_dependencies = failed
                logger.warning(
                    f"Task {dependent} skipped, dependencies did not succeed: {', '.join(failed)}"
                )
                self._complete(dependent)
            else:
                self._ready.put_nowait(dependent)

        if self._remaining == 0:
            self._finished.set()

    def _abort_remaining(self, reason: str) -> None:
        for name, outcome in self._outcomes.items():
            if not outcome.status.is_terminal:
                outcome.status = TaskStatus.ABORTED
                outcome.error = TaskAbortedError(name, reason)

    def _publish(self) -> None:
        self._objs.outcomes = dict(self._outcomes)

    def _fold(self) -> Optional[FetchError]:
        failed = {
            name: outcome.error
            for name, outcome in self._outcomes.items()
            if outcome.status == TaskStatus.FAILED
        }
        aborted = [
            name for name, outcome in self._outcomes.items()
            if outcome.status == TaskStatus.ABORTED
        ]
        skipped = [
            name for name, outcome in self._outcomes.items()
            if outcome.status == TaskStatus.SKIPPED
        ]

        if not failed and not aborted:
            return None

        critical = any(
            self._definitions[name].critical for name in list(failed) + aborted
        )
        error = FetchError(failed=failed, aborted=aborted, skipped=skipped, critical=critical)
        logger.error(f"Fetch incomplete: {error}")
        return error


__all__ = [
    "Worker",
]
