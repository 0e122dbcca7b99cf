"""
Collectors - Base.

============================================================
PURPOSE
============================================================
Common contract of metric collectors.

PRINCIPLES:
- Collectors are READ-ONLY over the snapshot
- Everything a scrape needs travels in a ScrapeContext
- Collectors yield metric families lazily
- Counters spanning scrapes live on the collector instance

============================================================
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from prometheus_client.core import Metric

from core.clock import ClockProtocol, SystemClock
from models import CFObjects


logger = logging.getLogger(__name__)


# ============================================================
# SCRAPE CONTEXT
# ============================================================

@dataclass
class ScrapeContext:
    """Everything one scrape hands to the collectors."""

    objects: CFObjects
    """Snapshot fetched for this scrape (read-only)."""

    environment: str
    deployment: str
    namespace: str = "cf"

    clock: ClockProtocol = field(default_factory=SystemClock)
    """Source of the scrape timestamp."""

    @property
    def const_label_names(self) -> List[str]:
        return ["environment", "deployment"]

    @property
    def const_label_values(self) -> List[str]:
        return [self.environment, self.deployment]

    @property
    def const_labels(self) -> Dict[str, str]:
        return dict(zip(self.const_label_names, self.const_label_values))

    def metric_name(self, *parts: str) -> str:
        """Join namespace and name parts, skipping empty ones."""
        return "_".join(p for p in (self.namespace,) + parts if p)


# ============================================================
# BASE COLLECTOR
# ============================================================

class BaseCollector(ABC):
    """
    Base class for all metric collectors.

    Every metric carries the constant environment and
    deployment labels of the scrape context.
    """

    def __init__(self, name: str):
        """
        Initialize collector.

        Args:
            name: Collector name, used in logs
        """
        self._name = name
        self._lock = threading.Lock()

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def collect(self, context: ScrapeContext) -> Iterator[Metric]:
        """
        Render the snapshot of a scrape.

        MUST NOT mutate the snapshot.
        """
        pass


__all__ = [
    "ScrapeContext",
    "BaseCollector",
]
