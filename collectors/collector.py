"""
Collectors - Registry Binding.

============================================================
PURPOSE
============================================================
Binds collectors to prometheus_client for one scrape.

A fresh CollectorRegistry is built per scrape and holds a
single SnapshotCollector, which hands the scrape context to
every collector. Nothing is registered process-wide.

============================================================
"""

import logging
from typing import Iterator, List, Sequence

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import Metric

from filters import Category, Filter

from .base import BaseCollector, ScrapeContext
from .metadata import MetadataCollector


logger = logging.getLogger(__name__)


class SnapshotCollector:
    """
    prometheus_client collector over one scrape context.

    Defines no describe(), so registering it never triggers
    a collection.
    """

    def __init__(self, context: ScrapeContext, collectors: Sequence[BaseCollector]):
        self._context = context
        self._collectors = list(collectors)

    def collect(self) -> Iterator[Metric]:
        for collector in self._collectors:
            logger.debug(f"Collecting {collector.name} metrics")
            yield from collector.collect(self._context)


def build_collectors(filter: Filter) -> List[BaseCollector]:
    """
    Create the collectors enabled by the filter.

    Args:
        filter: Collector filter

    Returns:
        Collector instances, to be kept for the process lifetime
    """
    collectors: List[BaseCollector] = []

    if filter.enabled(Category.METADATA):
        collectors.append(MetadataCollector())

    logger.info(f"Enabled collectors: {', '.join(c.name for c in collectors) or 'none'}")
    return collectors


def build_registry(context: ScrapeContext, collectors: Sequence[BaseCollector]) -> CollectorRegistry:
    """Registry holding one scrape's collectors."""
    registry = CollectorRegistry()
    registry.register(SnapshotCollector(context, collectors))
    return registry


def render(context: ScrapeContext, collectors: Sequence[BaseCollector]) -> bytes:
    """
    Render one scrape in the text exposition format.

    Args:
        context: Scrape context
        collectors: Collectors to run

    Returns:
        Encoded exposition body
    """
    return generate_latest(build_registry(context, collectors))


__all__ = [
    "SnapshotCollector",
    "build_collectors",
    "build_registry",
    "render",
]
