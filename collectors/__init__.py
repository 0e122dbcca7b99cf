"""
Collectors Package.

Renders inventory snapshots as metrics.
"""

from .base import BaseCollector, ScrapeContext
from .metadata import MetadataCollector
from .collector import SnapshotCollector, build_collectors, build_registry, render


__all__ = [
    "BaseCollector",
    "ScrapeContext",
    "MetadataCollector",
    "SnapshotCollector",
    "build_collectors",
    "build_registry",
    "render",
]
