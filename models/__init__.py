"""
Models Package.

Inventory entities and the per-scrape snapshot they live in.
"""

from .entities import (
    RelationshipState,
    RelationshipRef,
    parse_relationships,
    Metadata,
    Resource,
    Organization,
    Space,
    Application,
    Task,
)
from .snapshot import CategoryStore, CFObjects


__all__ = [
    # Entities
    "RelationshipState",
    "RelationshipRef",
    "parse_relationships",
    "Metadata",
    "Resource",
    "Organization",
    "Space",
    "Application",
    "Task",

    # Snapshot
    "CategoryStore",
    "CFObjects",
]
