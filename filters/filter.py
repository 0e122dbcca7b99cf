"""
Filters - Collector Filter.

============================================================
RESPONSIBILITY
============================================================
Decides which inventory categories are scraped.

- Closed enumeration of categories
- "Is category C enabled?" queries
- Never mutated once built

============================================================
DEFAULTS
============================================================
An empty filter enables every category except EVENTS.
Audit events are the most expensive listing on large
foundations and must be asked for explicitly.

============================================================
"""

import logging
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


# =============================================================
# CATEGORIES
# =============================================================

class Category(str, Enum):
    """Inventory categories a collector filter can enable."""
    APPLICATIONS = "applications"
    BUILDPACKS = "buildpacks"
    DOMAINS = "domains"
    EVENTS = "events"
    ISOLATION_SEGMENTS = "isolation_segments"
    METADATA = "metadata"
    ORGANIZATIONS = "organizations"
    ROUTES = "routes"
    SECURITY_GROUPS = "security_groups"
    SERVICE_BINDINGS = "service_bindings"
    SERVICE_INSTANCES = "service_instances"
    SERVICE_PLANS = "service_plans"
    SERVICE_ROUTE_BINDINGS = "service_route_bindings"
    SERVICES = "services"
    SPACES = "spaces"
    STACKS = "stacks"
    TASKS = "tasks"

    @classmethod
    def parse(cls, name: str) -> "Category":
        """
        Parse a category name.

        Args:
            name: Category name, case-insensitive

        Raises:
            ConfigurationError: If the name is not a known category
        """
        normalized = name.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(
                message=(
                    f"Unknown collector filter '{name}'. "
                    f"Available: {', '.join(c.value for c in cls)}"
                ),
                config_key="filter.collectors",
                actual_value=name,
            )


DEFAULT_DISABLED: FrozenSet[Category] = frozenset({Category.EVENTS})


# =============================================================
# FILTER
# =============================================================

class Filter:
    """
    Set of enabled inventory categories.

    Example:
        >>> f = Filter("applications", "metadata")
        >>> f.enabled(Category.APPLICATIONS)
        True
        >>> f.any_enabled([Category.ROUTES, Category.METADATA])
        True
    """

    def __init__(self, *names: str) -> None:
        """
        Build a filter from category names.

        Args:
            *names: Category names to enable. No names means the
                default set (everything but events).
        """
        wanted = [n for n in names if n and n.strip()]
        if wanted:
            self._enabled = frozenset(Category.parse(n) for n in wanted)
        else:
            self._enabled = frozenset(set(Category) - DEFAULT_DISABLED)

        logger.debug(
            f"Collector filter: {', '.join(sorted(c.value for c in self._enabled))}"
        )

    @classmethod
    def from_string(cls, value: Optional[str]) -> "Filter":
        """Build a filter from a comma separated list."""
        if not value:
            return cls()
        return cls(*value.split(","))

    def enabled(self, category: Category) -> bool:
        """Check whether a single category is enabled."""
        return category in self._enabled

    def any_enabled(self, categories: Iterable[Category]) -> bool:
        """Check whether at least one of the categories is enabled."""
        return not self._enabled.isdisjoint(categories)

    @property
    def enabled_categories(self) -> List[Category]:
        """Enabled categories in name order."""
        return sorted(self._enabled, key=lambda c: c.value)

    def __contains__(self, category: Category) -> bool:
        return self.enabled(category)

    def __repr__(self) -> str:
        return f"Filter({', '.join(c.value for c in self.enabled_categories)})"


__all__ = [
    "Category",
    "Filter",
    "DEFAULT_DISABLED",
]
