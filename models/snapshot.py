"""
Models - Inventory Snapshot.

============================================================
PURPOSE
============================================================
In-memory object graph produced by one scrape cycle.

- One CategoryStore per fetched category
- Ordered iteration and GUID lookup over the same data
- Scrape outcome bookkeeping (errors, task outcomes, timing)

============================================================
THREAD SAFETY
============================================================
Fetch tasks of different categories write concurrently.
Each store serializes its own inserts; the snapshot
serializes store creation. Locks are only held for the
duration of a single insert, never across a remote call.

============================================================
LIFECYCLE
============================================================
1. Fresh snapshot created at the start of a scrape
2. Populated exclusively by fetch tasks
3. Read-only once handed to collectors
4. Discarded after rendering

============================================================
"""

import threading
from types import MappingProxyType
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    TypeVar,
)

from .entities import Application, Organization, Resource, Space


T = TypeVar("T", bound=Resource)


# =============================================================
# CATEGORY STORE
# =============================================================

class CategoryStore(Generic[T]):
    """
    Entities of one category, ordered and indexed by GUID.

    Backed by a single insertion-ordered dict, so the ordered
    view and the index can never disagree. Re-inserting a
    GUID replaces the entity and keeps its position.
    """

    def __init__(self, category: str, entities: Optional[Iterable[T]] = None) -> None:
        self.category = category
        self._entities: Dict[str, T] = {}
        self._lock = threading.Lock()

        if entities:
            self.extend(entities)

    def add(self, entity: T) -> None:
        """Insert or replace one entity."""
        with self._lock:
            self._entities[entity.guid] = entity

    def extend(self, entities: Iterable[T]) -> None:
        """Insert entities one at a time."""
        for entity in entities:
            self.add(entity)

    def get(self, guid: Optional[str]) -> Optional[T]:
        """Look up an entity by GUID."""
        if guid is None:
            return None
        return self._entities.get(guid)

    @property
    def index(self) -> Mapping[str, T]:
        """Read-only GUID index."""
        return MappingProxyType(self._entities)

    @property
    def items(self) -> List[T]:
        """Entities in insertion order."""
        return list(self._entities.values())

    def __contains__(self, guid: object) -> bool:
        return guid in self._entities

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self._entities)

    def __repr__(self) -> str:
        return f"CategoryStore({self.category!r}, size={len(self)})"


# =============================================================
# SNAPSHOT
# =============================================================

class CFObjects:
    """
    Snapshot of the platform inventory for one scrape.

    Categories whose fetch failed, was skipped or aborted are
    absent; category() hands out an empty store for them so
    readers can treat absent as empty.
    """

    def __init__(self) -> None:
        self._stores: Dict[str, CategoryStore] = {}
        self._lock = threading.Lock()

        self.info: Dict[str, Any] = {}
        self.error: Optional[BaseException] = None
        self.fetch_error: Optional[BaseException] = None
        self.outcomes: Dict[str, Any] = {}
        self.took: float = 0.0

    # ---------------------------------------------------------
    # Writes (fetch tasks only)
    # ---------------------------------------------------------

    def store(self, category: str) -> CategoryStore:
        """Get or create the store of a category."""
        with self._lock:
            store = self._stores.get(category)
            if store is None:
                store = CategoryStore(category)
                self._stores[category] = store
            return store

    def insert(self, category: str, entities: Iterable[Resource]) -> int:
        """
        Insert entities into a category store.

        Returns:
            Number of entities inserted
        """
        store = self.store(category)
        count = 0
        for entity in entities:
            store.add(entity)
            count += 1
        return count

    # ---------------------------------------------------------
    # Reads
    # ---------------------------------------------------------

    def has(self, category: str) -> bool:
        """Check whether a category was populated."""
        return category in self._stores

    def category(self, category: str) -> CategoryStore:
        """Store of a category, empty if the category is absent."""
        store = self._stores.get(category)
        if store is None:
            return CategoryStore(category)
        return store

    @property
    def categories(self) -> List[str]:
        return sorted(self._stores)

    @property
    def organizations(self) -> CategoryStore[Organization]:
        return self.category("organizations")

    @property
    def spaces(self) -> CategoryStore[Space]:
        return self.category("spaces")

    @property
    def applications(self) -> CategoryStore[Application]:
        return self.category("applications")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the snapshot for debugging."""
        return {
            "info": dict(self.info),
            "took": self.took,
            "error": str(self.error) if self.error else None,
            "fetch_error": str(self.fetch_error) if self.fetch_error else None,
            "outcomes": {
                name: outcome.to_dict() if hasattr(outcome, "to_dict") else str(outcome)
                for name, outcome in self.outcomes.items()
            },
            "categories": {
                name: [entity.to_dict() for entity in store]
                for name, store in sorted(self._stores.items())
            },
        }


__all__ = [
    "CategoryStore",
    "CFObjects",
]
