"""
Models - Inventory Entities.

============================================================
PURPOSE
============================================================
Typed records for resources returned by the platform API.

Entities never hold references to each other. Links
(application -> space -> organization) are GUIDs resolved
through the snapshot's per-category stores, so the object
graph has no cycles and every entity serializes on its own.

============================================================
RELATIONSHIP TRI-STATE
============================================================
ABSENT    the relationship name was never recorded
EMPTY     recorded, but without a target GUID
RESOLVED  recorded with a target GUID (the target may
          still be missing from the snapshot)

============================================================
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


# =============================================================
# RELATIONSHIPS
# =============================================================

class RelationshipState(str, Enum):
    """How an entity records a relationship."""
    ABSENT = "absent"
    EMPTY = "empty"
    RESOLVED = "resolved"


@dataclass(frozen=True)
class RelationshipRef:
    """A single to-one relationship of an entity."""
    name: str
    state: RelationshipState
    guid: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.state == RelationshipState.RESOLVED


def parse_relationships(data: Optional[Dict[str, Any]]) -> Dict[str, Optional[str]]:
    """
    Parse the ``relationships`` block of an API resource.

    A recorded relationship without a GUID maps to ``None``.
    To-many relationships (list payloads) are not kept.
    """
    relationships: Dict[str, Optional[str]] = {}

    for name, body in (data or {}).items():
        target = body.get("data") if isinstance(body, dict) else None
        if isinstance(target, list):
            continue
        if isinstance(target, dict) and target.get("guid"):
            relationships[name] = str(target["guid"])
        else:
            relationships[name] = None

    return relationships


# =============================================================
# METADATA
# =============================================================

@dataclass
class Metadata:
    """User-defined labels and annotations of a resource."""
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "Metadata":
        data = data or {}
        return cls(
            labels=_string_map(data.get("labels")),
            annotations=_string_map(data.get("annotations")),
        )

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {"labels": dict(self.labels), "annotations": dict(self.annotations)}


def _string_map(values: Optional[Dict[str, Any]]) -> Dict[str, str]:
    # null label values are reported by the API while a label is being removed
    return {str(k): "" if v is None else str(v) for k, v in (values or {}).items()}


# =============================================================
# ENTITIES
# =============================================================

@dataclass
class Resource:
    """
    Generic inventory resource.

    Used as-is for categories that need no dedicated type
    (domains, routes, buildpacks, ...).
    """
    guid: str
    name: str = ""
    metadata: Metadata = field(default_factory=Metadata)
    relationships: Dict[str, Optional[str]] = field(default_factory=dict)
    raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Resource":
        """
        Build a resource from a v3 API document.

        Raises:
            ValueError: If the document carries no GUID
        """
        guid = data.get("guid")
        if not guid:
            raise ValueError(f"{cls.__name__} document without guid")

        return cls(
            guid=str(guid),
            name=str(data.get("name") or data.get("username") or ""),
            metadata=Metadata.from_api(data.get("metadata")),
            relationships=parse_relationships(data.get("relationships")),
            raw=data,
        )

    @property
    def labels(self) -> Dict[str, str]:
        return self.metadata.labels

    def relationship(self, name: str) -> RelationshipRef:
        """Resolve a relationship name to its tri-state reference."""
        if name not in self.relationships:
            return RelationshipRef(name=name, state=RelationshipState.ABSENT)

        guid = self.relationships[name]
        if guid is None:
            return RelationshipRef(name=name, state=RelationshipState.EMPTY)

        return RelationshipRef(name=name, state=RelationshipState.RESOLVED, guid=guid)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "guid": self.guid,
            "name": self.name,
            "metadata": self.metadata.to_dict(),
            "relationships": dict(self.relationships),
        }


@dataclass
class Organization(Resource):
    """Top level tenant."""


@dataclass
class Space(Resource):
    """Deployment space, child of an organization."""

    @property
    def organization(self) -> RelationshipRef:
        return self.relationship("organization")


@dataclass
class Application(Resource):
    """Application, child of a space."""
    state: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Application":
        app = super().from_api(data)
        app.state = str(data.get("state") or "")
        return app

    @property
    def space(self) -> RelationshipRef:
        return self.relationship("space")

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["state"] = self.state
        return result


@dataclass
class Task(Resource):
    """One-off task run inside an application."""
    state: str = ""

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Task":
        task = super().from_api(data)
        task.state = str(data.get("state") or "")
        return task

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["state"] = self.state
        return result


__all__ = [
    "RelationshipState",
    "RelationshipRef",
    "parse_relationships",
    "Metadata",
    "Resource",
    "Organization",
    "Space",
    "Application",
    "Task",
]
