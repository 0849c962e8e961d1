"""
Plain data types shared by the graph builder, sorter, query builder and
batch deleter. Everything is keyed by type name, never by object identity.
"""

from __future__ import annotations

from dataclasses import dataclass, field as dataclass_field
from typing import Any, Dict, List, Optional, Tuple

CHILD = "child"
PARENT = "parent"
REFERENCE_INBOUND = "reference_inbound"
REFERENCE_OUTBOUND = "reference_outbound"

# Target must be deleted before the owner
DEPENDENT_KINDS = frozenset({CHILD, REFERENCE_INBOUND})
# Owner must be deleted before the target
DEPENDENCY_KINDS = frozenset({PARENT, REFERENCE_OUTBOUND})

COMPONENT_CLASS = "component"


@dataclass(frozen=True)
class Relationship:
    kind: str
    target: str
    field: Optional[str] = None

    @property
    def is_dependent(self) -> bool:
        return self.kind in DEPENDENT_KINDS

    @property
    def is_dependency(self) -> bool:
        return self.kind in DEPENDENCY_KINDS

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "Relationship":
        """
        Build from one entry of an object metadata `relationships` list:
          {"relationship_name": "...", "relationship_type": "child",
           "field": "...", "object": {"name": "...", "url": "..."}}
        """
        target = raw.get("object") or {}
        if isinstance(target, dict):
            target_name = target.get("name")
        else:
            target_name = target
        return cls(
            kind=(raw.get("relationship_type") or "").lower(),
            target=target_name or "",
            field=raw.get("field"),
        )


@dataclass(frozen=True)
class EntityType:
    name: str
    object_class: Optional[str] = None
    system_managed: bool = False
    relationships: Tuple[Relationship, ...] = ()

    @property
    def is_component(self) -> bool:
        return (self.object_class or "").lower() == COMPONENT_CLASS

    @classmethod
    def from_api(cls, raw: Dict[str, Any]) -> "EntityType":
        relationships = tuple(
            Relationship.from_api(r) for r in (raw.get("relationships") or [])
        )
        return cls(
            name=raw.get("name", ""),
            object_class=raw.get("object_class"),
            system_managed=bool(raw.get("system_managed", False)),
            relationships=relationships,
        )


@dataclass(frozen=True)
class IdentifierScope:
    """
    Restriction loaded from the input manifest: a field and literal values.
    A scope without a field or without values means "whole type".
    """

    field: Optional[str] = None
    values: List[str] = dataclass_field(default_factory=list)

    @property
    def has_values(self) -> bool:
        return bool(self.field) and bool(self.values)


@dataclass(frozen=True)
class DeletionOutcome:
    action: str
    data_type: str
    name: str
    id: str
    status: str
    error_message: str = ""

    def as_row(self) -> List[str]:
        return [self.action, self.data_type, self.name, self.id, self.status, self.error_message]


RelationshipMap = Dict[str, List[Relationship]]
ResolvedIds = Dict[str, List[Dict[str, Any]]]
ScopeMap = Dict[str, IdentifierScope]
