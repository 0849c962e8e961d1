"""
Relationship graph discovery.

Starting from a set of object names, fetch each object's metadata and follow
child / inbound-reference edges until every reachable object is known. The
result is a plain name -> relationships mapping; cycles are fine because an
object is fetched at most once.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

import requests

from vault.client.api import VaultApiError
from vault.core.logging import get_logger
from vault.core.options import DataToolOptions
from vault.etl.models import EntityType, Relationship, RelationshipMap, ScopeMap

logger = get_logger(__name__)


def select_object_types(
    collection: Iterable[Dict[str, Any]],
    options: DataToolOptions,
    scopes: Optional[ScopeMap] = None,
) -> List[str]:
    """
    Names from the object collection that are in the manifest (when one was
    given) and whose source is not excluded.
    """
    selected: List[str] = []
    for obj in collection:
        name = obj.get("name")
        if not name:
            continue
        if scopes is not None and name not in scopes:
            continue
        if options.is_excluded(obj.get("source")):
            logger.debug("Excluding %s (source=%s)", name, obj.get("source"))
            continue
        selected.append(name)
    return selected


def _dependents(entity: EntityType) -> Iterator[Relationship]:
    return (r for r in entity.relationships if r.is_dependent and r.target)


class RelationshipGraphBuilder:
    """
    Memoizes metadata per object name; one builder can serve several
    `build` calls within a run without refetching.
    """

    def __init__(self, client, metadata_cache: Optional[Dict[str, EntityType]] = None) -> None:
        self.client = client
        self.metadata_cache: Dict[str, EntityType] = metadata_cache if metadata_cache is not None else {}

    def fetch(self, name: str) -> Optional[EntityType]:
        if name in self.metadata_cache:
            return self.metadata_cache[name]
        try:
            entity = self.client.fetch_entity_metadata(name)
        except (VaultApiError, requests.RequestException) as e:
            logger.warning("Skipping %s: could not retrieve metadata (%s)", name, e)
            return None
        self.metadata_cache[name] = entity
        return entity

    def build(self, names: Iterable[str]) -> RelationshipMap:
        relationship_map: RelationshipMap = {}
        visited = set()

        for name in names:
            if name in visited:
                continue
            visited.add(name)

            entity = self.fetch(name)
            if entity is None or entity.is_component:
                continue
            relationship_map[name] = list(entity.relationships)

            # Depth-first over dependents, one iterator per open object
            stack: List[Tuple[EntityType, Iterator[Relationship]]] = [(entity, _dependents(entity))]
            while stack:
                _, pending = stack[-1]
                for relationship in pending:
                    target = relationship.target
                    if target in visited:
                        continue
                    visited.add(target)

                    child = self.fetch(target)
                    if child is None or child.is_component:
                        continue
                    relationship_map[target] = list(child.relationships)
                    stack.append((child, _dependents(child)))
                    break
                else:
                    stack.pop()

        logger.info("Discovered %d object(s) to process", len(relationship_map))
        return relationship_map


def build_relationship_map(
    client,
    names: Iterable[str],
    metadata_cache: Optional[Dict[str, EntityType]] = None,
) -> RelationshipMap:
    return RelationshipGraphBuilder(client, metadata_cache).build(names)
