"""
Deletion ordering for the relationship map.

Depth-first post-order: an object is appended only after everything that
depends on it (child / inbound reference) has been appended. Objects are
marked visited before their dependents are explored and never unmarked, so a
cycle is cut at the node that closes it. The delete for one object in such a
cycle may then fail; that failure is recorded per record, not raised.
"""

from __future__ import annotations

from typing import Iterator, List, Set, Tuple

from vault.etl.models import Relationship, RelationshipMap


def _dependent_targets(name: str, relationship_map: RelationshipMap) -> Iterator[str]:
    relationships: List[Relationship] = relationship_map.get(name) or []
    return (r.target for r in relationships if r.is_dependent)


def visit(name: str, relationship_map: RelationshipMap, visited: Set[str], sorted_names: List[str]) -> None:
    """Sort `name` and everything below it into `sorted_names`."""
    if name in visited or name not in relationship_map:
        return
    visited.add(name)

    stack: List[Tuple[str, Iterator[str]]] = [(name, _dependent_targets(name, relationship_map))]
    while stack:
        current, pending = stack[-1]
        for target in pending:
            # Objects dropped during discovery have no entry and are skipped
            if target in visited or target not in relationship_map:
                continue
            visited.add(target)
            stack.append((target, _dependent_targets(target, relationship_map)))
            break
        else:
            stack.pop()
            sorted_names.append(current)


def topological_sort(relationship_map: RelationshipMap) -> List[str]:
    visited: Set[str] = set()
    sorted_names: List[str] = []
    for name in relationship_map:
        visit(name, relationship_map, visited, sorted_names)
    return sorted_names
