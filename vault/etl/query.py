"""
VQL building and pagination.

Object queries are built in reverse deletion order so that, by the time an
object is queried, every object it points at (parent / outbound reference)
already has its ids resolved and can scope this object's WHERE clause.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, List, Optional

import requests

from vault.client.api import VaultApiError
from vault.core.logging import get_logger
from vault.etl.models import RelationshipMap, ResolvedIds, ScopeMap

logger = get_logger(__name__)


def quote_value(value: Any) -> str:
    text = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{text}'"


def contains_clause(field: str, values: Iterable[Any]) -> str:
    return f"{field} CONTAINS ({','.join(quote_value(v) for v in values)})"


def build_object_query(
    name: str,
    relationship_map: RelationshipMap,
    resolved: ResolvedIds,
    scopes: Optional[ScopeMap] = None,
) -> str:
    """
    Build the VQL selecting the ids of `name` that should be deleted.

    Returns "" when a manifest was given, `name` is not in it, and none of the
    objects it points at contributed ids: there is nothing to delete narrowly.
    """
    query = f"SELECT id FROM {name}"

    # No manifest: every record of every selected object
    if scopes is None:
        return query

    clauses: List[str] = []
    scope = scopes.get(name)
    if scope is not None:
        # Bare marker: whole object in scope, no dependency narrowing
        if not scope.has_values:
            return query
        clauses.append(contains_clause(scope.field, scope.values))

    for relationship in relationship_map.get(name) or []:
        if not relationship.is_dependency or not relationship.field:
            continue
        ids = [row["id"] for row in resolved.get(relationship.target) or [] if row.get("id") is not None]
        if ids:
            clauses.append(contains_clause(relationship.field, ids))

    if not clauses:
        return ""
    # Manifest values and dependency ids are unioned
    return f"{query} WHERE {' OR '.join(clauses)}"


def iter_query_pages(client, vql: str) -> Iterator[List[Dict[str, Any]]]:
    """
    Yield each page of rows for `vql`, following `next_page` until the
    cursor runs out. A failed page ends the iteration; pages already yielded
    stand. Nothing is retried.
    """
    try:
        page = client.run_query(vql)
    except (VaultApiError, requests.RequestException) as e:
        logger.error("Query failed [%s]: %s", vql, e)
        return

    if not page.succeeded:
        for error in page.errors:
            logger.error("Query failed [%s]: %s", vql, error)
        return
    if not page.records:
        return
    yield page.records

    while page.has_more:
        try:
            page = client.run_query_page(page.next_page)
        except (VaultApiError, requests.RequestException) as e:
            logger.error("Query page failed [%s]: %s", vql, e)
            return
        if not page.succeeded:
            for error in page.errors:
                logger.error("Query page failed [%s]: %s", vql, error)
            return
        yield page.records


def fetch_all_records(client, vql: str) -> List[Dict[str, Any]]:
    records: List[Dict[str, Any]] = []
    for rows in iter_query_pages(client, vql):
        records.extend(rows)
    return records


def count_records(client, vql: str) -> Optional[int]:
    """Total matches for `vql` without materializing rows (`PAGESIZE 0`)."""
    try:
        page = client.run_query(f"{vql} PAGESIZE 0")
    except (VaultApiError, requests.RequestException) as e:
        logger.error("Count query failed [%s]: %s", vql, e)
        return None
    if not page.succeeded:
        for error in page.errors:
            logger.error("Count query failed [%s]: %s", vql, error)
        return None
    return page.total if page.total is not None else len(page.records)


def gather_object_records(
    client,
    sorted_names: List[str],
    relationship_map: RelationshipMap,
    scopes: Optional[ScopeMap] = None,
) -> ResolvedIds:
    """
    Query every object in reverse deletion order and collect the rows to
    delete. Objects with no query or no matches are left out.
    """
    resolved: ResolvedIds = {}
    for name in reversed(sorted_names):
        vql = build_object_query(name, relationship_map, resolved, scopes)
        if not vql:
            logger.debug("Skipping %s: nothing in scope", name)
            continue
        records = fetch_all_records(client, vql)
        if records:
            logger.info("%s: %d record(s) selected for deletion", name, len(records))
            resolved[name] = records
    return resolved
