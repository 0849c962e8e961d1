import re
from collections import Counter
from typing import Any, Dict, List, Optional

import pytest

from vault.client.api import ApiError, BulkDeleteResponse, QueryPage, RecordResult, VaultApiError
from vault.etl.models import EntityType, Relationship

QUERY_RE = re.compile(
    r"^SELECT id FROM (?:(?P<allversions>ALLVERSIONS) )?(?P<name>\w+)"
    r"(?: WHERE (?P<where>.*?))?(?P<count> PAGESIZE 0)?$"
)
CONTAINS_RE = re.compile(r"(\w+) CONTAINS \(([^)]*)\)")
TYPE_RE = re.compile(r"type__v = '([^']*)'")


def _values(raw: str) -> List[str]:
    return [v.strip().strip("'") for v in raw.split(",") if v.strip()]


class FakeVaultClient:
    """
    In-memory stand-in for VaultClient. Understands the VQL the tools emit:
    `SELECT id FROM x [WHERE f CONTAINS (...) OR ...] [PAGESIZE 0]` and the
    documents `type__v = '...'` filter.
    """

    def __init__(self, page_size: int = 1000) -> None:
        self.page_size = page_size
        self.collection: List[Dict[str, Any]] = []
        self.entities: Dict[str, EntityType] = {}
        self.records: Dict[str, List[Dict[str, Any]]] = {}
        self.document_types: List[Dict[str, Any]] = []
        self.documents: Dict[str, List[Dict[str, Any]]] = {}
        self.metadata_failures: set = set()
        self.record_failures: Dict[str, List[ApiError]] = {}
        self.rejected_calls: set = set()
        self.failing_pages: set = set()

        self.metadata_calls: Counter = Counter()
        self.queries: List[str] = []
        self.delete_calls: List[Dict[str, Any]] = []
        self._cursors: Dict[str, List[Dict[str, Any]]] = {}

    # --- setup helpers ---

    def add_object(
        self,
        name: str,
        relationships: Optional[List[Relationship]] = None,
        records: Optional[List[Dict[str, Any]]] = None,
        source: str = "custom",
        object_class: str = "base",
        system_managed: bool = False,
        listed: bool = True,
    ) -> None:
        self.entities[name] = EntityType(
            name=name,
            object_class=object_class,
            system_managed=system_managed,
            relationships=tuple(relationships or []),
        )
        self.records[name] = list(records or [])
        if listed:
            self.collection.append({"name": name, "source": source})

    def add_document_type(self, name: str, label: str, documents: List[Dict[str, Any]]) -> None:
        self.document_types.append({"name": name, "label": label})
        self.documents[label] = list(documents)

    # --- client interface ---

    def retrieve_object_collection(self) -> List[Dict[str, Any]]:
        return list(self.collection)

    def retrieve_document_types(self) -> List[Dict[str, Any]]:
        return list(self.document_types)

    def fetch_entity_metadata(self, name: str) -> EntityType:
        self.metadata_calls[name] += 1
        if name in self.metadata_failures or name not in self.entities:
            raise VaultApiError(f"Failed to retrieve metadata for {name}")
        return self.entities[name]

    def _match(self, vql: str) -> List[Dict[str, Any]]:
        m = QUERY_RE.match(vql)
        if not m:
            raise AssertionError(f"Unexpected VQL: {vql}")
        name, where = m.group("name"), m.group("where")
        if name == "documents":
            label = TYPE_RE.search(where).group(1)
            return list(self.documents.get(label, []))
        rows = self.records.get(name, [])
        if not where:
            return list(rows)
        clauses = [(f, set(_values(v))) for f, v in CONTAINS_RE.findall(where)]
        return [r for r in rows if any(str(r.get(f)) in values for f, values in clauses)]

    def _page(self, rows: List[Dict[str, Any]], offset: int) -> QueryPage:
        chunk = rows[offset:offset + self.page_size]
        next_page = None
        if offset + self.page_size < len(rows):
            next_page = f"/api/v23.2/query/cursor{len(self._cursors)}?pageoffset={offset + self.page_size}"
            self._cursors[next_page] = rows
        return QueryPage(records=chunk, next_page=next_page, total=len(rows))

    def run_query(self, vql: str) -> QueryPage:
        self.queries.append(vql)
        rows = self._match(vql)
        if vql.endswith("PAGESIZE 0"):
            return QueryPage(records=[], total=len(rows))
        return self._page(rows, 0)

    def run_query_page(self, next_page: str) -> QueryPage:
        if next_page in self.failing_pages:
            return QueryPage(errors=[ApiError("INVALID_DATA", "page expired")])
        rows = self._cursors[next_page]
        offset = int(next_page.rsplit("=", 1)[1])
        return self._page(rows, offset)

    def bulk_delete(self, target: str, records: List[Dict[str, Any]]) -> BulkDeleteResponse:
        call_index = len(self.delete_calls)
        self.delete_calls.append({"target": target, "ids": [r["id"] for r in records]})
        if call_index in self.rejected_calls:
            return BulkDeleteResponse(errors=[ApiError("OPERATION_NOT_ALLOWED", "batch rejected")])

        results = []
        for record in records:
            errors = self.record_failures.get(str(record["id"]))
            if errors:
                results.append(RecordResult(status="FAILURE", errors=list(errors)))
                continue
            results.append(RecordResult(status="SUCCESS"))
            self._remove(target, record["id"])
        return BulkDeleteResponse(results=results)

    def _remove(self, target: str, record_id: Any) -> None:
        pools = self.documents.values() if target == "documents" else [self.records.get(target, [])]
        for pool in pools:
            pool[:] = [r for r in pool if r["id"] != record_id]

    @property
    def deleted_targets(self) -> List[str]:
        order: List[str] = []
        for call in self.delete_calls:
            if not order or order[-1] != call["target"]:
                order.append(call["target"])
        return order


@pytest.fixture
def fake_client() -> FakeVaultClient:
    return FakeVaultClient()


def child(target: str, field: str = None) -> Relationship:
    return Relationship(kind="child", target=target, field=field)


def parent(target: str, field: str) -> Relationship:
    return Relationship(kind="parent", target=target, field=field)


def inbound(target: str, field: str = None) -> Relationship:
    return Relationship(kind="reference_inbound", target=target, field=field)


def outbound(target: str, field: str) -> Relationship:
    return Relationship(kind="reference_outbound", target=target, field=field)
