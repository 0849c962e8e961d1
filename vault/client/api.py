"""
Thin Vault REST client over requests.

Every method is a single blocking round trip. Query and bulk-delete calls
hand FAILURE responses back as data so callers can decide how far a failure
spreads; metadata and auth calls raise VaultApiError instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from vault.core.config import get_settings
from vault.core.logging import get_logger
from vault.etl.models import EntityType

logger = get_logger(__name__)

SUCCESS = "SUCCESS"
FAILURE = "FAILURE"
DOCUMENTS_TARGET = "documents"


@dataclass(frozen=True)
class ApiError:
    type: str
    message: str

    def __str__(self) -> str:
        return f"{self.type} : {self.message}"


def _parse_errors(payload: Dict[str, Any]) -> List[ApiError]:
    return [
        ApiError(type=str(e.get("type", "")), message=str(e.get("message", "")))
        for e in (payload.get("errors") or [])
    ]


class VaultApiError(Exception):
    def __init__(self, message: str, errors: Optional[List[ApiError]] = None) -> None:
        self.errors = errors or []
        detail = " | ".join(str(e) for e in self.errors)
        super().__init__(f"{message}: {detail}" if detail else message)


@dataclass(frozen=True)
class QueryPage:
    records: List[Dict[str, Any]] = field(default_factory=list)
    next_page: Optional[str] = None
    total: Optional[int] = None
    errors: List[ApiError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    @property
    def has_more(self) -> bool:
        return bool(self.next_page)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "QueryPage":
        details = payload.get("responseDetails") or {}
        errors = _parse_errors(payload)
        if payload.get("responseStatus") == FAILURE and not errors:
            errors = [ApiError(type="FAILURE", message="query failed")]
        total = details.get("total")
        return cls(
            records=list(payload.get("data") or []),
            next_page=details.get("next_page"),
            total=int(total) if total is not None else None,
            errors=errors,
        )


@dataclass(frozen=True)
class RecordResult:
    status: str
    errors: List[ApiError] = field(default_factory=list)

    @property
    def error_message(self) -> str:
        return " | ".join(str(e) for e in self.errors)


@dataclass(frozen=True)
class BulkDeleteResponse:
    """
    `errors` set means the whole call was rejected and `results` is empty.
    Otherwise `results[i]` is the outcome of input record i.
    """

    results: List[RecordResult] = field(default_factory=list)
    errors: List[ApiError] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "BulkDeleteResponse":
        errors = _parse_errors(payload)
        if payload.get("responseStatus") == FAILURE and not errors and not payload.get("data"):
            errors = [ApiError(type="FAILURE", message="bulk delete failed")]
        if errors:
            return cls(results=[], errors=errors)
        results = [
            RecordResult(
                status=str(row.get("responseStatus", "")),
                errors=_parse_errors(row),
            )
            for row in (payload.get("data") or [])
        ]
        return cls(results=results, errors=[])


class VaultClient:
    """
    Authenticated handle on one Vault. Pass it explicitly to every component;
    there is no process-wide session.
    """

    def __init__(
        self,
        vault_dns: str,
        session_id: str,
        api_version: Optional[str] = None,
        client_id: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        settings = get_settings()
        self.vault_dns = _normalize_dns(vault_dns)
        self.api_version = api_version or settings.api_version
        self.timeout = timeout if timeout is not None else settings.http_timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": session_id,
                "Accept": "application/json",
                "X-VaultAPI-ClientID": client_id or settings.client_id,
            }
        )

    @classmethod
    def login(
        cls,
        vault_dns: str,
        username: str,
        password: str,
        api_version: Optional[str] = None,
        client_id: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> "VaultClient":
        """Authenticate with username/password and return a client bound to the new session."""
        settings = get_settings()
        version = api_version or settings.api_version
        http = session or requests.Session()
        url = f"https://{_normalize_dns(vault_dns)}/api/{version}/auth"
        resp = http.post(
            url,
            data={"username": username, "password": password},
            headers={
                "Accept": "application/json",
                "X-VaultAPI-ClientID": client_id or settings.client_id,
            },
            timeout=timeout if timeout is not None else settings.http_timeout,
        )
        resp.raise_for_status()
        payload = resp.json()
        session_id = payload.get("sessionId")
        if payload.get("responseStatus") != SUCCESS or not session_id:
            raise VaultApiError("Vault authentication failed", _parse_errors(payload))
        return cls(
            vault_dns,
            session_id,
            api_version=version,
            client_id=client_id,
            timeout=timeout,
            session=http,
        )

    # --- Transport ---

    def _url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        if path.startswith("/api/"):
            return f"https://{self.vault_dns}{path}"
        normalized = path if path.startswith("/") else f"/{path}"
        return f"https://{self.vault_dns}/api/{self.api_version}{normalized}"

    def _request(self, method: str, path: str, **kwargs: Any) -> Dict[str, Any]:
        url = self._url(path)
        logger.debug("%s %s", method, url)
        resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        resp.raise_for_status()
        return resp.json()

    def _get_successful(self, path: str, what: str) -> Dict[str, Any]:
        payload = self._request("GET", path)
        if payload.get("responseStatus") == FAILURE:
            raise VaultApiError(f"Failed to retrieve {what}", _parse_errors(payload))
        return payload

    # --- Metadata ---

    def retrieve_domain_type(self) -> str:
        payload = self._get_successful("/objects/domain", "domain information")
        return str((payload.get("domain") or {}).get("domain_type__v", ""))

    def retrieve_object_collection(self) -> List[Dict[str, Any]]:
        payload = self._get_successful("/metadata/vobjects", "object collection")
        return list(payload.get("objects") or [])

    def fetch_entity_metadata(self, name: str) -> EntityType:
        payload = self._get_successful(f"/metadata/vobjects/{name}", f"metadata for {name}")
        raw = payload.get("object")
        if not raw:
            raise VaultApiError(f"No metadata returned for {name}")
        return EntityType.from_api(raw)

    def retrieve_document_types(self) -> List[Dict[str, Any]]:
        payload = self._get_successful("/metadata/objects/documents/types", "document types")
        return list(payload.get("types") or [])

    # --- Query ---

    def run_query(self, vql: str) -> QueryPage:
        logger.debug("VQL: %s", vql)
        payload = self._request("POST", "/query", data={"q": vql})
        return QueryPage.from_api(payload)

    def run_query_page(self, next_page: str) -> QueryPage:
        payload = self._request("POST", next_page)
        return QueryPage.from_api(payload)

    # --- Bulk delete ---

    def bulk_delete(self, target: str, records: List[Dict[str, Any]]) -> BulkDeleteResponse:
        """
        Delete up to 500 records in one call. `target` is "documents" or an
        object name. The response preserves input order.
        """
        if target.lower() == DOCUMENTS_TARGET:
            path = "/objects/documents/batch"
        else:
            path = f"/vobjects/{target}"
        payload = self._request("DELETE", path, json=[{"id": r["id"]} for r in records])
        return BulkDeleteResponse.from_api(payload)


def _normalize_dns(vault_dns: str) -> str:
    dns = (vault_dns or "").strip()
    for prefix in ("https://", "http://"):
        if dns.startswith(prefix):
            dns = dns[len(prefix):]
    return dns.rstrip("/")
