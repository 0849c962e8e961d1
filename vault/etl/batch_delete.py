"""
Bulk deletion in fixed-size batches with per-record outcome reconciliation.

The bulk API answers each batch either with a top-level error (nothing in
the batch was processed) or with one status per input record, in input order.
Row i of batch k therefore belongs to records[BATCH_SIZE * k + i].
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from vault.client.api import DOCUMENTS_TARGET, BulkDeleteResponse, VaultApiError
from vault.core.logging import get_logger
from vault.etl.models import DeletionOutcome

logger = get_logger(__name__)

BATCH_SIZE = 500

OBJECTS_DATA_TYPE = "OBJECTS"
DOCUMENTS_DATA_TYPE = "DOCUMENTS"

OutcomeSink = Callable[[List[DeletionOutcome]], None]


def partition(records: Sequence[Dict[str, Any]], size: int = BATCH_SIZE) -> List[Sequence[Dict[str, Any]]]:
    return [records[i:i + size] for i in range(0, len(records), size)]


def reconcile(
    response: BulkDeleteResponse,
    records: Sequence[Dict[str, Any]],
    start_index: int,
    action: str,
    data_type: str,
    name: str,
) -> List[DeletionOutcome]:
    """Map one batch response back onto the records it was built from."""
    if response.errors:
        for error in response.errors:
            logger.error("Bulk delete rejected for %s: %s", name, error.message)
        return []

    outcomes: List[DeletionOutcome] = []
    for offset, result in enumerate(response.results):
        index = start_index + offset
        if index >= len(records):
            logger.warning("Bulk delete for %s returned more rows than were sent", name)
            break
        outcomes.append(
            DeletionOutcome(
                action=action,
                data_type=data_type,
                name=name,
                id=str(records[index].get("id")),
                status=result.status,
                error_message=result.error_message,
            )
        )
    return outcomes


def delete_records(
    client,
    target: str,
    name: str,
    records: Sequence[Dict[str, Any]],
    action: str = "DELETE",
    sink: Optional[OutcomeSink] = None,
    batch_size: int = BATCH_SIZE,
) -> List[DeletionOutcome]:
    """
    Delete `records` of `name` in batches and return one outcome per record
    the API answered for.

    `target` is "documents" or the object name. `sink`, when given, receives
    each batch's outcomes as soon as the batch completes.
    """
    if not records:
        return []

    data_type = DOCUMENTS_DATA_TYPE if target.lower() == DOCUMENTS_TARGET else OBJECTS_DATA_TYPE
    outcomes: List[DeletionOutcome] = []

    start_index = 0
    for batch in partition(records, batch_size):
        try:
            response = client.bulk_delete(target, list(batch))
        except (VaultApiError, requests.RequestException) as e:
            logger.error("Bulk delete call failed for %s (records %d-%d): %s",
                         name, start_index, start_index + len(batch) - 1, e)
            response = None

        if response is not None:
            batch_outcomes = reconcile(response, records, start_index, action, data_type, name)
            outcomes.extend(batch_outcomes)
            if sink is not None and batch_outcomes:
                sink(batch_outcomes)

        start_index += len(batch)

    failed = sum(1 for o in outcomes if o.status != "SUCCESS")
    logger.info("%s: %d record(s) processed, %d failed", name, len(outcomes), failed)
    return outcomes
