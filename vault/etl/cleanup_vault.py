"""
WARNING: This deletes large amounts of Vault data. Sandbox Vaults only.

It:
- Discovers every object reachable from the selected ones
- Orders them so dependents are deleted before what they depend on
- Shows you what will be deleted and asks for confirmation
- Deletes in batches of 500 and writes one audit row per record
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Optional

import requests

from vault.client.api import DOCUMENTS_TARGET, VaultApiError
from vault.core.logging import get_logger
from vault.core.options import DataToolOptions, DataType
from vault.etl.batch_delete import delete_records
from vault.etl.graph import build_relationship_map, select_object_types
from vault.etl.models import ScopeMap
from vault.etl.query import gather_object_records, iter_query_pages, quote_value
from vault.etl.sort import topological_sort
from vault.io.audit import DELETE_HEADER, AuditWriter, format_file_name
from vault.io.manifest import read_manifest

logger = get_logger(__name__)

OUTPUT_FILE_NAME = "delete-data-output.csv"
BANNER = "-" * 85

Confirm = Callable[[str], bool]


def console_confirm(prompt: str) -> bool:
    try:
        answer = input(prompt)
    except EOFError:
        print()
        return False
    return answer.strip().upper() in ("Y", "YES")


class DeleteVaultData:
    def __init__(
        self,
        client,
        options: DataToolOptions,
        confirm: Confirm = console_confirm,
        output_dir: str = ".",
    ) -> None:
        self.client = client
        self.options = options
        self.confirm = confirm
        self.output_dir = Path(output_dir)
        self.scopes: Optional[ScopeMap] = None
        self.audit: Optional[AuditWriter] = None

    def run(self) -> Optional[Path]:
        """
        Returns the audit file path, or None when the user declined.
        Raises ConfigurationError before anything is deleted if the manifest
        cannot be loaded.
        """
        if self.options.input_path is not None:
            self.scopes = read_manifest(self.options.input_path)

        if not self.confirm_data_deletion():
            print("Aborted.")
            return None

        output_path = self.output_dir / format_file_name(OUTPUT_FILE_NAME)
        with AuditWriter(output_path, DELETE_HEADER) as audit:
            self.audit = audit
            if self.options.include_objects:
                self.delete_objects()
            if self.options.include_documents:
                self.delete_documents()
            self.audit = None

        logger.info("Review %s for full details", output_path)
        return output_path

    def confirm_data_deletion(self) -> bool:
        data_type = self.options.data_type
        if self.scopes:
            selected = f"Selected data to delete (via input file): {sorted(self.scopes)}"
        elif data_type == DataType.ALL:
            selected = "Selected data to delete: ALL OBJECTS & DOCUMENTS"
        else:
            selected = f"Selected data to delete: ALL {data_type.value}"

        # Printed rather than logged so the prompt can't be filtered out
        print(BANNER)
        print(f"Selected action: {self.options.action.value}")
        print(f"Selected data type: {data_type.value}")
        print(selected)
        if data_type != DataType.DOCUMENTS:
            excluded = [e.value for e in self.options.excludes] or "NONE"
            print(f"Excluded Object sources: {excluded}")
        print()
        print("You are about to permanently delete this data from your Vault.")
        print("THIS CANNOT BE UNDONE.")
        print()
        print(BANNER)
        return self.confirm("Do you wish to proceed? (Y/N) ")

    def _write(self, outcomes) -> None:
        if self.audit is not None:
            self.audit.write_outcomes(outcomes)

    def delete_objects(self) -> None:
        try:
            collection = self.client.retrieve_object_collection()
        except (VaultApiError, requests.RequestException) as e:
            logger.error("Could not retrieve the object collection: %s", e)
            return
        names = select_object_types(collection, self.options, self.scopes)

        relationship_map = build_relationship_map(self.client, names)
        sorted_names = topological_sort(relationship_map)
        logger.info("Deletion order: %s", sorted_names)

        to_delete = gather_object_records(self.client, sorted_names, relationship_map, self.scopes)

        for name in sorted_names:
            records = to_delete.get(name)
            if records:
                logger.info("Deleting %d %s record(s)...", len(records), name)
                delete_records(
                    self.client,
                    name,
                    name,
                    records,
                    action=self.options.action.value,
                    sink=self._write,
                )

    def delete_documents(self) -> None:
        try:
            doc_types = self.client.retrieve_document_types()
        except (VaultApiError, requests.RequestException) as e:
            logger.error("Could not retrieve document types: %s", e)
            return

        for doc_type in doc_types:
            name = doc_type.get("name")
            if self.scopes is not None and name not in self.scopes:
                continue

            label = doc_type.get("label") or name
            vql = f"SELECT id FROM documents WHERE type__v = {quote_value(label)}"
            logger.info("Deleting %s documents...", name)

            # Delete each page as it arrives
            for page in iter_query_pages(self.client, vql):
                delete_records(
                    self.client,
                    DOCUMENTS_TARGET,
                    name,
                    page,
                    action=self.options.action.value,
                    sink=self._write,
                )
