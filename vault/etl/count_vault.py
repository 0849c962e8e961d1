"""
Read-only record counts per object and document versions per document type.
One CSV per data type; rows are flushed as each type is counted.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import requests

from vault.client.api import VaultApiError
from vault.core.logging import get_logger
from vault.core.options import DataToolOptions
from vault.etl.graph import select_object_types
from vault.etl.models import ScopeMap
from vault.etl.query import count_records, quote_value
from vault.io.audit import COUNT_DOCUMENTS_HEADER, COUNT_OBJECTS_HEADER, AuditWriter, format_file_name
from vault.io.manifest import read_manifest

logger = get_logger(__name__)

OBJECTS_FILE_NAME = "count-objects-output.csv"
DOCUMENTS_FILE_NAME = "count-documents-output.csv"


class CountVaultData:
    def __init__(self, client, options: DataToolOptions, output_dir: str = ".") -> None:
        self.client = client
        self.options = options
        self.output_dir = Path(output_dir)
        self.scopes: Optional[ScopeMap] = None

    def run(self) -> List[Path]:
        if self.options.input_path is not None:
            self.scopes = read_manifest(self.options.input_path)

        output_files: List[Path] = []
        if self.options.include_objects:
            output_files.append(self.count_objects())
        if self.options.include_documents:
            output_files.append(self.count_documents())

        for path in output_files:
            logger.info("Review %s for full details", path)
        return output_files

    def count_objects(self) -> Path:
        output_path = self.output_dir / format_file_name(OBJECTS_FILE_NAME)
        with AuditWriter(output_path, COUNT_OBJECTS_HEADER) as out:
            try:
                collection = self.client.retrieve_object_collection()
            except (VaultApiError, requests.RequestException) as e:
                logger.error("Could not retrieve the object collection: %s", e)
                return output_path

            for name in select_object_types(collection, self.options, self.scopes):
                total = count_records(self.client, f"SELECT id FROM {name}")
                if total is None:
                    continue
                try:
                    system_managed = self.client.fetch_entity_metadata(name).system_managed
                except (VaultApiError, requests.RequestException) as e:
                    logger.warning("Could not retrieve metadata for %s: %s", name, e)
                    system_managed = ""
                out.write_rows([[name, "OBJECT", total, str(system_managed).lower()]])
                logger.info("%s: %d record(s)", name, total)
        return output_path

    def count_documents(self) -> Path:
        output_path = self.output_dir / format_file_name(DOCUMENTS_FILE_NAME)
        with AuditWriter(output_path, COUNT_DOCUMENTS_HEADER) as out:
            try:
                doc_types = self.client.retrieve_document_types()
            except (VaultApiError, requests.RequestException) as e:
                logger.error("Could not retrieve document types: %s", e)
                return output_path

            for doc_type in doc_types:
                name = doc_type.get("name")
                if self.scopes is not None and name not in self.scopes:
                    continue
                label = doc_type.get("label") or name
                total = count_records(
                    self.client,
                    f"SELECT id FROM ALLVERSIONS documents WHERE type__v = {quote_value(label)}",
                )
                if total is None:
                    continue
                out.write_rows([[name, "DOCUMENT", total]])
                logger.info("%s: %d document version(s)", name, total)
        return output_path
