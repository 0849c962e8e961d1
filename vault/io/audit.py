"""
Append-only CSV audit trail. Rows are flushed as they are written so partial
progress survives a crash mid-run.
"""

from __future__ import annotations

import csv
from datetime import datetime
from pathlib import Path
from typing import IO, Iterable, List, Optional, Sequence

from vault.etl.models import DeletionOutcome

DELETE_HEADER = ["action", "data_type", "name", "id", "status", "error_message"]
COUNT_OBJECTS_HEADER = ["name", "data_type", "record_count", "system_managed"]
COUNT_DOCUMENTS_HEADER = ["name", "data_type", "document_versions"]


def format_file_name(file_name: str, now: Optional[datetime] = None) -> str:
    return f"{(now or datetime.now()).strftime('%Y%m%d-%H%M%S')}-{file_name}"


class AuditWriter:
    def __init__(self, path: Path, header: Sequence[str]) -> None:
        self.path = Path(path)
        self.header = list(header)
        self.rows_written = 0
        self._file: Optional[IO[str]] = None
        self._writer = None

    def __enter__(self) -> "AuditWriter":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self.path.open("w", encoding="utf-8", newline="")
        self._writer = csv.writer(self._file, quoting=csv.QUOTE_ALL)
        self._writer.writerow(self.header)
        self._file.flush()

    def write_rows(self, rows: Iterable[Sequence[object]]) -> None:
        if self._writer is None:
            raise RuntimeError(f"Audit file {self.path} is not open")
        for row in rows:
            self._writer.writerow(["" if value is None else str(value) for value in row])
            self.rows_written += 1
        self._file.flush()

    def write_outcomes(self, outcomes: List[DeletionOutcome]) -> None:
        self.write_rows(o.as_row() for o in outcomes)

    def close(self) -> None:
        if self._file is not None:
            self._file.flush()
            self._file.close()
            self._file = None
            self._writer = None
