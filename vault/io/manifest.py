"""
Input manifest reader.

The manifest is a CSV with one header row, then name, field and values:

  name,id_param,id_param_value
  product__v,name__v,Cholecap
  product__v,name__v,Nyaxa
  study__v
  site__v,id,101,102

Every column after the field is a value, and repeated rows for a name add
more. A row with just a name puts the whole object (or document type) in
scope.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from vault.core.logging import get_logger
from vault.core.options import ConfigurationError
from vault.etl.models import IdentifierScope, ScopeMap

logger = get_logger(__name__)


def read_manifest(path: Path) -> ScopeMap:
    if not path.exists():
        raise ConfigurationError(f"File does not exist [{path.resolve()}]")

    collected: Dict[str, Tuple[Optional[str], List[str]]] = {}
    try:
        with path.open("r", encoding="utf-8-sig", newline="") as f:
            reader = csv.reader(f)
            next(reader, None)
            for row in reader:
                cells = [c.strip() for c in row]
                if not cells or not cells[0]:
                    continue

                name = cells[0]
                field = cells[1] if len(cells) >= 2 and cells[1] else None
                row_values = [c for c in cells[2:] if c]

                current_field, values = collected.setdefault(name, (field, []))
                if current_field is None and field is not None:
                    collected[name] = (field, values)
                elif field is not None and field != current_field:
                    logger.warning("Ignoring %s row with field %s; already scoped by %s", name, field, current_field)
                    continue
                values.extend(row_values)
    except (OSError, csv.Error, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Could not read input file [{path}]: {e}") from e

    if not collected:
        raise ConfigurationError("Provided input file is empty.")

    scopes = {name: IdentifierScope(field=field, values=values) for name, (field, values) in collected.items()}
    logger.info("Loaded %d type(s) from %s", len(scopes), path)
    return scopes
