"""
Run options for the Vault data tools.

`DataToolOptions` is resolved once from the command line (see vault.cli) and
then handed to the COUNT / DELETE workflows. Anything wrong with it is a
`ConfigurationError`, which aborts the run before any destructive call.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Type, TypeVar


class ConfigurationError(Exception):
    """Missing or invalid run configuration. Always fatal."""


class Action(str, Enum):
    DELETE = "DELETE"
    COUNT = "COUNT"


class DataType(str, Enum):
    ALL = "ALL"
    OBJECTS = "OBJECTS"
    DOCUMENTS = "DOCUMENTS"


class Exclude(str, Enum):
    SYSTEM = "SYSTEM"
    STANDARD = "STANDARD"
    CUSTOM = "CUSTOM"
    APPLICATION = "APPLICATION"


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Optional[str], label: str) -> E:
    if value is None or not value.strip():
        raise ConfigurationError(f"{label} is required")
    try:
        return enum_cls(value.strip().upper())
    except ValueError:
        expected = [member.value for member in enum_cls]
        raise ConfigurationError(
            f"Unknown {label.lower()} [{value}]; Expected values = {expected}"
        ) from None


def parse_excludes(values: Optional[Iterable[str]]) -> List[Exclude]:
    """
    Accepts repeated and/or comma-separated values: ["system,custom", "STANDARD"].
    """
    excludes: List[Exclude] = []
    for raw in values or []:
        for part in raw.split(","):
            if not part.strip():
                continue
            exclude = parse_enum(Exclude, part, "Exclude")
            if exclude not in excludes:
                excludes.append(exclude)
    return excludes


@dataclass(frozen=True)
class DataToolOptions:
    action: Action
    data_type: DataType
    excludes: List[Exclude] = field(default_factory=list)
    input_path: Optional[Path] = None

    @property
    def include_objects(self) -> bool:
        return self.data_type in (DataType.ALL, DataType.OBJECTS)

    @property
    def include_documents(self) -> bool:
        return self.data_type in (DataType.ALL, DataType.DOCUMENTS)

    def is_excluded(self, source: Optional[str]) -> bool:
        """True when an object's source (system, standard, ...) is in the exclusion set."""
        if not source or not self.excludes:
            return False
        return source.strip().upper() in {exclude.value for exclude in self.excludes}

    @classmethod
    def from_values(
        cls,
        action: Optional[str],
        data_type: Optional[str],
        excludes: Optional[Iterable[str]] = None,
        input_path: Optional[str] = None,
    ) -> "DataToolOptions":
        return cls(
            action=parse_enum(Action, action, "Action"),
            data_type=parse_enum(DataType, data_type, "Data type"),
            excludes=parse_excludes(excludes),
            input_path=Path(input_path).expanduser().resolve() if input_path else None,
        )
