"""Search database catalog read from ``*.params`` files."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path


class CatalogError(RuntimeError):
    """A database parameter file is missing fields or unreadable."""


@dataclass(slots=True, frozen=True)
class DatabaseEntry:
    """Display metadata for one searchable database."""

    name: str
    version: str
    default: bool
    order: int
    path: Path


def list_databases(databases_dir: Path) -> list[DatabaseEntry]:
    """Load every ``<name>.params`` file in databases_dir, sorted by display order."""

    entries = [_read_params(path) for path in sorted(databases_dir.glob("*.params"))]
    entries.sort(key=lambda entry: (entry.order, entry.name))
    return entries


def database_names(databases_dir: Path) -> set[str]:
    return {entry.name for entry in list_databases(databases_dir)}


def _read_params(path: Path) -> DatabaseEntry:
    try:
        payload = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError) as error:
        raise CatalogError(f"Cannot read database params {path}: {error}") from error

    display = payload.get("display") if isinstance(payload, dict) else None
    if not isinstance(display, dict):
        raise CatalogError(f"Database params {path} has no display section")

    name = display.get("name")
    version = display.get("version", "")
    default = display.get("default", False)
    order = display.get("order", 0)
    if not isinstance(name, str) or not name.strip():
        raise CatalogError(f"Database params {path} has no display.name")
    if not isinstance(version, str):
        raise CatalogError(f"Database params {path} has non-string display.version")
    if not isinstance(default, bool):
        raise CatalogError(f"Database params {path} has non-boolean display.default")
    if not isinstance(order, int) or isinstance(order, bool):
        raise CatalogError(f"Database params {path} has non-integer display.order")
    return DatabaseEntry(
        name=name.strip(),
        version=version,
        default=default,
        order=order,
        path=path,
    )
