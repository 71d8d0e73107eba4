from __future__ import annotations

import json
from pathlib import Path

import allure
import pytest

from seqsearch.catalog import CatalogError, database_names, list_databases

pytestmark = [
    allure.epic("Job Queue"),
    allure.feature("Database Catalog"),
]


def _write_params(directory: Path, filename: str, payload: object) -> None:
    (directory / filename).write_text(json.dumps(payload), encoding="utf-8")


def test_catalog_lists_databases_in_display_order(tmp_path: Path) -> None:
    _write_params(tmp_path, "pdb.params", {"display": {"name": "PDB100", "order": 2}})
    _write_params(
        tmp_path,
        "uniref.params",
        {"display": {"name": "UniRef90", "version": "2026_01", "default": True, "order": 1}},
    )
    _write_params(tmp_path, "afdb.params", {"display": {"name": "AFDB50", "order": 2}})
    (tmp_path / "README.txt").write_text("ignored", encoding="utf-8")

    entries = list_databases(tmp_path)

    assert [entry.name for entry in entries] == ["UniRef90", "AFDB50", "PDB100"]
    assert entries[0].default is True
    assert entries[0].version == "2026_01"
    assert entries[0].path == tmp_path / "uniref.params"
    assert database_names(tmp_path) == {"UniRef90", "AFDB50", "PDB100"}


def test_empty_catalog(tmp_path: Path) -> None:
    assert list_databases(tmp_path) == []


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"display": {}},
        {"display": {"name": "  "}},
        {"display": {"name": "x", "order": "1"}},
        {"display": {"name": "x", "default": "yes"}},
        {"display": {"name": "x", "version": 3}},
    ],
)
def test_invalid_params_raise_catalog_error(tmp_path: Path, payload: object) -> None:
    _write_params(tmp_path, "bad.params", payload)

    with pytest.raises(CatalogError):
        list_databases(tmp_path)


def test_unreadable_json_raises_catalog_error(tmp_path: Path) -> None:
    (tmp_path / "broken.params").write_text("{", encoding="utf-8")

    with pytest.raises(CatalogError, match="broken.params"):
        list_databases(tmp_path)
