# tests/40-link-tests/test_units.py
"""Tests for flatlink.units."""

from pathlib import Path

import pytest

import flatlink.units as mod_units
from flatlink.errors import ReadError
from tests.utils import write_unit


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("a", "a"),
        ("a.js", "a"),
        ("./lib/util.js", "lib/util"),
        ("lib\\win\\path", "lib/win/path"),
        ("lib/../main", "main"),
    ],
)
def test_normalize_unit_name(raw: str, expected: str) -> None:
    assert mod_units.normalize_unit_name(raw) == expected


def test_resolve_specifier_relative_to_unit_directory() -> None:
    # --- execute ---
    sibling = mod_units.resolve_specifier("lib/ui/window", "./button")
    parent = mod_units.resolve_specifier("lib/ui/window", "../util")

    # --- verify ---
    assert sibling == "lib/ui/button"
    assert parent == "lib/util"


def test_resolve_specifier_prefers_exact_name_over_index() -> None:
    # --- execute ---
    result = mod_units.resolve_specifier("main", "./ui", known={"ui", "ui/index"})

    # --- verify ---
    assert result == "ui"


def test_unit_records_dependencies_once() -> None:
    # --- setup ---
    unit = mod_units.Unit.from_text("b", "")

    # --- execute ---
    unit.add_dependency("a")
    unit.add_dependency("a")
    unit.add_dependency("b")  # itself

    # --- verify ---
    assert unit.dependencies == ["a"]


def test_read_units_keeps_policy_order(tmp_path: Path) -> None:
    # --- setup ---
    write_unit(tmp_path, "a", "var a = 1;\n")
    write_unit(tmp_path, "lib/b", "var b = 2;\n")

    # --- execute ---
    units = mod_units.read_units(tmp_path, ["lib/b.js", "a"])

    # --- verify ---
    assert [u.name for u in units] == ["lib/b", "a"]
    assert units[0].source == units[0].body == "var b = 2;\n"
    assert units[0].path == tmp_path / "lib" / "b.js"


def test_read_units_missing_artifact(tmp_path: Path) -> None:
    # --- setup ---
    write_unit(tmp_path, "a", "")

    # --- execute and verify ---
    with pytest.raises(ReadError) as excinfo:
        mod_units.read_units(tmp_path, ["a", "missing"])

    assert excinfo.value.unit == "missing"
    assert excinfo.value.stage == "read"
    assert "missing.js" in str(excinfo.value)


def test_read_units_undecodable_artifact(tmp_path: Path) -> None:
    # --- setup ---
    (tmp_path / "bin.js").write_bytes(b"\xff\xfe\x00broken")

    # --- execute and verify ---
    with pytest.raises(ReadError, match="Cannot read"):
        mod_units.read_units(tmp_path, ["bin"])
