# tests/50-build-tests/test_resources.py
"""Tests for flatlink.resources (resource mirroring)."""

from pathlib import Path

import pytest

import flatlink.resources as mod_resources
from flatlink.errors import ResourceCopyError
from tests.utils import make_resource_resolved


def _make_tree(root: Path) -> Path:
    data = root / "data"
    (data / "icons").mkdir(parents=True)
    (data / "cache").mkdir()
    (data / "app.gschema.xml").write_text("<schemalist/>")
    (data / "icons" / "app.svg").write_text("<svg/>")
    (data / "icons" / "notes.tmp").write_text("scratch")
    (data / "cache" / "blob.bin").write_text("x")
    return data


# ---------------------------------------------------------------------------
# is_excluded_raw
# ---------------------------------------------------------------------------


def test_is_excluded_matches_relative_path_and_name(tmp_path: Path) -> None:
    # --- setup ---
    data = _make_tree(tmp_path)

    # --- verify ---
    assert mod_resources.is_excluded_raw(data / "icons" / "notes.tmp", ["*.tmp"], data)
    assert mod_resources.is_excluded_raw("icons/app.svg", ["icons/*.svg"], data)
    assert not mod_resources.is_excluded_raw("icons/app.svg", ["*.tmp"], data)


def test_is_excluded_directory_pattern(tmp_path: Path) -> None:
    # --- setup ---
    data = _make_tree(tmp_path)

    # --- verify ---
    assert mod_resources.is_excluded_raw(data / "cache", ["cache/"], data)
    assert mod_resources.is_excluded_raw(data / "cache" / "blob.bin", ["cache/"], data)
    assert not mod_resources.is_excluded_raw(data / "icons", ["cache/"], data)


def test_is_excluded_ignores_paths_outside_root(tmp_path: Path) -> None:
    # --- setup ---
    data = _make_tree(tmp_path)
    outside = tmp_path / "elsewhere.tmp"
    outside.write_text("")

    # --- execute and verify ---
    assert not mod_resources.is_excluded_raw(outside, ["*.tmp"], data)


def test_is_excluded_no_patterns() -> None:
    assert not mod_resources.is_excluded_raw("anything", [], ".")


# ---------------------------------------------------------------------------
# mirror_resources
# ---------------------------------------------------------------------------


def test_mirror_directory_with_excludes(tmp_path: Path) -> None:
    # --- setup ---
    data = _make_tree(tmp_path)
    out = tmp_path / "dist"
    resources = [make_resource_resolved("data", tmp_path, exclude=["*.tmp", "cache/"])]

    # --- execute ---
    count = mod_resources.mirror_resources(resources, out, dry_run=False)

    # --- verify ---
    assert count == 2
    assert (out / "data" / "app.gschema.xml").read_text() == "<schemalist/>"
    assert (out / "data" / "icons" / "app.svg").exists()
    assert not (out / "data" / "icons" / "notes.tmp").exists()
    assert not (out / "data" / "cache").exists()
    assert (data / "cache" / "blob.bin").exists()  # source untouched


def test_mirror_single_file_to_custom_dest(tmp_path: Path) -> None:
    # --- setup ---
    _make_tree(tmp_path)
    out = tmp_path / "dist"
    resources = [
        make_resource_resolved(
            "data/icons/app.svg", tmp_path, dest="icons/hicolor/app.svg"
        )
    ]

    # --- execute ---
    count = mod_resources.mirror_resources(resources, out, dry_run=False)

    # --- verify ---
    assert count == 1
    assert (out / "icons" / "hicolor" / "app.svg").read_text() == "<svg/>"


def test_mirror_absolute_source(tmp_path: Path) -> None:
    # --- setup ---
    data = _make_tree(tmp_path)
    out = tmp_path / "dist"
    resources = [make_resource_resolved(str(data / "icons"), "/", dest="ui")]

    # --- execute ---
    mod_resources.mirror_resources(resources, out, dry_run=False)

    # --- verify ---
    assert (out / "ui" / "app.svg").exists()


def test_mirror_dry_run_counts_without_copying(tmp_path: Path) -> None:
    # --- setup ---
    _make_tree(tmp_path)
    out = tmp_path / "dist"
    resources = [make_resource_resolved("data", tmp_path)]

    # --- execute ---
    count = mod_resources.mirror_resources(resources, out, dry_run=True)

    # --- verify ---
    assert count == 4
    assert not out.exists()


def test_mirror_missing_source(tmp_path: Path) -> None:
    # --- setup ---
    resources = [make_resource_resolved("nope", tmp_path)]

    # --- execute ---
    with pytest.raises(ResourceCopyError) as excinfo:
        mod_resources.mirror_resources(resources, tmp_path / "dist", dry_run=True)

    # --- verify ---
    assert excinfo.value.stage == "resources"
    assert "nope" in str(excinfo.value)


def test_mirror_wraps_copy_failures(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    # --- setup ---
    _make_tree(tmp_path)
    resources = [make_resource_resolved("data", tmp_path)]

    def _boom(*_args: object, **_kwargs: object) -> None:
        raise PermissionError("denied")

    # --- patch and execute ---
    monkeypatch.setattr(mod_resources.shutil, "copy2", _boom)
    with pytest.raises(ResourceCopyError, match="denied"):
        mod_resources.mirror_resources(resources, tmp_path / "dist", dry_run=False)
