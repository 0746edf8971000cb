# tests/70-config-tests/test_config_resolve.py
"""Tests for flatlink.config_resolve."""

import argparse
from pathlib import Path

import pytest

import flatlink.config_resolve as mod_resolve
import flatlink.logs as mod_logs
from flatlink.config_types import RootConfig
from tests.utils import make_build_input


def _args(**kwargs: object) -> argparse.Namespace:
    """Namespace with every CLI attribute present, like argparse produces."""
    base: dict[str, object] = {
        "units": [],
        "src": None,
        "out": None,
        "script": None,
        "dry_run": False,
        "watch": None,
        "log_level": None,
    }
    base.update(kwargs)
    return argparse.Namespace(**base)


# ---------------------------------------------------------------------------
# resolve_build_config
# ---------------------------------------------------------------------------


def test_resolve_build_config_defaults(tmp_path: Path) -> None:
    # --- setup ---
    build = make_build_input(units=["a", "main"])

    # --- execute ---
    resolved = mod_resolve.resolve_build_config(build, _args(), tmp_path, tmp_path)

    # --- verify ---
    assert resolved["units"] == ["a", "main"]
    assert resolved["src"]["path"] == "build"
    assert resolved["src"]["root"] == tmp_path.resolve()
    assert resolved["src"]["origin"] == "default"
    assert resolved["out"]["path"] == "dist"
    assert resolved["script"] == "main.js"
    assert resolved["resources"] == []
    assert resolved["versions"] == {}
    assert resolved["entry"] is None
    assert resolved["log_level"] == "info"
    assert resolved["dry_run"] is False
    assert resolved["__meta__"] == {"cli_root": tmp_path, "config_root": tmp_path}


def test_resolve_build_config_cli_overrides(tmp_path: Path) -> None:
    """CLI paths resolve against cwd, config paths against the config dir."""
    # --- setup ---
    config_dir = tmp_path / "project"
    cwd = tmp_path / "elsewhere"
    build = make_build_input(units=["a"], out="dist", src="js", script="x.js")
    args = _args(units=["b", "c"], out="public", script="app.js", dry_run=True)

    # --- execute ---
    resolved = mod_resolve.resolve_build_config(build, args, config_dir, cwd)

    # --- verify ---
    assert resolved["units"] == ["b", "c"]
    assert resolved["out"]["root"] == cwd.resolve()
    assert resolved["out"]["path"] == "public"
    assert resolved["out"]["origin"] == "cli"
    assert resolved["src"]["root"] == config_dir.resolve()
    assert resolved["src"]["path"] == "js"
    assert resolved["src"]["origin"] == "config"
    assert resolved["script"] == "app.js"
    assert resolved["dry_run"] is True


def test_resolve_build_config_absolute_out(tmp_path: Path) -> None:
    # --- setup ---
    target = tmp_path / "abs-out"
    build = make_build_input(units=["a"], out=str(target))

    # --- execute ---
    resolved = mod_resolve.resolve_build_config(build, _args(), tmp_path / "cfg", tmp_path)

    # --- verify ---
    assert resolved["out"]["root"] == target.resolve()
    assert resolved["out"]["path"] == "."


def test_resolve_build_config_merges_root_defaults(tmp_path: Path) -> None:
    # --- setup ---
    root: RootConfig = {
        "out": "public",
        "versions": {"Gtk": "3.0", "Soup": "2.4"},
        "log_level": "warning",
    }
    build = make_build_input(units=["a"], versions={"Gtk": "4.0"})

    # --- execute ---
    resolved = mod_resolve.resolve_build_config(build, _args(), tmp_path, tmp_path, root)

    # --- verify ---
    assert resolved["out"]["path"] == "public"
    assert resolved["versions"] == {"Gtk": "4.0", "Soup": "2.4"}
    assert resolved["log_level"] == "warning"


def test_resolve_build_config_resources(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    # --- setup ---
    (tmp_path / "data").mkdir()
    build = make_build_input(
        units=["a"],
        resources=[
            "data/",
            {"src": "ui/window.ui", "dest": "ui/main.ui", "exclude": ["*.bak"]},
        ],
    )

    # --- execute ---
    resolved = mod_resolve.resolve_build_config(build, _args(), tmp_path, tmp_path)

    # --- verify ---
    data, ui = resolved["resources"]
    assert (data["path"], data["dest"], data["exclude"]) == ("data", "data", [])
    assert (ui["path"], ui["dest"], ui["exclude"]) == (
        "ui/window.ui",
        "ui/main.ui",
        ["*.bak"],
    )
    assert "Resource path does not exist" in capsys.readouterr().err


def test_resolve_build_config_resource_without_src(tmp_path: Path) -> None:
    # --- setup ---
    build = make_build_input(units=["a"], resources=[{"dest": "x"}])

    # --- execute and verify ---
    with pytest.raises(ValueError, match="missing `src`"):
        mod_resolve.resolve_build_config(build, _args(), tmp_path, tmp_path)


def test_resolve_build_config_drops_config_only_keys(tmp_path: Path) -> None:
    # --- setup ---
    build = make_build_input(units=["a"], strict_config=False, watch_interval=3.0)

    # --- execute ---
    resolved = mod_resolve.resolve_build_config(build, _args(), tmp_path, tmp_path)

    # --- verify ---
    assert "strict_config" not in resolved
    assert "watch_interval" not in resolved


# ---------------------------------------------------------------------------
# resolve_config
# ---------------------------------------------------------------------------


def test_resolve_config_defaults(tmp_path: Path) -> None:
    # --- setup ---
    root: RootConfig = {"builds": [make_build_input(units=["a"])]}

    # --- execute ---
    resolved = mod_resolve.resolve_config(root, _args(), tmp_path, tmp_path)

    # --- verify ---
    assert len(resolved["builds"]) == 1
    assert resolved["watch_interval"] == 1.0
    assert resolved["strict_config"] is True
    assert resolved["log_level"] == "info"


@pytest.mark.parametrize(
    ("cli_watch", "env_watch", "root_watch", "expected"),
    [
        (0.25, "5", 9.0, 0.25),
        (-1.0, "5", 9.0, 5.0),
        (None, None, 9.0, 9.0),
        (-1.0, None, None, 1.0),
        (None, "bogus", 9.0, 1.0),
    ],
)
def test_resolve_config_watch_interval_precedence(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    cli_watch: float | None,
    env_watch: str | None,
    root_watch: float | None,
    expected: float,
) -> None:
    # --- setup ---
    root: RootConfig = {"builds": []}
    if root_watch is not None:
        root["watch_interval"] = root_watch
    if env_watch is not None:
        monkeypatch.setenv("FLATLINK_WATCH_INTERVAL", env_watch)

    # --- execute ---
    resolved = mod_resolve.resolve_config(root, _args(watch=cli_watch), tmp_path, tmp_path)

    # --- verify ---
    assert resolved["watch_interval"] == expected


def test_resolve_config_applies_log_level(tmp_path: Path) -> None:
    # --- setup ---
    root: RootConfig = {"builds": [], "log_level": "debug"}

    # --- execute ---
    mod_resolve.resolve_config(root, _args(), tmp_path, tmp_path)

    # --- verify ---
    assert mod_logs.get_log_level() == "debug"
