# tests/conftest.py
"""
Shared test setup for project.

- Debug tests are skipped unless selected with `-k debug`.
- Every test starts from a clean runtime (log level, color) and leaves
  it as it found it, since several code paths mutate `current_runtime`.
"""

from collections.abc import Generator
from pathlib import Path

import pytest
from pytest import Config, Item as PytestItem, MonkeyPatch

import flatlink.logs as mod_logs
import flatlink.runtime as mod_runtime
from flatlink.meta import PROGRAM_ENV
from tests.utils import make_trace, write_unit
from tests.utils.samples import SAMPLE_UNITS

TRACE = make_trace("⚡️")


def pytest_collection_modifyitems(
    config: Config,
    items: list[PytestItem],
) -> None:
    """Automatically skip debug tests unless asked for."""
    keywords = config.getoption("-k") or ""
    running_debug = "debug" in keywords.lower()

    if running_debug:
        return  # user explicitly requested them, don't skip

    for item in items:
        if "debug" in item.keywords:
            item.add_marker(
                pytest.mark.skip(reason="Skipped debug test (use -k debug to run)")
            )


@pytest.fixture(autouse=True)
def clean_runtime(monkeypatch: MonkeyPatch) -> Generator[None, None, None]:
    """Isolate each test from env and runtime log/color state."""
    for var in (
        f"{PROGRAM_ENV}_LOG_LEVEL",
        "LOG_LEVEL",
        f"{PROGRAM_ENV}_WATCH_INTERVAL",
        "WATCH_INTERVAL",
    ):
        monkeypatch.delenv(var, raising=False)

    saved = dict(mod_runtime.current_runtime)
    mod_logs.set_log_level("info")
    mod_runtime.current_runtime["use_color"] = False
    yield
    mod_runtime.current_runtime.update(saved)
    mod_logs.set_log_level(saved["log_level"])


@pytest.fixture
def sample_tree(tmp_path: Path) -> Path:
    """A compiled-module tree holding the three sample units a, b, c."""
    src = tmp_path / "build"
    for name, text in SAMPLE_UNITS.items():
        path = write_unit(src, name, text)
        TRACE(f"wrote {path}")
    return src
