# tests/30-utils-tests/test_utils_color.py
"""Tests for color helpers in flatlink.utils and flatlink.logs."""

import sys
import types

import pytest

import flatlink.logs as mod_logs
import flatlink.runtime as mod_runtime
import flatlink.utils as mod_utils

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset color-related environment variables before each test."""
    for var in ("NO_COLOR", "FORCE_COLOR"):
        monkeypatch.delenv(var, raising=False)


def _fake_stdout(*, tty: bool) -> types.SimpleNamespace:
    return types.SimpleNamespace(isatty=lambda: tty)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


def test_should_use_color_no_color(monkeypatch: pytest.MonkeyPatch) -> None:
    """Disables color if NO_COLOR is present in environment."""
    # --- patch, execute, and verify ---
    monkeypatch.setenv("NO_COLOR", "")
    monkeypatch.setenv("FORCE_COLOR", "1")
    assert mod_utils.should_use_color() is False


@pytest.mark.parametrize("value", ["1", "true", "TRUE", "yes", "Yes"])
def test_should_use_color_force_color(
    monkeypatch: pytest.MonkeyPatch,
    value: str,
) -> None:
    """Enables color when FORCE_COLOR is set to a truthy value."""
    # --- patch, execute, and verify ---
    monkeypatch.setenv("FORCE_COLOR", value)
    monkeypatch.setattr(sys, "stdout", _fake_stdout(tty=False))
    assert mod_utils.should_use_color() is True


@pytest.mark.parametrize("tty", [True, False])
def test_should_use_color_follows_tty(
    monkeypatch: pytest.MonkeyPatch,
    tty: bool,
) -> None:
    # --- patch, execute, and verify ---
    monkeypatch.setattr(sys, "stdout", _fake_stdout(tty=tty))
    assert mod_utils.should_use_color() is tty


def test_colorize_respects_runtime(monkeypatch: pytest.MonkeyPatch) -> None:
    # --- patch and execute ---
    monkeypatch.setitem(mod_runtime.current_runtime, "use_color", True)
    colored = mod_logs.colorize("hi", mod_logs.GREEN)
    monkeypatch.setitem(mod_runtime.current_runtime, "use_color", False)
    plain = mod_logs.colorize("hi", mod_logs.GREEN)

    # --- verify ---
    assert colored == f"{mod_logs.GREEN}hi{mod_logs.RESET}"
    assert plain == "hi"


def test_colorize_explicit_override() -> None:
    # --- execute and verify ---
    assert mod_logs.colorize("x", mod_logs.RED, use_color=True).startswith(mod_logs.RED)
    assert mod_logs.colorize("x", mod_logs.RED, use_color=False) == "x"
