# src/flatlink/meta.py

"""Centralized program identity constants for Flatlink."""

from typing import NamedTuple

_BASE = "flatlink"

# CLI script name (the executable or `poetry run` entrypoint)
PROGRAM_SCRIPT = _BASE

# Human-readable name for banners, help text, etc.
PROGRAM_DISPLAY = _BASE.replace("-", " ").title()

# Python package / import name
PROGRAM_PACKAGE = _BASE.replace("-", "_")

# Environment variable prefix (used for FLATLINK_LOG_LEVEL, etc.)
PROGRAM_ENV = _BASE.replace("-", "_").upper()

# Short tagline or description for help screens and metadata
DESCRIPTION = "Link compiled modules into one flat-scope script."


class Metadata(NamedTuple):
    version: str
    commit: str
