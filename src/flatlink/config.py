# src/flatlink/config.py
"""Locating, loading and normalizing `.flatlink.*` configuration files.

A config file may be Python (`.flatlink.py`) or JSON with comments
(`.flatlink.jsonc` / `.flatlink.json`). Whatever shape the user writes is
normalized by `parse_config` into `{"builds": [...], <root defaults>}` before
schema validation runs.
"""

import argparse
import os
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, cast

from .config_types import BuildConfig, RootConfig
from .config_validate import validate_config
from .constants import DEFAULT_ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL
from .logs import LEVEL_MAP, get_logger, set_log_level
from .meta import PROGRAM_ENV, PROGRAM_SCRIPT
from .utils import load_jsonc, plural, remove_path_in_error_message
from .utils_schema import ValidationSummary
from .utils_types import cast_hint, schema_from_typeddict

# Checked in this order; the first hit wins.
CONFIG_SUFFIXES = (".py", ".jsonc", ".json")

# Names a Python config may bind, most general first.
PY_CONFIG_NAMES = ("config", "builds", "units")

RawConfig = dict[str, Any] | list[Any] | None


def can_run_configless(args: argparse.Namespace) -> bool:
    """Units given on the command line are enough to link without a file."""
    return bool(getattr(args, "units", None))


def determine_log_level(
    args: argparse.Namespace,
    root_log_level: str | None = None,
    build_log_level: str | None = None,
) -> str:
    """Resolve log level from CLI → env → build config → root config → default."""
    cli_level = getattr(args, "log_level", None)
    if cli_level:
        return cast_hint(str, cli_level)

    for var in (f"{PROGRAM_ENV}_{DEFAULT_ENV_LOG_LEVEL}", DEFAULT_ENV_LOG_LEVEL):
        env_level = os.getenv(var)
        if env_level:
            return env_level.lower()

    return build_log_level or root_log_level or DEFAULT_LOG_LEVEL


def _level_number(name: str) -> int:
    return LEVEL_MAP.get(name.upper(), LEVEL_MAP["INFO"])


def _explicit_config(raw_path: str) -> Path:
    config = Path(raw_path).expanduser().resolve()
    if not config.exists():
        xmsg = f"Specified config file not found: {config}"
        raise FileNotFoundError(xmsg)
    if config.is_dir():
        xmsg = f"Specified config path is a directory, not a file: {config}"
        raise ValueError(xmsg)
    return config


def find_config(
    args: argparse.Namespace,
    cwd: Path,
    *,
    missing_level: str = "error",
) -> Path | None:
    """Return the config file to use, or None when there is none.

    `--config` must point at an existing file. Otherwise `cwd` is searched for
    `.flatlink.py`, `.flatlink.jsonc` and `.flatlink.json`, in that order.
    Finding nothing is logged at `missing_level`.
    """
    if getattr(args, "config", None):
        return _explicit_config(args.config)

    logger = get_logger()
    present = [
        cwd / f".{PROGRAM_SCRIPT}{suffix}"
        for suffix in CONFIG_SUFFIXES
        if (cwd / f".{PROGRAM_SCRIPT}{suffix}").exists()
    ]

    if not present:
        logger.log(_level_number(missing_level), f"No config file found in {cwd}")
        return None

    chosen = present[0]
    if len(present) > 1:
        others = ", ".join(p.name for p in present)
        logger.warning(f"Multiple config files detected ({others}); using {chosen.name}.")
    return chosen


@contextmanager
def _importable_from(directory: Path) -> Iterator[None]:
    """Let a Python config import helper modules that sit next to it."""
    entry = str(directory)
    inserted = entry not in sys.path
    if inserted:
        sys.path.insert(0, entry)
    try:
        yield
    finally:
        if inserted and sys.path and sys.path[0] == entry:
            sys.path.pop(0)


def _exec_python_config(config_path: Path) -> dict[str, Any]:
    namespace: dict[str, Any] = {}
    with _importable_from(config_path.parent):
        try:
            code = compile(
                config_path.read_text(encoding="utf-8"), str(config_path), "exec"
            )
            exec(code, namespace)  # noqa: S102
        except Exception as e:
            xmsg = (
                f"Error while executing Python config: {config_path.name}\n"
                f"{type(e).__name__}: {e}\n{traceback.format_exc()}"
            )
            raise RuntimeError(xmsg) from e
    get_logger().trace(f"[EXEC] {config_path.name} bound {sorted(namespace)}")
    return namespace


def _load_python_config(config_path: Path) -> RawConfig:
    namespace = _exec_python_config(config_path)

    name = next((n for n in PY_CONFIG_NAMES if n in namespace), None)
    if name is None:
        wanted = " or ".join(f"`{n}`" for n in PY_CONFIG_NAMES)
        xmsg = f"{config_path.name} did not define {wanted}"
        raise ValueError(xmsg)

    value = namespace[name]
    if value is not None and not isinstance(value, (dict, list)):
        xmsg = (
            f"{name} in {config_path.name} must be a dict, list, or None"
            f", not {type(value).__name__}"
        )
        raise TypeError(xmsg)
    return cast("RawConfig", value)


def load_config(config_path: Path) -> RawConfig:
    """Read the raw config object (dict, list or None) from `config_path`.

    Python files are executed and must bind `config`, `builds` or `units`.
    Anything else is parsed as JSONC. None means the file is intentionally
    empty.
    """
    if config_path.suffix == ".py":
        return _load_python_config(config_path)

    try:
        return load_jsonc(config_path)
    except ValueError as e:
        reason = remove_path_in_error_message(str(e), config_path)
        xmsg = f"Error while loading configuration file '{config_path.name}': {reason}"
        raise ValueError(xmsg) from e


# ---------------------------------------------------------------------------
# shape normalization
# ---------------------------------------------------------------------------


def _normalize_list(raw_config: list[Any]) -> dict[str, Any]:
    if all(isinstance(item, str) for item in raw_config):
        # a bare unit order
        return {"builds": [{"units": list(raw_config)}]}

    if not all(isinstance(item, dict) for item in raw_config):
        xmsg = (
            "Invalid mixed-type list: "
            "all elements must be strings or all must be objects."
        )
        raise TypeError(xmsg)

    builds = [dict(item) for item in raw_config]
    root: dict[str, Any] = {"builds": builds}
    # watch_interval is global; the first build to set it decides
    intervals = [b.pop("watch_interval") for b in builds if "watch_interval" in b]
    if intervals and intervals[0] is not None:
        root["watch_interval"] = intervals[0]
    return root


def _normalize_mapping(raw_config: dict[str, Any]) -> dict[str, Any]:
    logger = get_logger()
    root = dict(raw_config)
    build_val = root.get("build")
    builds_val = root.get("builds")

    if isinstance(builds_val, list):
        return root

    if isinstance(build_val, list) and "builds" not in root:
        logger.warning("Config key 'build' was a list — treating as 'builds'.")
        root["builds"] = root.pop("build")
        return root

    if isinstance(builds_val, dict):
        logger.warning("Config key 'builds' was a dict — treating as 'build'.")
        root["builds"] = [builds_val]
        return root

    if isinstance(build_val, dict):
        root["builds"] = [dict(root.pop("build"))]
        return root

    # flat build: keys legal at both levels become root defaults
    shared = set(schema_from_typeddict(RootConfig)) & set(
        schema_from_typeddict(BuildConfig)
    )
    defaults = {key: root.pop(key) for key in list(root) if key in shared}
    return {**defaults, "builds": [root]}


def parse_config(raw_config: RawConfig) -> dict[str, Any] | None:
    """Normalize user config into canonical RootConfig shape (no filesystem work).

    Accepted forms:
      - #1 [] / {}                   → nothing to build
      - #2 ["lib/util", "main"]      → single build with that unit order
      - #3 [{...}, {...}]            → multi-build list
      - #4 {"builds": [...]}         → multi-build config (returned shape)
      - #5 {"build": {...}}          → single build config with root config
      - #6 {...}                     → single build config

    Unknown keys are kept so validation can report them.
    """
    if not raw_config:
        return None
    if isinstance(raw_config, list):
        return _normalize_list(raw_config)
    if isinstance(raw_config, dict):  # pyright: ignore[reportUnnecessaryIsInstance]
        return _normalize_mapping(raw_config)

    xmsg = (
        f"Invalid top-level value: {type(raw_config).__name__} "
        "(expected object, list of objects, or list of strings)"
    )
    raise TypeError(xmsg)


# ---------------------------------------------------------------------------
# validation reporting
# ---------------------------------------------------------------------------


def _bullets(title: str, items: list[str]) -> str:
    return f"\n{title}:\n  • " + "\n  • ".join(items)


def _report_summary(summary: ValidationSummary, config_path: Path) -> None:
    logger = get_logger()
    mode = "strict mode" if summary.strict else "lenient mode"
    name = config_path.name

    tallies = [
        (summary.errors, "error"),
        (summary.strict_warnings, "strict warning"),
        (summary.warnings, "normal warning"),
    ]
    counts = [f"{len(items)} {label}{plural(items)}" for items, label in tallies if items]
    found = f"\nFound {', '.join(counts)}." if counts else ""

    if not summary.valid:
        logger.error(f"Failed to validate configuration file {name} ({mode}).{found}")
    elif counts:
        logger.warning(
            f"Validated configuration file {name} ({mode}) with warnings.{found}"
        )
    else:
        logger.debug(f"Validated {name} ({mode}) successfully.")

    if summary.errors:
        logger.error(_bullets("Errors", summary.errors))
    if summary.strict_warnings:
        logger.error(
            _bullets("Strict warnings (treated as errors)", summary.strict_warnings)
        )
    if summary.warnings:
        logger.warning(_bullets("Warnings (non-fatal)", summary.warnings))


def load_and_validate_config(
    args: argparse.Namespace,
) -> tuple[Path, RootConfig] | None:
    """Find, load, normalize and validate the config for this run.

    Logging is configured from CLI/env first, then again once the file's
    root `log_level` is known.

    Returns `(config_path, root_cfg)`, or None when there is nothing to load.
    Invalid configs raise a `ValueError` marked `silent`, since the summary
    has already been logged.
    """
    logger = get_logger()
    set_log_level(determine_log_level(args))

    cwd = Path.cwd().resolve()
    if not cwd.exists():
        logger.warning(f"Working directory does not exist: {cwd}")

    missing_level = "warning" if can_run_configless(args) else "error"
    config_path = find_config(args, cwd, missing_level=missing_level)
    if config_path is None:
        return None

    raw_config = load_config(config_path)
    if raw_config is None:
        return None

    if isinstance(raw_config, dict):
        file_level = raw_config.get("log_level")
        if isinstance(file_level, str) and file_level:
            set_log_level(determine_log_level(args, file_level))

    try:
        parsed = parse_config(raw_config)
    except TypeError as e:
        xmsg = f"Could not parse config {config_path.name}: {e}"
        raise TypeError(xmsg) from e
    if parsed is None:
        return None

    summary = validate_config(parsed)
    _report_summary(summary, config_path)
    if not summary.valid:
        xmsg = f"Configuration file {config_path.name} contains validation errors."
        exception = ValueError(xmsg)
        exception.silent = True  # type: ignore[attr-defined]
        exception.data = summary  # type: ignore[attr-defined]
        raise exception

    return config_path, cast_hint(RootConfig, parsed)
