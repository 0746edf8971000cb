# src/flatlink/cli.py

import argparse
import platform
import sys
from difflib import get_close_matches
from pathlib import Path

from .actions import get_metadata, run_selftest, watch_for_changes
from .build import run_all_builds
from .config import can_run_configless, determine_log_level, load_and_validate_config
from .config_resolve import resolve_config
from .config_types import RootConfig
from .constants import DEFAULT_HINT_CUTOFF, DEFAULT_WATCH_INTERVAL
from .logs import LEVEL_ORDER, get_logger, set_log_level
from .meta import DESCRIPTION, PROGRAM_DISPLAY, PROGRAM_SCRIPT
from .runtime import current_runtime
from .utils import get_sys_version_info, safe_log, should_use_color
from .utils_types import cast_hint

# --------------------------------------------------------------------------- #
# Argument parsing
# --------------------------------------------------------------------------- #

_UNRECOGNIZED = "unrecognized arguments:"


class HintingArgumentParser(argparse.ArgumentParser):
    """ArgumentParser that suggests the closest known flag for a typo."""

    def _flag_hints(self, message: str) -> list[str]:
        if _UNRECOGNIZED not in message:
            return []
        known = [opt for action in self._actions for opt in action.option_strings]
        typos = [
            tok
            for tok in message.split(_UNRECOGNIZED, 1)[1].split()
            if tok.startswith("-")
        ]
        hints: list[str] = []
        for typo in typos:
            match = get_close_matches(typo, known, n=1, cutoff=DEFAULT_HINT_CUTOFF)
            if match:
                hints.append(f"Hint: did you mean {match[0]}?")
        return hints

    def error(self, message: str) -> None:  # type: ignore[override]
        self.print_usage(sys.stderr)
        lines = [f"{self.prog}: error: {message}", *self._flag_hints(message)]
        self.exit(2, "\n".join(lines) + "\n")


def _add_link_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "units",
        nargs="*",
        metavar="UNIT",
        help="Unit names in link order (overrides `units` from the config).",
    )
    parser.add_argument("-c", "--config", help="Path to build config file.")
    parser.add_argument("--src", help="Override the compiled-module tree directory.")
    parser.add_argument("-o", "--out", help="Override output directory.")
    parser.add_argument("--script", help="Override the emitted script's file name.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Link and validate everything, but write nothing.",
    )
    parser.add_argument(
        "--watch",
        nargs="?",
        type=float,
        metavar="SECONDS",
        const=-1.0,
        default=None,
        help=(
            "Relink whenever a unit or resource changes, polling every SECONDS"
            f" (config value, or {DEFAULT_WATCH_INTERVAL})."
        ),
    )
    parser.add_argument(
        "--selftest",
        action="store_true",
        help="Link a small built-in project and check the result.",
    )


def _add_output_arguments(parser: argparse.ArgumentParser) -> None:
    color = parser.add_mutually_exclusive_group()
    for flag, value, text in (
        ("--no-color", False, "Disable ANSI color output."),
        ("--color", True, "Force ANSI color output even when not a TTY."),
    ):
        color.add_argument(
            flag, dest="use_color", action="store_const", const=value, help=text
        )
    color.set_defaults(use_color=None)

    parser.add_argument("--version", action="store_true", help="Show version info.")

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-q",
        "--quiet",
        dest="log_level",
        action="store_const",
        const="warning",
        help="Only show warnings and errors (same as --log-level warning).",
    )
    verbosity.add_argument(
        "-v",
        "--verbose",
        dest="log_level",
        action="store_const",
        const="debug",
        help="Show debug output (same as --log-level debug).",
    )
    verbosity.add_argument(
        "--log-level",
        dest="log_level",
        choices=LEVEL_ORDER,
        default=None,
        help="Set log verbosity level.",
    )


def _setup_parser() -> argparse.ArgumentParser:
    parser = HintingArgumentParser(prog=PROGRAM_SCRIPT, description=DESCRIPTION)
    _add_link_arguments(parser)
    _add_output_arguments(parser)
    return parser


# --------------------------------------------------------------------------- #
# Run phases
# --------------------------------------------------------------------------- #


def _init_runtime(args: argparse.Namespace) -> None:
    logger = get_logger()
    current_runtime["use_color"] = (
        should_use_color() if args.use_color is None else args.use_color
    )
    set_log_level(determine_log_level(args))
    logger.trace("[BOOT] log-level initialized: %s", current_runtime["log_level"])
    logger.debug(
        "Runtime: Python %s (%s)\n    %s",
        platform.python_version(),
        platform.python_implementation(),
        sys.version.replace("\n", " "),
    )


def _describe_run(
    config_path: Path | None,
    config_dir: Path,
    cwd: Path,
    build_count: int,
    *,
    dry_run: bool,
) -> None:
    logger = get_logger()
    if dry_run:
        logger.info("🧪 Dry-run mode: no files will be written or deleted.\n")
    if config_path is None:
        logger.info("🔧 Running in CLI-only mode (no config file).")
    else:
        logger.info("🔧 Using config: %s", config_path.name)
    logger.info("📁 Config root: %s", config_dir)
    logger.info("📂 Invoked from: %s", cwd)
    logger.info("🔧 Running %d build(s)\n", build_count)


def _link(args: argparse.Namespace) -> int:
    """Load config, resolve builds and link them, once or in watch mode."""
    logger = get_logger()

    loaded = load_and_validate_config(args)
    config_path, root_cfg = loaded if loaded is not None else (None, None)
    logger.trace(
        "[CONFIG] log-level re-resolved from config: %s",
        current_runtime["log_level"],
    )

    if root_cfg is None:
        if not can_run_configless(args):
            logger.error(
                "No build config found (.%s.json) and no units provided.",
                PROGRAM_SCRIPT,
            )
            return 1
        logger.info("No config file found — using CLI-only mode.")
        root_cfg = cast_hint(RootConfig, {"builds": [{}]})

    cwd = Path.cwd().resolve()
    config_dir = config_path.parent if config_path else cwd
    resolved_root = resolve_config(root_cfg, args, config_dir, cwd)
    builds = resolved_root["builds"]

    if not any(b.get("units") for b in builds):
        logger.warning(
            "No units to link.\n"
            "   List them under 'units' in your config or pass them as arguments.",
        )

    dry_run = bool(getattr(args, "dry_run", False))
    _describe_run(config_path, config_dir, cwd, len(builds), dry_run=dry_run)

    if getattr(args, "watch", None) is None:
        run_all_builds(builds, dry_run=dry_run)
    else:
        watch_for_changes(
            lambda: run_all_builds(builds, dry_run=dry_run),
            builds,
            interval=resolved_root["watch_interval"],
        )
    return 0


def _report(e: Exception, *, expected: bool) -> int:
    logger = get_logger()
    try:
        if expected:
            if not getattr(e, "silent", False):
                logger.error_if_not_debug(str(e))
        else:
            logger.critical_if_not_debug("Unexpected internal error: %s", e)
    except Exception:  # noqa: BLE001
        safe_log(f"[FATAL] Logging failed while reporting: {e}")
    return getattr(e, "code", 1)


# --------------------------------------------------------------------------- #
# Main entry
# --------------------------------------------------------------------------- #


def main(argv: list[str] | None = None) -> int:
    """Console entry point. Returns the process exit code."""
    try:
        args = _setup_parser().parse_args(argv)
        _init_runtime(args)

        if args.version:
            meta = get_metadata()
            get_logger().info("%s %s (%s)", PROGRAM_DISPLAY, meta.version, meta.commit)
            return 0

        if get_sys_version_info() < (3, 11):
            get_logger().error("%s requires Python 3.11 or newer.", PROGRAM_DISPLAY)
            return 1

        if args.selftest:
            return 0 if run_selftest() else 1

        return _link(args)

    # BundleError derives from RuntimeError and carries its own exit code
    except (FileNotFoundError, ValueError, TypeError, RuntimeError) as e:
        return _report(e, expected=True)
    except Exception as e:  # noqa: BLE001
        return _report(e, expected=False)
