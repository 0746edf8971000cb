# src/flatlink/config_resolve.py


import argparse
import os
from pathlib import Path
from typing import Any

from .config import determine_log_level
from .config_types import (
    BuildConfig,
    BuildConfigResolved,
    MetaBuildConfigResolved,
    OriginType,
    PathResolved,
    ResourceInput,
    ResourceResolved,
    RootConfig,
    RootConfigResolved,
)
from .constants import (
    DEFAULT_ENV_WATCH_INTERVAL,
    DEFAULT_OUT_DIR,
    DEFAULT_SCRIPT_NAME,
    DEFAULT_SRC_DIR,
    DEFAULT_STRICT_CONFIG,
    DEFAULT_WATCH_INTERVAL,
)
from .logs import get_logger, set_log_level
from .meta import PROGRAM_ENV
from .utils_types import cast_hint, make_pathresolved, make_resourceresolved

# --------------------------------------------------------------------------- #
# helpers
# --------------------------------------------------------------------------- #


def _normalize_path_with_root(
    raw: Path | str, context_root: Path | str
) -> tuple[Path, Path | str]:
    """
    Normalize a user-provided path (from CLI or config).

    - If absolute → treat that path as its own root (rel=".")
    - If relative → root = context_root, path = raw (preserve string form)
    """
    raw_path = Path(raw)
    rel: Path | str

    if raw_path.is_absolute():
        root = raw_path.resolve()
        rel = "."
    else:
        root = Path(context_root).resolve()
        rel = raw if isinstance(raw, str) else Path(raw)

    get_logger().trace(f"Normalized: raw={raw!r} → root={root}, rel={rel}")
    return root, rel


def _resolve_dir(
    key: str,
    cli_value: str | None,
    build_cfg: dict[str, Any],
    root_cfg: RootConfig,
    *,
    default: str,
    config_dir: Path,
    cwd: Path,
) -> PathResolved:
    """CLI (relative to cwd) → build → root (relative to config) → default."""
    origin: OriginType
    if cli_value:
        root, rel = _normalize_path_with_root(cli_value, cwd)
        origin = "cli"
    elif key in build_cfg:
        root, rel = _normalize_path_with_root(build_cfg[key], config_dir)
        origin = "config"
    elif key in root_cfg:
        root, rel = _normalize_path_with_root(root_cfg[key], config_dir)  # type: ignore[literal-required]
        origin = "config"
    else:
        root, rel = _normalize_path_with_root(default, config_dir)
        origin = "default"
    return make_pathresolved(rel, root, origin)


def _resolve_resources(
    raw_resources: list[str | ResourceInput],
    config_dir: Path,
) -> list[ResourceResolved]:
    logger = get_logger()
    resources: list[ResourceResolved] = []
    seen: set[str] = set()
    for raw in raw_resources:
        if isinstance(raw, str):
            src, dest, exclude = raw, None, []
        else:
            if "src" not in raw:
                xmsg = f"Resource entry {raw!r} is missing `src`"
                raise ValueError(xmsg)
            src = raw["src"]
            dest = raw.get("dest")
            exclude = list(raw.get("exclude", []))

        root, rel = _normalize_path_with_root(src.rstrip("/") or src, config_dir)
        entry = make_resourceresolved(rel, root, "config", dest=dest, exclude=exclude)
        if rel == ".":
            entry["dest"] = dest if dest is not None else root.name

        if entry["dest"] in seen:
            logger.warning(f"Resource destination {entry['dest']!r} is declared twice")
        seen.add(entry["dest"])

        full = root / rel
        if not full.exists():
            logger.warning(f"Resource path does not exist: {full} (origin: config)")
        resources.append(entry)
    return resources


# --------------------------------------------------------------------------- #
# main per-build resolver
# --------------------------------------------------------------------------- #


def resolve_build_config(
    build_cfg: BuildConfig,
    args: argparse.Namespace,
    config_dir: Path,
    cwd: Path,
    root_cfg: RootConfig | None = None,
) -> BuildConfigResolved:
    """Resolve a single BuildConfig into a BuildConfigResolved.

    Applies CLI overrides, normalizes paths, merges root defaults and
    attaches provenance metadata.
    """
    root_cfg = root_cfg or {}
    resolved_cfg: dict[str, Any] = dict(build_cfg)

    meta: MetaBuildConfigResolved = {
        "cli_root": cwd,
        "config_root": config_dir,
    }

    # ------------------------------
    # Ordering policy
    # ------------------------------
    if getattr(args, "units", None):
        resolved_cfg["units"] = list(args.units)
    else:
        resolved_cfg["units"] = list(resolved_cfg.get("units", []))

    # ------------------------------
    # Source tree and output directory
    # ------------------------------
    resolved_cfg["src"] = _resolve_dir(
        "src",
        getattr(args, "src", None),
        resolved_cfg,
        root_cfg,
        default=DEFAULT_SRC_DIR,
        config_dir=config_dir,
        cwd=cwd,
    )
    resolved_cfg["out"] = _resolve_dir(
        "out",
        getattr(args, "out", None),
        resolved_cfg,
        root_cfg,
        default=DEFAULT_OUT_DIR,
        config_dir=config_dir,
        cwd=cwd,
    )
    resolved_cfg["script"] = (
        getattr(args, "script", None)
        or resolved_cfg.get("script")
        or DEFAULT_SCRIPT_NAME
    )

    # ------------------------------
    # Resources
    # ------------------------------
    resolved_cfg["resources"] = _resolve_resources(
        resolved_cfg.get("resources", []), config_dir
    )

    # ------------------------------
    # Native bindings (build versions override root versions)
    # ------------------------------
    versions: dict[str, str] = dict(root_cfg.get("versions", {}))
    versions.update(resolved_cfg.get("versions", {}))
    resolved_cfg["versions"] = versions
    resolved_cfg["native_modules"] = list(resolved_cfg.get("native_modules", []))

    for key in ("entry", "entry_call", "banner"):
        resolved_cfg[key] = resolved_cfg.get(key)

    # ------------------------------
    # Log level
    # ------------------------------
    build_log = resolved_cfg.get("log_level")
    root_log = root_cfg.get("log_level")
    resolved_cfg["log_level"] = determine_log_level(args, root_log, build_log)

    # config-only keys that have no resolved counterpart
    resolved_cfg.pop("strict_config", None)
    resolved_cfg.pop("watch_interval", None)

    resolved_cfg["dry_run"] = bool(getattr(args, "dry_run", False))
    resolved_cfg["__meta__"] = meta
    return cast_hint(BuildConfigResolved, resolved_cfg)


# --------------------------------------------------------------------------- #
# root-level resolver
# --------------------------------------------------------------------------- #


def resolve_config(
    root_input: RootConfig,
    args: argparse.Namespace,
    config_dir: Path,
    cwd: Path,
) -> RootConfigResolved:
    """Fully resolve a loaded RootConfig into a ready-to-run RootConfigResolved."""
    logger = get_logger()
    root_cfg = cast_hint(RootConfig, dict(root_input))

    # ------------------------------
    # Watch interval
    # ------------------------------
    env_watch = os.getenv(f"{PROGRAM_ENV}_{DEFAULT_ENV_WATCH_INTERVAL}") or os.getenv(
        DEFAULT_ENV_WATCH_INTERVAL
    )
    cli_watch = getattr(args, "watch", None)
    if cli_watch is not None and cli_watch > 0:  # bare --watch passes -1
        watch_interval = cli_watch
    elif env_watch is not None:
        try:
            watch_interval = float(env_watch)
        except ValueError:
            logger.warning(
                f"Invalid {DEFAULT_ENV_WATCH_INTERVAL}={env_watch!r}, using default."
            )
            watch_interval = DEFAULT_WATCH_INTERVAL
    else:
        watch_interval = root_cfg.get("watch_interval", DEFAULT_WATCH_INTERVAL)

    # ------------------------------
    # Log level
    # ------------------------------
    #  log_level: arg -> env -> root -> default
    log_level = determine_log_level(args, root_cfg.get("log_level"), None)
    set_log_level(log_level)

    # ------------------------------
    # Resolve builds
    # ------------------------------
    builds_input = root_cfg.get("builds", [])
    resolved_builds = [
        resolve_build_config(b, args, config_dir, cwd, root_cfg) for b in builds_input
    ]

    resolved_root: RootConfigResolved = {
        "builds": resolved_builds,
        "strict_config": root_cfg.get("strict_config", DEFAULT_STRICT_CONFIG),
        "watch_interval": watch_interval,
        "log_level": log_level,
    }

    return resolved_root
