# src/flatlink/build.py
"""Build driver: link the scheduled units and publish the output directory.

Stages run in order (read, strip, order check, translate, symbol table,
rewrite, render). Every stage either succeeds for all units or raises,
and nothing is written until all of them have passed. The output is
assembled in a staging directory next to `out` and swapped into place,
so a failed build leaves the previous output untouched.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from .config_types import BuildConfigResolved, PathResolved
from .imports import translate_unit
from .logs import get_log_level, get_logger, temporary_log_level
from .order import OrderingPolicy, render_artifact, validate_order
from .references import build_symbol_table, rewrite_unit
from .resources import mirror_resources
from .strip import strip_unit
from .units import Unit, read_units


def link_units(
    units: list[Unit],
    policy: OrderingPolicy,
    *,
    versions: dict[str, str] | None = None,
    native_modules: list[str] | None = None,
    banner: str | None = None,
    entry_call: str | None = None,
) -> str:
    """Run every transformation stage and return the flattened script."""
    logger = get_logger()
    known = set(policy.units)

    for unit in units:
        strip_unit(unit, known=known)
    validate_order(policy, units)

    for unit in units:
        translate_unit(
            unit,
            versions=versions or {},
            native_modules=native_modules or [],
        )
    table = build_symbol_table(units)
    for unit in units:
        rewrite_unit(unit, table)

    script = render_artifact(units, banner=banner, entry_call=entry_call)
    logger.debug(f"Linked {len(units)} unit(s) into {len(script)} chars")
    return script


def link_build(build_cfg: BuildConfigResolved) -> str:
    """Read the units a resolved build schedules and link them."""
    src_entry = build_cfg["src"]
    src_root = (Path(src_entry["root"]) / src_entry["path"]).resolve()
    policy = OrderingPolicy.from_names(build_cfg["units"], build_cfg.get("entry"))

    units = read_units(src_root, list(policy.units))
    return link_units(
        units,
        policy,
        versions=build_cfg.get("versions", {}),
        native_modules=build_cfg.get("native_modules", []),
        banner=build_cfg.get("banner"),
        entry_call=build_cfg.get("entry_call"),
    )


# --- publishing --------------------------------------------------------------


def _entry_path(entry: PathResolved) -> Path:
    return (Path(entry["root"]) / entry["path"]).resolve()


def check_output_dir(build_cfg: BuildConfigResolved, out_dir: Path) -> None:
    """Refuse an `out` that is, or contains, a directory the build reads from.

    Publishing replaces `out` wholesale.
    """
    meta = build_cfg["__meta__"]
    protected: list[tuple[str, Path]] = [
        ("the working directory", Path(meta["cli_root"]).resolve()),
        ("the config directory", Path(meta["config_root"]).resolve()),
        ("the compiled source tree", _entry_path(build_cfg["src"])),
    ]
    protected += [
        (f"resource {entry['path']!s}", _entry_path(entry))
        for entry in build_cfg["resources"]
    ]

    for what, path in protected:
        if out_dir == path or out_dir in path.parents:
            xmsg = (
                f"Output directory {out_dir} would replace {what} ({path});"
                " point `out` at a dedicated directory"
            )
            raise ValueError(xmsg)


def _swap_into_place(staging: Path, out_dir: Path) -> None:
    """Replace `out_dir` with `staging` using renames on one filesystem."""
    logger = get_logger()
    backup: Path | None = None
    if out_dir.exists():
        backup = out_dir.with_name(f".{out_dir.name}.old-{os.getpid()}")
        if backup.exists():
            shutil.rmtree(backup)
        out_dir.rename(backup)
    try:
        staging.rename(out_dir)
    except OSError:
        if backup is not None:
            backup.rename(out_dir)
        raise
    if backup is not None:
        shutil.rmtree(backup, ignore_errors=True)
    logger.trace(f"[PUBLISH] {staging} → {out_dir}")


def run_build(
    build_cfg: BuildConfigResolved,
) -> None:
    """Execute a single build task using a fully resolved config."""
    logger = get_logger()
    dry_run = build_cfg.get("dry_run", False)
    out_entry = build_cfg["out"]
    out_dir = (Path(out_entry["root"]) / out_entry["path"]).resolve()
    script_name = build_cfg["script"]

    logger.trace(f"[RUN_BUILD] out_dir={out_dir}, units={build_cfg['units']}")
    check_output_dir(build_cfg, out_dir)

    script = link_build(build_cfg)

    if dry_run:
        logger.info(f"🧪 (dry-run) Would write {out_dir / script_name} ({len(script)} chars)")
        mirror_resources(build_cfg["resources"], out_dir, dry_run=True)
        return

    out_dir.parent.mkdir(parents=True, exist_ok=True)
    staging = Path(tempfile.mkdtemp(prefix=f".{out_dir.name}.", dir=out_dir.parent))
    staging.chmod(0o755)  # mkdtemp creates 0700
    try:
        target = staging / script_name
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(script, encoding="utf-8")
        mirror_resources(build_cfg["resources"], staging, dry_run=False)
        _swap_into_place(staging, out_dir)
    except BaseException:
        shutil.rmtree(staging, ignore_errors=True)
        raise

    logger.info(f"✅ Build completed → {out_dir / script_name}\n")


def run_all_builds(
    resolved_builds: list[BuildConfigResolved],
    *,
    dry_run: bool,
) -> None:
    logger = get_logger()
    logger.trace(f"[run_all_builds] Resolved builds: {resolved_builds}")

    for i, build_cfg in enumerate(resolved_builds, 1):
        build_log_level = build_cfg.get("log_level") or get_log_level()
        build_cfg["dry_run"] = dry_run

        with temporary_log_level(build_log_level):
            logger.info(f"▶️  Build {i}/{len(resolved_builds)}")
            run_build(build_cfg)

    logger.info("🎉 All builds complete.")
