# src/flatlink/resources.py
"""Mirror declared non-code resources into the output directory."""

from __future__ import annotations

import shutil
from fnmatch import fnmatch
from pathlib import Path

from .config_types import ResourceResolved
from .errors import ResourceCopyError
from .logs import get_logger


def is_excluded_raw(
    path: Path | str,
    exclude_patterns: list[str],
    root: Path | str,
) -> bool:
    """Match a path (relative to `root`) against glob excludes.

    - Patterns are matched against the posix path relative to `root`
      and against the bare file name.
    - Patterns ending in '/' exclude a directory and everything under it.
    """
    if not exclude_patterns:
        return False

    root = Path(root).resolve()
    path = Path(path)
    full_path = path if path.is_absolute() else (root / path)
    try:
        rel = full_path.resolve().relative_to(root).as_posix()
    except ValueError:
        # Path lies outside the root; skip matching
        return False

    for pattern in exclude_patterns:
        pat = pattern.replace("\\", "/")
        if pat.endswith("/"):
            core = pat.rstrip("/")
            if rel == core or rel.startswith(core + "/") or fnmatch(rel, f"**/{core}"):
                return True
            if full_path.is_dir() and fnmatch(full_path.name, core):
                return True
            continue
        if fnmatch(rel, pat) or fnmatch(full_path.name, pat):
            return True
    return False


def copy_file(
    src: Path | str,
    dest: Path | str,
    *,
    src_root: Path | str,
    dry_run: bool,
) -> None:
    logger = get_logger()
    src = Path(src)
    dest = Path(dest)
    src_root = Path(src_root)

    try:
        rel_src = src.relative_to(src_root)
    except ValueError:
        rel_src = src
    logger.debug(f"📄 {rel_src} → {dest}")

    if not dry_run:
        dest.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, dest)


def copy_directory(
    src: Path | str,
    dest: Path | str,
    exclude_patterns: list[str],
    *,
    src_root: Path | str,
    dry_run: bool,
) -> int:
    """Recursively copy directory contents, skipping excluded files/dirs.

    Exclusion matching is done relative to `src_root`, normally the
    resource's own source directory. Returns the number of files copied.
    """
    logger = get_logger()
    src = Path(src).resolve()
    src_root = Path(src_root).resolve()
    dest = Path(dest)

    # Ensure destination exists even if src is empty
    if not dry_run:
        dest.mkdir(parents=True, exist_ok=True)

    copied = 0
    for item in sorted(src.iterdir()):
        if is_excluded_raw(item, exclude_patterns, src_root):
            logger.debug(f"🚫  Skipped: {item.relative_to(src_root)}")
            continue

        target = dest / item.name
        if item.is_dir():
            logger.trace(f"📁 {item.relative_to(src_root)}")
            copied += copy_directory(
                item,
                target,
                exclude_patterns,
                src_root=src_root,
                dry_run=dry_run,
            )
        else:
            copy_file(item, target, src_root=src_root, dry_run=dry_run)
            copied += 1
    return copied


def mirror_resources(
    resources: list[ResourceResolved],
    out_dir: Path,
    *,
    dry_run: bool,
) -> int:
    """Copy every declared resource under `out_dir` at its `dest` subpath.

    Raises ResourceCopyError if a source is missing or a copy fails.
    Returns the number of files mirrored.
    """
    logger = get_logger()
    total = 0
    for res in resources:
        root = Path(res["root"]).resolve()
        src = Path(res["path"])
        src = src if src.is_absolute() else (root / src)
        dest = out_dir / res["dest"]

        if not src.exists():
            xmsg = f"Resource source not found: {src}"
            raise ResourceCopyError(xmsg)

        logger.trace(
            f"[RESOURCE] {res['origin']}: {src} → {dest}"
            f" (excludes={len(res['exclude'])})"
        )
        try:
            if src.is_dir():
                total += copy_directory(
                    src,
                    dest,
                    res["exclude"],
                    src_root=src,
                    dry_run=dry_run,
                )
            else:
                copy_file(src, dest, src_root=src.parent, dry_run=dry_run)
                total += 1
        except OSError as e:
            xmsg = f"Failed to copy resource {src} → {dest}: {e}"
            raise ResourceCopyError(xmsg) from e

    if dry_run:
        logger.info(f"🧪 (dry-run) Would mirror {total} resource file(s)")
    else:
        logger.debug(f"Mirrored {total} resource file(s)")
    return total
