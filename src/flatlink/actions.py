# src/flatlink/actions.py
import re
import shutil
import subprocess
import tempfile
import time
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from .build import run_build
from .config_types import BuildConfigResolved
from .constants import DEFAULT_WATCH_INTERVAL, UNIT_SEPARATOR, UNIT_SUFFIX
from .logs import get_logger
from .meta import PROGRAM_DISPLAY, PROGRAM_SCRIPT, Metadata
from .units import normalize_unit_name
from .utils_types import make_pathresolved, make_resourceresolved


def _collect_watched_files(resolved_builds: list[BuildConfigResolved]) -> list[Path]:
    """Every compiled unit and resource file the builds read from."""
    files: set[Path] = set()

    for b in resolved_builds:
        src_root = (Path(b["src"]["root"]) / b["src"]["path"]).resolve()
        for name in b.get("units", []):
            files.add(src_root / f"{normalize_unit_name(name)}{UNIT_SUFFIX}")

        for res in b.get("resources", []):
            path = Path(res["path"])
            full = (path if path.is_absolute() else Path(res["root"]) / path).resolve()
            if full.is_dir():
                files.update(p.resolve() for p in full.rglob("*") if p.is_file())
            else:
                files.add(full)

    return sorted(files)


def _snapshot(files: list[Path]) -> dict[Path, float]:
    mtimes: dict[Path, float] = {}
    for f in files:
        with suppress(OSError):
            mtimes[f] = f.stat().st_mtime
    return mtimes


def _safe_rebuild(rebuild_func: Callable[[], None]) -> bool:
    """Run one rebuild; a failure is reported and watching goes on."""
    logger = get_logger()
    try:
        rebuild_func()
    except (FileNotFoundError, ValueError, TypeError, RuntimeError) as e:
        logger.error_if_not_debug(f"Rebuild failed: {e}")
        return False
    return True


def watch_for_changes(
    rebuild_func: Callable[[], None],
    resolved_builds: list[BuildConfigResolved],
    interval: float = DEFAULT_WATCH_INTERVAL,
) -> None:
    """Poll file modification times and rebuild when changes are detected.

    Features:
    - Watches every scheduled unit and every declared resource file.
    - Skips files inside each build's output directory.
    - Re-collects the file set every loop so new resource files are seen.
    - A failed rebuild is logged and the previous output stays in place.
    Stops on KeyboardInterrupt.
    """
    logger = get_logger()
    logger.info(
        "👀 Watching for changes (interval=%.2fs)... Press Ctrl+C to stop.", interval
    )

    out_dirs: list[Path] = [
        (Path(b["out"]["root"]) / b["out"]["path"]).resolve() for b in resolved_builds
    ]

    def _watched() -> list[Path]:
        return [
            f
            for f in _collect_watched_files(resolved_builds)
            if not any(f.is_relative_to(out_dir) for out_dir in out_dirs)
        ]

    watched = _watched()
    logger.trace(f"[WATCH] initial files: {[str(f) for f in watched]}")
    mtimes = _snapshot(watched)

    _safe_rebuild(rebuild_func)  # initial build

    try:
        while True:
            time.sleep(interval)

            watched = _watched()
            current = _snapshot(watched)
            changed = [
                f
                for f in set(current) | set(mtimes)
                if current.get(f) != mtimes.get(f)
            ]

            if changed:
                logger.info(
                    "\n🔁 Detected %d modified file(s). Rebuilding...", len(changed)
                )
                logger.trace(f"[WATCH] changed: {sorted(str(f) for f in changed)}")
                _safe_rebuild(rebuild_func)
                mtimes = _snapshot(watched)
    except KeyboardInterrupt:
        logger.info("\n🛑 Watch stopped.")


def get_metadata() -> Metadata:
    """Return (version, commit) tuple for this tool.

    Reads the version from pyproject.toml and the commit from git,
    falling back to "unknown" for either.
    """
    logger = get_logger()
    version = "unknown"
    commit = "unknown"

    root = Path(__file__).resolve().parents[2]
    pyproject = root / "pyproject.toml"
    if pyproject.exists():
        logger.trace(f"trying to read metadata from {pyproject}")
        text = pyproject.read_text(encoding="utf-8")
        match = re.search(r'(?m)^\s*version\s*=\s*["\']([^"\']+)["\']', text)
        if match:
            version = match.group(1)

    with suppress(Exception):
        logger.trace("trying to get commit from git")
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            cwd=root,
            capture_output=True,
            text=True,
            check=True,
        )
        commit = result.stdout.strip() or "unknown"

    logger.trace(f"got package version {version} with commit {commit}")
    return Metadata(version, commit)


# --- self-test ---------------------------------------------------------------

_SELFTEST_UNITS = {
    "a": (
        '"use strict";\n'
        'Object.defineProperty(exports, "__esModule", { value: true });\n'
        "exports.foo = void 0;\n"
        "function foo() { return 1; }\n"
        "exports.foo = foo;\n"
    ),
    "b": (
        '"use strict";\n'
        'Object.defineProperty(exports, "__esModule", { value: true });\n'
        "exports.bar = void 0;\n"
        'const a_1 = require("./a");\n'
        "function bar() { return (0, a_1.foo)() + 1; }\n"
        "exports.bar = bar;\n"
    ),
    "c": (
        '"use strict";\n'
        'Object.defineProperty(exports, "__esModule", { value: true });\n'
        'const a_1 = require("./a");\n'
        'const b_1 = require("./b");\n'
        "print((0, a_1.foo)() + (0, b_1.bar)());\n"
    ),
}


def run_selftest() -> bool:
    """Run a lightweight functional test of the tool itself."""
    logger = get_logger()
    logger.info("🧪 Running self-test...")

    tmp_dir: Path | None = None
    try:
        tmp_dir = Path(tempfile.mkdtemp(prefix=f"{PROGRAM_SCRIPT}-selftest-"))
        src = tmp_dir / "build"
        out = tmp_dir / "dist"
        data = tmp_dir / "data"
        src.mkdir()
        data.mkdir()

        for name, text in _SELFTEST_UNITS.items():
            (src / f"{name}{UNIT_SUFFIX}").write_text(text, encoding="utf-8")
        (data / "hello.txt").write_text(f"hello {PROGRAM_DISPLAY}!", encoding="utf-8")

        build_cfg: BuildConfigResolved = {
            "units": list(_SELFTEST_UNITS),
            "src": make_pathresolved(src, tmp_dir, "code"),
            "out": make_pathresolved(out, tmp_dir, "code"),
            "script": "main.js",
            "resources": [make_resourceresolved(data, tmp_dir, "code")],
            "versions": {},
            "native_modules": [],
            "entry": None,
            "entry_call": None,
            "banner": None,
            "log_level": "info",
            "dry_run": False,
            "__meta__": {"cli_root": tmp_dir, "config_root": tmp_dir},
        }

        logger.debug("[SELFTEST] using temp dir: %s", tmp_dir)

        for dry_run in (True, False):
            build_cfg["dry_run"] = dry_run
            run_build(build_cfg)

        script = (out / "main.js").read_text(encoding="utf-8")
        markers = [UNIT_SEPARATOR.format(name=n) for n in _SELFTEST_UNITS]
        positions = [script.find(m) for m in markers]
        copied = out / "data" / "hello.txt"
        if (
            all(p >= 0 for p in positions)
            and positions == sorted(positions)
            and "require(" not in script
            and "print(foo() + bar());" in script
            and copied.exists()
            and copied.read_text(encoding="utf-8") == f"hello {PROGRAM_DISPLAY}!"
        ):
            logger.info(
                "✅ Self-test passed — %s is working correctly.", PROGRAM_DISPLAY
            )
            return True

        logger.error("Self-test failed: linked output not found or invalid.")
        return False

    except PermissionError:
        logger.error("Self-test failed: insufficient permissions.")  # noqa: TRY400
        return False
    except FileNotFoundError:
        logger.error("Self-test failed: missing file or directory.")  # noqa: TRY400
        return False
    except Exception:
        # unexpected failure: show the traceback and ask for a bug report
        logger.exception(
            "Unexpected self-test failure. "
            "Please report this issue with the following traceback:"
        )
        return False

    finally:
        if tmp_dir and tmp_dir.exists():
            shutil.rmtree(tmp_dir, ignore_errors=True)
