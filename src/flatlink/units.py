# src/flatlink/units.py
"""Compiled units and the native bindings they ask for.

A unit starts life as the raw text of one compiled artifact and is
carried through the pipeline as a mutable record: the stripper fills in
its exports and dependencies, the import translator its native bindings
and version pins, and each stage replaces `body` with its output.
"""

from __future__ import annotations

import posixpath
from collections.abc import Collection
from dataclasses import dataclass, field
from pathlib import Path

from .constants import UNIT_SUFFIX
from .errors import ReadError
from .logs import get_logger


@dataclass(frozen=True)
class NativeBinding:
    """One name the runtime supplies, e.g. `Gtk` from `imports.gi`.

    `member` is the property destructured from `accessor`; None binds the
    accessor object itself.
    """

    local: str
    accessor: str
    member: str | None = None

    @property
    def target(self) -> tuple[str, str | None]:
        return (self.accessor, self.member)


@dataclass
class Unit:
    name: str
    path: Path | None
    source: str
    body: str = ""

    # filled by the stripper
    exports: dict[str, str] = field(default_factory=dict)  # exported → bare name
    reexports: dict[str, tuple[str, str]] = field(default_factory=dict)
    star_reexports: list[str] = field(default_factory=list)
    aliases: dict[str, str] = field(default_factory=dict)  # loader alias → unit
    dependencies: list[str] = field(default_factory=list)

    # filled by the import translator
    bindings: list[NativeBinding] = field(default_factory=list)
    pins: dict[str, str] = field(default_factory=dict)  # namespace → version

    def __post_init__(self) -> None:
        if not self.body:
            self.body = self.source

    @classmethod
    def from_text(cls, name: str, text: str) -> Unit:
        """Build an in-memory unit (no backing file)."""
        return cls(name=normalize_unit_name(name), path=None, source=text)

    @property
    def default_export(self) -> str | None:
        return self.exports.get("default")

    def add_dependency(self, name: str) -> None:
        if name != self.name and name not in self.dependencies:
            self.dependencies.append(name)


def normalize_unit_name(name: str) -> str:
    """Logical unit name: posix path relative to the source root, no suffix."""
    name = name.replace("\\", "/").strip()
    if name.endswith(UNIT_SUFFIX):
        name = name[: -len(UNIT_SUFFIX)]
    return posixpath.normpath(name).lstrip("/")


def is_relative_specifier(spec: str) -> bool:
    return spec.startswith(("./", "../")) or spec in (".", "..")


def resolve_specifier(
    from_unit: str,
    spec: str,
    known: Collection[str] | None = None,
) -> str:
    """Resolve a relative loader specifier to a logical unit name.

    `./dir` falls back to `./dir/index` when only the latter is known.
    """
    joined = posixpath.join(posixpath.dirname(from_unit), spec)
    name = normalize_unit_name(joined)
    if known is not None and name not in known:
        index = f"{name}/index"
        if index in known:
            return index
    return name


def read_units(src_root: Path, names: list[str]) -> list[Unit]:
    """Read the compiled artifact of every scheduled unit, in policy order."""
    logger = get_logger()
    units: list[Unit] = []
    for raw in names:
        name = normalize_unit_name(raw)
        path = src_root / f"{name}{UNIT_SUFFIX}"
        if not path.is_file():
            xmsg = f"Compiled artifact not found: {path}"
            raise ReadError(xmsg, unit=name)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            xmsg = f"Cannot read compiled artifact {path}: {e}"
            raise ReadError(xmsg, unit=name) from e

        logger.trace(f"[read] {name} ← {path} ({len(text)} chars)")
        units.append(Unit(name=name, path=path, source=text))
    return units
