# src/flatlink/config_types.py
from __future__ import annotations

from pathlib import Path
from typing import Literal, TypedDict, Union

from typing_extensions import NotRequired

OriginType = Literal["cli", "config", "default", "code", "test"]


class PathResolved(TypedDict):
    path: Path | str  # absolute or relative to `root`
    root: Path  # canonical origin directory for resolution

    # meta only
    origin: OriginType  # provenance


class ResourceResolved(PathResolved):
    dest: str  # subpath under the output directory
    exclude: list[str]


class MetaBuildConfigResolved(TypedDict):
    # sources of parameters
    cli_root: Path
    config_root: Path


class ResourceInput(TypedDict):
    src: str
    dest: NotRequired[str]
    exclude: NotRequired[list[str]]


class BuildConfig(TypedDict, total=False):
    # ordering policy: explicit total order of unit names
    units: list[str]

    # compiled-module tree and emitted artifact
    src: str
    out: str
    script: str
    resources: list[Union[str, ResourceInput]]

    # native bindings
    versions: dict[str, str]
    native_modules: list[str]

    # runtime entry contract
    entry: str
    entry_call: str
    banner: str

    # optional per-build override
    strict_config: bool
    log_level: str

    # Single-build convenience (propagated upward)
    watch_interval: float


class RootConfig(TypedDict, total=False):
    builds: list[BuildConfig]

    # Defaults that cascade into each build
    log_level: str
    out: str
    src: str
    versions: dict[str, str]

    # runtime behavior
    strict_config: bool
    watch_interval: float


class BuildConfigResolved(TypedDict):
    units: list[str]
    src: PathResolved
    out: PathResolved
    script: str
    resources: list[ResourceResolved]

    versions: dict[str, str]
    native_modules: list[str]

    entry: str | None
    entry_call: str | None
    banner: str | None

    log_level: str

    # runtime flag (CLI only, not persisted in normal configs)
    dry_run: bool

    # global provenance (optional, for audit/debug)
    __meta__: MetaBuildConfigResolved


class RootConfigResolved(TypedDict):
    builds: list[BuildConfigResolved]

    # runtime behavior
    log_level: str
    strict_config: bool
    watch_interval: float


class Runtime(TypedDict):
    log_level: str
    use_color: bool
