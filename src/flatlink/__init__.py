# src/flatlink/__init__.py

"""Flatlink — link compiled modules into one flat-scope script.

Full developer API
==================
This package re-exports all non-private symbols from its submodules,
making it suitable for programmatic use, custom integrations, or plugins.
Anything prefixed with "_" is considered internal and may change.

Highlights:
    - main()              → CLI entrypoint
    - run_build()         → Execute a build configuration
    - link_units()        → Run the linking stages on in-memory units
    - resolve_config()    → Merge CLI args with config files
    - get_metadata()      → Retrieve version / commit info
"""

from .actions import (
    get_metadata,
    run_selftest,
    watch_for_changes,
)
from .build import (
    link_build,
    link_units,
    run_all_builds,
    run_build,
)
from .cli import (
    main,
)
from .config import (
    find_config,
    load_and_validate_config,
    load_config,
    parse_config,
)
from .config_resolve import resolve_build_config, resolve_config
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
    Runtime,
)
from .config_validate import validate_config
from .constants import (
    DEFAULT_ENV_LOG_LEVEL,
    DEFAULT_ENV_WATCH_INTERVAL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_OUT_DIR,
    DEFAULT_SCRIPT_NAME,
    DEFAULT_SRC_DIR,
    DEFAULT_STRICT_CONFIG,
    DEFAULT_WATCH_INTERVAL,
)
from .errors import (
    BundleError,
    NameCollisionError,
    OrderViolation,
    ReadError,
    ResourceCopyError,
    TranslationError,
    UnresolvedReferenceError,
)
from .imports import resolve_native_specifier, translate_unit
from .logs import (
    LEVEL_ORDER,
    RESET,
    colorize,
    get_logger,
)
from .meta import (
    PROGRAM_DISPLAY,
    PROGRAM_ENV,
    PROGRAM_PACKAGE,
    PROGRAM_SCRIPT,
    Metadata,
)
from .order import OrderingPolicy, render_artifact, suggest_order, validate_order
from .references import SymbolTable, build_symbol_table, rewrite_unit
from .resources import copy_directory, copy_file, is_excluded_raw, mirror_resources
from .runtime import current_runtime
from .strip import strip_text, strip_unit
from .units import NativeBinding, Unit, read_units, resolve_specifier
from .utils import (
    load_jsonc,
    should_use_color,
)
from .utils_types import (
    make_pathresolved,
    make_resourceresolved,
    safe_isinstance,
    schema_from_typeddict,
)


__all__ = [  # noqa: RUF022
    # --- CLI / Actions ---
    "get_metadata",  # version info
    "main",
    "run_selftest",
    "watch_for_changes",
    #
    # --- Linker ---
    "NativeBinding",
    "OrderingPolicy",
    "SymbolTable",
    "Unit",
    "build_symbol_table",
    "link_build",
    "link_units",
    "read_units",
    "render_artifact",
    "resolve_native_specifier",
    "resolve_specifier",
    "rewrite_unit",
    "strip_text",
    "strip_unit",
    "suggest_order",
    "translate_unit",
    "validate_order",
    #
    # --- Build Engine ---
    "copy_directory",
    "copy_file",
    "is_excluded_raw",
    "mirror_resources",
    "run_all_builds",
    "run_build",
    #
    # --- Errors ---
    "BundleError",
    "NameCollisionError",
    "OrderViolation",
    "ReadError",
    "ResourceCopyError",
    "TranslationError",
    "UnresolvedReferenceError",
    #
    # --- Config Handling ---
    "find_config",
    "load_and_validate_config",
    "load_config",
    "parse_config",
    "resolve_build_config",
    "resolve_config",
    "validate_config",
    #
    # --- Constants / Metadata / Runtime ---
    "DEFAULT_ENV_LOG_LEVEL",
    "DEFAULT_ENV_WATCH_INTERVAL",
    "DEFAULT_LOG_LEVEL",
    "DEFAULT_OUT_DIR",
    "DEFAULT_SCRIPT_NAME",
    "DEFAULT_SRC_DIR",
    "DEFAULT_STRICT_CONFIG",
    "DEFAULT_WATCH_INTERVAL",
    "Metadata",
    "PROGRAM_DISPLAY",
    "PROGRAM_ENV",
    "PROGRAM_PACKAGE",
    "PROGRAM_SCRIPT",
    "current_runtime",
    #
    # --- utils ---
    "LEVEL_ORDER",
    "RESET",
    "colorize",
    "get_logger",
    "load_jsonc",
    "make_pathresolved",
    "make_resourceresolved",
    "safe_isinstance",
    "schema_from_typeddict",
    "should_use_color",
    #
    # --- Types ---
    "BuildConfig",
    "BuildConfigResolved",
    "MetaBuildConfigResolved",
    "OriginType",
    "PathResolved",
    "ResourceInput",
    "ResourceResolved",
    "RootConfig",
    "RootConfigResolved",
    "Runtime",
]
