# src/flatlink/constants.py
"""
Central constants used across the project.
"""

# --- env keys ---
DEFAULT_ENV_LOG_LEVEL: str = "LOG_LEVEL"
DEFAULT_ENV_WATCH_INTERVAL: str = "WATCH_INTERVAL"

# --- config defaults ---
DEFAULT_STRICT_CONFIG: bool = True
DEFAULT_SRC_DIR: str = "build"
DEFAULT_OUT_DIR: str = "dist"
DEFAULT_SCRIPT_NAME: str = "main.js"
DEFAULT_LOG_LEVEL: str = "info"
DEFAULT_WATCH_INTERVAL: float = 1.0  # seconds
DEFAULT_HINT_CUTOFF: float = 0.6

# --- compiled unit layout ---
UNIT_SUFFIX: str = ".js"
UNIT_SEPARATOR: str = "// ---- flatlink unit: {name} ----"

# --- documented resource layout under the output directory ---
RESOURCE_LAYOUT: dict[str, str] = {
    "data": "data",
    "ui": "ui",
    "icons": "icons",
}

# --- native binding namespaces ---
GI_MODULE: str = "gi"
GI_SCHEME: str = "gi://"
GI_ACCESSOR: str = "imports.gi"

# core-services modules reachable as `imports.<name>`
CORE_MODULES: frozenset[str] = frozenset(
    {
        "system",
        "gettext",
        "cairo",
        "mainloop",
        "byteArray",
        "format",
        "signals",
        "lang",
    }
)

# typelib namespaces that ship ABI-incompatible versions side by side
MULTI_VERSION_NAMESPACES: frozenset[str] = frozenset(
    {
        "Gtk",
        "Gdk",
        "GdkX11",
        "GtkSource",
        "Soup",
        "WebKit2",
        "Vte",
        "Clutter",
    }
)

# compiler-inserted interop helpers
SHIM_HELPERS: frozenset[str] = frozenset(
    {
        "__importDefault",
        "__importStar",
        "__createBinding",
        "__setModuleDefault",
        "__exportStar",
    }
)
