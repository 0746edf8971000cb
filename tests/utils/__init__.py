# tests/utils/__init__.py

from .buildconfig import (
    make_build_cfg,
    make_build_input,
    make_meta,
    make_resolved,
    make_resource_resolved,
    write_unit,
)
from .config_validate import make_summary
from .force_mtime_advance import force_mtime_advance
from .patch_everywhere import patch_everywhere
from .trace import TRACE, make_trace

__all__ = [
    "TRACE",
    "force_mtime_advance",
    "make_build_cfg",
    "make_build_input",
    "make_meta",
    "make_resolved",
    "make_resource_resolved",
    "make_summary",
    "make_trace",
    "patch_everywhere",
    "write_unit",
]
