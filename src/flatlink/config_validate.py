# src/flatlink/config_validate.py
"""Schema and cross-field validation of a normalized flatlink config."""

from typing import Any

from .config_types import BuildConfig, RootConfig
from .constants import DEFAULT_STRICT_CONFIG
from .utils_schema import (
    TOP_LEVEL_CONTEXT,
    SchemaErrorAggregator,
    ValidationSummary,
    check_schema_conformance,
    collect_msg,
    flush_schema_aggregators,
    warn_keys_once,
)
from .utils_types import cast_hint, schema_from_typeddict

# (aggregation tag, keys, message) for keys that look like options but are not.
# Each group is reported once, listing every place it appeared.
CLI_ONLY_GROUPS: list[tuple[str, set[str], str]] = [
    (
        "dry-run",
        {"dry-run", "dry_run", "dryrun", "no-op", "no_op", "noop"},
        "Ignored config key(s) {keys} {ctx}: this tool has no config option for it. "
        "Use the CLI flag '--dry-run' instead.",
    ),
    (
        "watch",
        {"watch"},
        "Ignored config key(s) {keys} {ctx}: watch mode is not a config option. "
        "Use the CLI flag '--watch' instead.",
    ),
]
ROOT_ONLY_GROUP: tuple[str, set[str], str] = (
    "root-only",
    {"watch_interval"},
    "Ignored {keys} {ctx}: these options only apply at the root level.",
)


def _strictness(cfg: dict[str, Any], default: bool, forced: bool | None) -> bool:
    """An explicit `strict` argument beats a `strict_config` key in `cfg`."""
    if forced is not None:
        return forced
    value = cfg.get("strict_config")
    return value if isinstance(value, bool) else default


def _misplaced_keys(
    strict: bool,
    cfg: dict[str, Any],
    context: str,
    groups: list[tuple[str, set[str], str]],
    summary: ValidationSummary,
    agg: SchemaErrorAggregator,
) -> set[str]:
    found: set[str] = set()
    for tag, keys, msg in groups:
        _ok, hits = warn_keys_once(
            strict, tag, keys, cfg, context, msg, summary, agg=agg
        )
        found |= hits
    return found


def _has_failures(summary: ValidationSummary) -> bool:
    return bool(summary.errors or summary.strict_warnings)


def _check_unit_list(
    build: dict[str, Any],
    context: str,
    summary: ValidationSummary,
) -> None:
    """Duplicate units and an `entry` outside `units` break linking."""
    units = build.get("units")
    if not isinstance(units, list):
        return
    names = [u for u in units if isinstance(u, str)]

    repeated = sorted({u for u in names if names.count(u) > 1})
    if repeated:
        collect_msg(
            True,
            f"{context}: `units` lists {', '.join(repeated)} more than once",
            summary,
            is_error=True,
        )

    entry = build.get("entry")
    if isinstance(entry, str) and names and entry not in names:
        collect_msg(
            True,
            f"{context}: `entry` {entry!r} is not one of the build's `units`",
            summary,
            is_error=True,
        )


def _validate_build(
    index: int,
    raw: Any,
    strict: bool,
    summary: ValidationSummary,
    agg: SchemaErrorAggregator,
) -> None:
    label = f"Build #{index}"
    if not isinstance(raw, dict):
        collect_msg(
            True,
            f"{label} must be an object with named keys (not a list or value)",
            summary,
            is_error=True,
        )
        return

    build = cast_hint(dict[str, Any], raw)
    context = f"in build #{index}"
    prewarn = _misplaced_keys(
        strict, build, context, [*CLI_ONLY_GROUPS, ROOT_ONLY_GROUP], summary, agg
    )
    ok = check_schema_conformance(
        strict,
        build,
        schema_from_typeddict(BuildConfig),
        context,
        summary=summary,
        prewarn=prewarn,
    )
    if not ok and not _has_failures(summary):
        collect_msg(True, f"{label} schema invalid", summary, is_error=True)

    _check_unit_list(build, context, summary)


def validate_config(
    parsed_cfg: dict[str, Any], *, strict: bool | None = None
) -> ValidationSummary:
    """Validate a config already normalized by `parse_config`.

    Strictness comes from `strict` when given, else from `strict_config` at
    the root, which each build may override for itself. In strict mode
    warnings are fatal but still listed separately as strict warnings.
    """
    root_strict = _strictness(parsed_cfg, DEFAULT_STRICT_CONFIG, strict)
    summary = ValidationSummary(
        valid=True,
        errors=[],
        strict_warnings=[],
        warnings=[],
        strict=root_strict,
    )
    agg: SchemaErrorAggregator = {}

    prewarn = _misplaced_keys(
        root_strict, parsed_cfg, TOP_LEVEL_CONTEXT, CLI_ONLY_GROUPS, summary, agg
    )
    ok = check_schema_conformance(
        root_strict,
        parsed_cfg,
        schema_from_typeddict(RootConfig),
        TOP_LEVEL_CONTEXT,
        summary=summary,
        prewarn=prewarn,
        ignore_keys={"builds"},
    )
    if not ok and not _has_failures(summary):
        collect_msg(True, "Top-level configuration invalid.", summary, is_error=True)

    builds: Any = parsed_cfg.get("builds", [])
    if not isinstance(builds, list):
        collect_msg(True, "`builds` must be a list of builds.", summary, is_error=True)
    elif not builds:
        tail = "." if _has_failures(summary) else ";  continuing with empty configuration"
        collect_msg(False, f"No `builds` key defined{tail}", summary)
    else:
        for index, raw in enumerate(cast_hint(list[Any], builds), start=1):
            build_strict = (
                _strictness(raw, root_strict, strict)
                if isinstance(raw, dict)
                else root_strict
            )
            _validate_build(index, raw, build_strict, summary, agg)

    flush_schema_aggregators(summary, agg)
    summary.valid = not _has_failures(summary)
    return summary
