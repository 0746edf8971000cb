# src/flatlink/utils_schema.py
"""TypedDict-driven config validation with typo hints and message buckets."""

from __future__ import annotations

import types
from dataclasses import dataclass
from difflib import get_close_matches
from typing import Any, TypedDict, Union, get_args, get_origin

from .constants import DEFAULT_HINT_CUTOFF
from .utils import plural
from .utils_types import cast_hint, safe_isinstance, schema_from_typeddict

AGG_STRICT_WARN = "strict_warnings"
AGG_WARN = "warnings"

TOP_LEVEL_CONTEXT = "in top-level configuration"

_UNION_ORIGINS = (Union, types.UnionType)


class _AggEntry(TypedDict):
    msg: str
    contexts: list[str]


# severity bucket → group tag → message template and every context it hit
SchemaErrorAggregator = dict[str, dict[str, _AggEntry]]


@dataclass
class ValidationSummary:
    valid: bool
    errors: list[str]
    strict_warnings: list[str]
    warnings: list[str]
    strict: bool


def collect_msg(
    strict: bool,
    msg: str,
    summary: ValidationSummary,
    *,
    is_error: bool = False,
) -> None:
    """File `msg` as an error, a strict warning or a plain warning."""
    if is_error:
        summary.errors.append(msg)
    elif strict:
        summary.strict_warnings.append(msg)
    else:
        summary.warnings.append(msg)


def _strip_preposition(ctx: str) -> str:
    ctx = ctx.strip()
    head, _, rest = ctx.partition(" ")
    return rest.strip() if head.lower() in {"in", "on"} and rest else ctx


def flush_schema_aggregators(
    summary: ValidationSummary,
    agg: SchemaErrorAggregator,
) -> None:
    """Emit each aggregated group once, naming all the places it occurred."""
    for severity, strict in ((AGG_STRICT_WARN, True), (AGG_WARN, False)):
        bucket = agg.get(severity)
        if not bucket:
            continue
        if strict:
            summary.valid = False
        for tag, entry in bucket.items():
            places = ", ".join(_strip_preposition(c) for c in entry["contexts"])
            collect_msg(strict, entry["msg"].format(keys=tag, ctx=f"in {places}"), summary)
        bucket.clear()


# ---------------------------------------------------------------------------
# type checks
# ---------------------------------------------------------------------------


def _is_typeddict(typ: Any) -> bool:
    return isinstance(typ, type) and hasattr(typ, "__total__")


def _type_label(typ: Any) -> str:
    """Readable name for a type hint, e.g. 'list[str]' or 'str | ResourceInput'."""
    origin = get_origin(typ)
    args = get_args(typ)
    if origin in (list, dict) and args:
        return f"{origin.__name__}[{', '.join(_type_label(a) for a in args)}]"
    if origin in _UNION_ORIGINS:
        return " | ".join(_type_label(a) for a in args)
    return typ.__name__ if isinstance(typ, type) else str(typ)


def _type_error(context: str, key: str, expected: str, val: Any) -> str:
    return f"{context}: key `{key}` expected {expected}, got {type(val).__name__}"


def _check_value(
    strict: bool,
    context: str,
    key: str,
    val: Any,
    expected: Any,
    *,
    summary: ValidationSummary,
    prewarn: set[str],
) -> bool:
    if get_origin(expected) is list:
        args = get_args(expected)
        return _check_list(
            strict,
            context,
            key,
            val,
            args[0] if args else Any,
            summary=summary,
            prewarn=prewarn,
        )
    if _is_typeddict(expected):
        return _check_object(
            strict,
            f"{context}.{key}",
            val,
            schema_from_typeddict(expected),
            expected.__name__,
            summary=summary,
            prewarn=prewarn,
        )
    if safe_isinstance(val, expected):
        return True
    collect_msg(
        True, _type_error(context, key, _type_label(expected), val), summary, is_error=True
    )
    return False


def _check_list(
    strict: bool,
    context: str,
    key: str,
    val: Any,
    item_type: Any,
    *,
    summary: ValidationSummary,
    prewarn: set[str],
) -> bool:
    if not isinstance(val, list):
        expected = f"list[{_type_label(item_type)}]"
        collect_msg(True, _type_error(context, key, expected, val), summary, is_error=True)
        return False

    # objects inside `str | SomeTypedDict` lists are checked field by field
    object_type = None
    if get_origin(item_type) in _UNION_ORIGINS:
        object_type = next((a for a in get_args(item_type) if _is_typeddict(a)), None)

    ok = True
    for i, item in enumerate(cast_hint(list[Any], val)):
        expected = object_type if object_type and isinstance(item, dict) else item_type
        ok &= _check_value(
            strict,
            context,
            f"{key}[{i}]",
            item,
            expected,
            summary=summary,
            prewarn=prewarn,
        )
    return ok


def _unknown_keys_msg(unknown: list[str], known: list[str], context: str) -> str:
    joined = ", ".join(f"`{k}`" for k in unknown)
    msg = f"Unknown key{plural(unknown)} {joined} {context}."
    hints = [
        f"'{k}' → '{match[0]}'"
        for k in unknown
        if (match := get_close_matches(k, known, n=1, cutoff=DEFAULT_HINT_CUTOFF))
    ]
    if hints:
        msg += "\nHint: did you mean " + ", ".join(hints) + "?"
    return msg


def _check_object(
    strict: bool,
    context: str,
    val: Any,
    schema: dict[str, Any],
    type_name: str,
    *,
    summary: ValidationSummary,
    prewarn: set[str],
    ignore_keys: set[str] | None = None,
) -> bool:
    """Check every known field of `val` and report keys the schema lacks.

    Missing fields are fine; every field is optional at this stage.
    Unknown keys are warnings, fatal only when `strict`.
    """
    if not isinstance(val, dict):
        collect_msg(
            True,
            f"{context}: expected an object with named keys for"
            f" {type_name}, got {type(val).__name__}",
            summary,
            is_error=True,
        )
        return False

    fields = cast_hint(dict[str, Any], val)
    skip = prewarn | (ignore_keys or set())
    ok = True
    for key, expected in schema.items():
        if key in fields and key not in skip:
            ok &= _check_value(
                strict,
                context,
                key,
                fields[key],
                expected,
                summary=summary,
                prewarn=prewarn,
            )

    unknown = [k for k in fields if k not in schema and k not in prewarn]
    if unknown:
        collect_msg(strict, _unknown_keys_msg(unknown, list(schema), context), summary)
        ok = ok and not strict
    return ok


# ---------------------------------------------------------------------------
# public entry points
# ---------------------------------------------------------------------------


def warn_keys_once(
    strict_config: bool,
    tag: str,
    bad_keys: set[str],
    cfg: dict[str, Any],
    context: str,
    msg: str,
    summary: ValidationSummary,
    *,
    agg: SchemaErrorAggregator | None,
) -> tuple[bool, set[str]]:
    """Report any of `bad_keys` present in `cfg` (case-insensitively).

    With `agg`, the report is deferred so one message can cover all contexts.
    Returns `(still_valid, keys_found)`; found keys should be skipped by the
    schema check.
    """
    wanted = {k.lower() for k in bad_keys}
    found = {k for k in cfg if k.lower() in wanted}
    if not found:
        return True, set()

    if agg is None:
        collect_msg(
            strict_config,
            msg.format(keys=", ".join(sorted(found)), ctx=context),
            summary,
        )
    else:
        bucket = agg.setdefault(AGG_STRICT_WARN if strict_config else AGG_WARN, {})
        bucket.setdefault(tag, {"msg": msg, "contexts": []})["contexts"].append(context)

    return not strict_config, found


def check_schema_conformance(
    strict_config: bool,
    cfg: dict[str, Any],
    schema: dict[str, Any],
    context: str,
    *,
    summary: ValidationSummary,
    prewarn: set[str] | None = None,
    ignore_keys: set[str] | None = None,
) -> bool:
    """Validate `cfg` against a field → type mapping."""
    return _check_object(
        strict_config,
        context,
        cfg,
        schema,
        "config",
        summary=summary,
        prewarn=prewarn or set(),
        ignore_keys=ignore_keys,
    )
