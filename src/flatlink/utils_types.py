# src/flatlink/utils_types.py

import types
import typing
from pathlib import Path
from typing import Any, TypeVar, Union, cast, get_args, get_origin, get_type_hints

from .config_types import OriginType, PathResolved, ResourceResolved

T = TypeVar("T")


def cast_hint(typ: type[T], value: Any) -> T:
    """Explicit cast that documents intent without changing the value.

    Unlike typing.cast, accepts subscripted generics like list[str]
    without a string form.
    """
    return cast(T, value)


def _is_typeddict(typ: Any) -> bool:
    return (
        isinstance(typ, type)
        and hasattr(typ, "__annotations__")
        and hasattr(typ, "__total__")
    )


def safe_isinstance(value: Any, expected_type: Any) -> bool:  # noqa: PLR0911
    """isinstance() that understands Any, Union/Optional, Literal,
    list[T], dict[K, V] and TypedDict classes."""
    if expected_type is Any:
        return True

    origin = get_origin(expected_type)
    args = get_args(expected_type)

    if origin in (Union, types.UnionType):
        return any(safe_isinstance(value, arg) for arg in args)

    if origin is typing.Literal:
        return value in args

    if origin is list:
        if not isinstance(value, list):
            return False
        if not args:
            return True
        return all(safe_isinstance(item, args[0]) for item in value)

    if origin is dict:
        if not isinstance(value, dict):
            return False
        if not args:
            return True
        key_t, val_t = args
        return all(
            safe_isinstance(k, key_t) and safe_isinstance(v, val_t)
            for k, v in value.items()
        )

    if _is_typeddict(expected_type):
        return isinstance(value, dict)

    if expected_type is float:
        # JSON numbers: accept ints where floats are expected
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    if isinstance(expected_type, type):
        return isinstance(value, expected_type)

    return False


def schema_from_typeddict(td: type[Any]) -> dict[str, Any]:
    """Return field → type mapping for a TypedDict class."""
    return get_type_hints(td)


def make_pathresolved(
    path: Path | str,
    root: Path | str = ".",
    origin: OriginType = "code",
) -> PathResolved:
    """Quick helper to build a PathResolved entry."""
    return {
        "path": path,
        "root": Path(root).resolve(),
        "origin": origin,
    }


def make_resourceresolved(
    path: Path | str,
    root: Path | str = ".",
    origin: OriginType = "code",
    *,
    dest: str | None = None,
    exclude: list[str] | None = None,
) -> ResourceResolved:
    """Quick helper to build a ResourceResolved entry.

    `dest` defaults to the basename of `path`.
    """
    return {
        "path": path,
        "root": Path(root).resolve(),
        "origin": origin,
        "dest": dest if dest is not None else Path(path).name,
        "exclude": list(exclude or []),
    }
