# src/flatlink/utils.py

import json
import os
import re
import sys
from collections.abc import Sized
from contextlib import suppress
from pathlib import Path
from typing import Any, TextIO, cast

_TRUTHY = {"1", "true", "yes"}

# String literals are matched first so comment markers inside them survive.
_JSONC_COMMENTS = re.compile(
    r'"(?:\\.|[^"\\])*"|//[^\n]*|#[^\n]*|/\*.*?\*/',
    re.DOTALL,
)
_JSONC_TRAILING_COMMAS = re.compile(r'"(?:\\.|[^"\\])*"|,(?=\s*[}\]])')


def should_use_color() -> bool:
    """NO_COLOR wins, then a truthy FORCE_COLOR, then whether stdout is a TTY."""
    if "NO_COLOR" in os.environ:
        return False
    if os.getenv("FORCE_COLOR", "").lower() in _TRUTHY:
        return True
    return sys.stdout.isatty()


def _keep_strings(match: re.Match[str]) -> str:
    token = match.group(0)
    if token.startswith('"'):
        return token
    # blank out, but keep newlines so decode errors point at the right line
    return "\n" * token.count("\n")


def load_jsonc(path: Path) -> dict[str, Any] | list[Any] | None:
    """Load JSONC (JSON plus `//`, `#` and `/* */` comments and trailing commas).

    A file holding only comments or whitespace yields None.
    """
    if not path.exists():
        xmsg = f"JSONC file not found: {path}"
        raise FileNotFoundError(xmsg)
    if not path.is_file():
        xmsg = f"Expected a file: {path}"
        raise ValueError(xmsg)

    text = _JSONC_COMMENTS.sub(_keep_strings, path.read_text(encoding="utf-8"))
    text = _JSONC_TRAILING_COMMAS.sub(_keep_strings, text)
    if not text.strip():
        return None

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        xmsg = (
            f"Invalid JSONC syntax in {path}:"
            f" {e.msg} (line {e.lineno}, column {e.colno})"
        )
        raise ValueError(xmsg) from e

    if not isinstance(data, (dict, list)):
        xmsg = f"Invalid JSONC root type: {type(data).__name__}"
        raise ValueError(xmsg)  # noqa: TRY004
    return cast("dict[str, Any] | list[Any]", data)


def remove_path_in_error_message(inner_msg: str, path: Path) -> str:
    """Drop mentions of `path` from a wrapped error message.

    "Invalid JSONC syntax in /abs/path/config.jsonc: Expecting value"
    becomes "Invalid JSONC syntax: Expecting value".
    """
    names = "|".join(re.escape(p) for p in (str(path), path.name))
    cleaned = re.sub(rf"\s*(?:\bin\s+)?['\"]?(?:{names})['\"]?", "", inner_msg)
    cleaned = re.sub(r"\s*:\s*", ": ", cleaned)
    return re.sub(r"\s{2,}", " ", cleaned).strip(": ").strip()


def plural(obj: Any) -> str:
    """Return 's' unless `obj` is, or has a length of, exactly one."""
    if isinstance(obj, (int, float)):
        count = obj
    elif isinstance(obj, Sized):
        count = len(obj)
    else:
        count = 0
    return "" if count == 1 else "s"


def safe_log(msg: str) -> None:
    """Write straight to the process stderr, for when logging itself is broken."""
    stream = cast("TextIO", sys.__stderr__)
    with suppress(Exception):
        stream.write(f"{msg}\n")
        stream.flush()


def get_sys_version_info() -> tuple[int, int, int]:
    return sys.version_info[:3]
