# src/flatlink/strip.py
"""Remove per-module loader scaffolding from compiled units.

The compiler wraps every unit in CommonJS plumbing: a strict-mode prologue,
an `__esModule` marker, `exports.x = ...` bindings, interop helpers and
`require()` calls for sibling units. None of that can run in a flat scope.
This pass removes it and records what it meant (exports, aliases,
dependencies) on the unit so later stages can rewrite references.

Stripping is token-based: text inside strings, comments, regexes and
template literals is never touched, and running the pass on its own
output changes nothing.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from typing import NamedTuple

from .constants import SHIM_HELPERS
from .errors import ReadError, UnresolvedReferenceError
from .jslex import (
    STRING,
    Edit,
    LexError,
    TokenStream,
    apply_edits,
    removal,
    string_value,
)
from .logs import get_logger
from .units import Unit, is_relative_specifier, resolve_specifier

DECLARATION_KEYWORDS = frozenset({"var", "let", "const"})
INTEROP_WRAPPERS = frozenset({"__importDefault", "__importStar"})

# identifiers that are values, not bindings another unit could share
_LITERAL_IDENTS = frozenset({"null", "undefined", "true", "false", "this", "NaN"})


class _Match(NamedTuple):
    end: int  # last significant token consumed
    edit: Edit


_Matcher = Callable[[TokenStream, int, Unit, Collection[str] | None], _Match | None]


# --- shape helpers -----------------------------------------------------------


def require_spec(s: TokenStream, k: int) -> str | None:
    """Return the specifier if `require("spec")` starts at k."""
    if (
        s.is_ident(k, "require")
        and not s.is_member_access(k)
        and s.is_punct(k + 1, "(")
        and s.kind(k + 2) == STRING
        and s.is_punct(k + 3, ")")
    ):
        return string_value(s.text(k + 2) or "")
    return None


def _ends_statement(s: TokenStream, k: int) -> bool:
    return s.is_punct(k, ";")


# --- matchers ----------------------------------------------------------------


def _match_use_strict(
    s: TokenStream, k: int, unit: Unit, known: Collection[str] | None
) -> _Match | None:
    tok = s.tok(k)
    if tok is None or tok.kind != STRING or string_value(tok.text) != "use strict":
        return None
    if _ends_statement(s, k + 1):
        return _Match(k + 1, removal(s, k, k + 1))
    if s.tok(k + 1) is None or s.line_break_before(k + 1):
        return _Match(k, removal(s, k, k))
    return None


def _getter_target(
    s: TokenStream, lo: int, hi: int, unit: Unit, name: str
) -> tuple[str, str]:
    """Find `return ALIAS.member` inside a re-export getter."""
    for j in range(lo, hi):
        if (
            s.is_ident(j, "return")
            and s.is_ident(j + 1)
            and s.is_punct(j + 2, ".")
            and s.is_ident(j + 3)
        ):
            alias = s.text(j + 1) or ""
            if alias in unit.aliases:
                return unit.aliases[alias], s.text(j + 3) or ""
            break
    xmsg = f"Cannot resolve where re-exported '{name}' comes from"
    raise UnresolvedReferenceError(
        xmsg, unit=unit.name, statement=s.source_between(lo, hi)
    )


def _match_define_property(
    s: TokenStream, k: int, unit: Unit, known: Collection[str] | None
) -> _Match | None:
    if not (
        s.is_ident(k, "Object")
        and s.is_punct(k + 1, ".")
        and s.is_ident(k + 2, "defineProperty")
        and s.is_punct(k + 3, "(")
        and s.is_ident(k + 4, "exports")
        and s.is_punct(k + 5, ",")
        and s.kind(k + 6) == STRING
    ):
        return None
    close = s.matching_close(k + 3)
    if close is None:
        return None
    end = close + 1 if _ends_statement(s, close + 1) else close

    name = string_value(s.text(k + 6) or "")
    if name != "__esModule":
        unit.reexports[name] = _getter_target(s, k + 7, close, unit, name)
        # drop the `exports.name = void 0` placeholder; the name lives elsewhere
        if unit.exports.get(name) == name:
            del unit.exports[name]
    return _Match(end, removal(s, k, end))


def _match_exports_assignment(
    s: TokenStream, k: int, unit: Unit, known: Collection[str] | None
) -> _Match | None:
    names: list[str] = []
    j = k
    while (
        s.is_ident(j, "exports")
        and s.is_punct(j + 1, ".")
        and s.is_ident(j + 2)
        and s.is_punct(j + 3, "=")
    ):
        names.append(s.text(j + 2) or "")
        j += 4
    if not names:
        return None
    end = s.statement_end(k)
    if end is None or end == j:
        return None

    # exports.a = exports.b = void 0;  (hoisted export list)
    if end - j == 2 and s.is_ident(j, "void") and s.text(j + 1) == "0":
        for name in names:
            if name != "default":
                unit.exports.setdefault(name, name)
        return _Match(end, removal(s, k, end))

    # exports.foo = foo;  /  exports.default = Foo;
    if end - j == 1 and s.is_ident(j) and s.text(j) not in _LITERAL_IDENTS:
        local = s.text(j) or ""
        for name in names:
            unit.exports[name] = local
        return _Match(end, removal(s, k, end))

    statement = s.source_between(k, end)
    if len(names) > 1:
        xmsg = "Chained export of an expression cannot be bound to one bare name"
        raise UnresolvedReferenceError(xmsg, unit=unit.name, statement=statement)
    name = names[0]
    if name == "default":
        xmsg = "Anonymous default export has no name to bind in the flat scope"
        raise UnresolvedReferenceError(xmsg, unit=unit.name, statement=statement)

    # exports.foo = <expr>;  →  var foo = <expr>;
    unit.exports[name] = name
    return _Match(end, Edit(s.index(k), s.index(k + 2), f"var {name}"))


def _match_module_exports(
    s: TokenStream, k: int, unit: Unit, known: Collection[str] | None
) -> _Match | None:
    if not (
        s.is_ident(k, "module")
        and s.is_punct(k + 1, ".")
        and s.is_ident(k + 2, "exports")
        and s.is_punct(k + 3, "=")
    ):
        return None
    end = s.statement_end(k)
    if end is None:
        return None
    if end - (k + 4) == 1 and s.is_ident(k + 4):
        unit.exports["default"] = s.text(k + 4) or ""
        return _Match(end, removal(s, k, end))
    xmsg = "Anonymous `module.exports` value has no name to bind in the flat scope"
    raise UnresolvedReferenceError(
        xmsg, unit=unit.name, statement=s.source_between(k, end)
    )


def _match_loader(  # noqa: PLR0911
    s: TokenStream, k: int, unit: Unit, known: Collection[str] | None
) -> _Match | None:
    # const A_1 = require("./a");  /  var a_1 = __importDefault(require("./a"));
    if s.text(k) in DECLARATION_KEYWORDS and s.is_ident(k + 1) and s.is_punct(k + 2, "="):
        alias = s.text(k + 1) or ""
        j = k + 3
        wrapped = s.text(j) in INTEROP_WRAPPERS and s.is_punct(j + 1, "(")
        if wrapped:
            j += 2
        spec = require_spec(s, j)
        if spec is None or not is_relative_specifier(spec):
            return None
        j += 4
        if wrapped:
            if not s.is_punct(j, ")"):
                return None
            j += 1
        if not _ends_statement(s, j):
            return None
        target = resolve_specifier(unit.name, spec, known)
        unit.aliases[alias] = target
        unit.add_dependency(target)
        return _Match(j, removal(s, k, j))

    # require("./a");  (side effects only)
    spec = require_spec(s, k)
    if spec is not None:
        if not is_relative_specifier(spec) or not _ends_statement(s, k + 4):
            return None
        unit.add_dependency(resolve_specifier(unit.name, spec, known))
        return _Match(k + 4, removal(s, k, k + 4))

    # __exportStar(require("./a"), exports);
    if s.is_ident(k, "__exportStar") and s.is_punct(k + 1, "("):
        spec = require_spec(s, k + 2)
        if (
            spec is None
            or not is_relative_specifier(spec)
            or not s.is_punct(k + 6, ",")
            or not s.is_ident(k + 7, "exports")
            or not s.is_punct(k + 8, ")")
            or not _ends_statement(s, k + 9)
        ):
            return None
        target = resolve_specifier(unit.name, spec, known)
        if target not in unit.star_reexports:
            unit.star_reexports.append(target)
        unit.add_dependency(target)
        return _Match(k + 9, removal(s, k, k + 9))

    return None


def _match_shim_helper(
    s: TokenStream, k: int, unit: Unit, known: Collection[str] | None
) -> _Match | None:
    # var __importDefault = (this && this.__importDefault) || function (mod) {...};
    if (
        s.text(k) in DECLARATION_KEYWORDS
        and s.text(k + 1) in SHIM_HELPERS
        and s.is_punct(k + 2, "=")
    ):
        end = s.statement_end(k)
        if end is None:
            return None
        return _Match(end, removal(s, k, end))

    # function __importDefault(mod) { ... }
    if s.is_ident(k, "function") and s.text(k + 1) in SHIM_HELPERS and s.is_punct(k + 2, "("):
        params_end = s.matching_close(k + 2)
        if params_end is None or not s.is_punct(params_end + 1, "{"):
            return None
        body_end = s.matching_close(params_end + 1)
        if body_end is None:
            return None
        return _Match(body_end, removal(s, k, body_end))
    return None


MATCHERS: tuple[_Matcher, ...] = (
    _match_use_strict,
    _match_define_property,
    _match_exports_assignment,
    _match_module_exports,
    _match_loader,
    _match_shim_helper,
)


# --- pass --------------------------------------------------------------------


def strip_unit(unit: Unit, *, known: Collection[str] | None = None) -> Unit:
    """Strip scaffolding from `unit.body` and record its link metadata.

    `known` is the set of scheduled unit names, used to resolve
    directory-style specifiers (`./dir` → `dir/index`).
    """
    logger = get_logger()
    try:
        s = TokenStream.from_source(unit.body)
    except LexError as e:
        xmsg = f"Cannot tokenize compiled text: {e}"
        raise ReadError(xmsg, unit=unit.name) from e

    edits: list[Edit] = []
    consumed = -1
    for k in s.statement_starts():
        if k <= consumed:
            continue
        for matcher in MATCHERS:
            match = matcher(s, k, unit, known)
            if match is not None:
                edits.append(match.edit)
                consumed = match.end
                break

    unit.body = apply_edits(s.tokens, edits)
    logger.trace(
        f"[strip] {unit.name}: {len(edits)} statement(s),"
        f" exports={sorted(unit.exports)}, deps={unit.dependencies}"
    )
    return unit


def strip_text(text: str, name: str = "unit") -> str:
    """Convenience wrapper: strip a standalone compiled text."""
    return strip_unit(Unit.from_text(name, text)).body
