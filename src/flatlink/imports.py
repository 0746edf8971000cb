# src/flatlink/imports.py
"""Translate native-namespace imports into runtime binding-table lookups.

A compiled unit asks for platform services the same way it asks for
sibling units: with an import statement or a `require()` call. In the
flat script those become reads from the runtime's global binding table
(`imports.gi`, `imports.system`, ...). This pass removes the statements,
records one `NativeBinding` per local name and the typelib versions the
unit needs pinned, and rejects anything it cannot express that way.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator, Mapping
from dataclasses import dataclass
from urllib.parse import parse_qs, urlsplit

from .constants import (
    CORE_MODULES,
    GI_ACCESSOR,
    GI_MODULE,
    GI_SCHEME,
    MULTI_VERSION_NAMESPACES,
)
from .errors import TranslationError
from .jslex import STRING, Edit, LexError, TokenStream, apply_edits, removal, string_value
from .logs import get_logger
from .strip import DECLARATION_KEYWORDS, INTEROP_WRAPPERS, require_spec
from .units import NativeBinding, Unit

# --- specifier resolution ----------------------------------------------------


@dataclass(frozen=True)
class NativeTarget:
    accessor: str  # binding-table expression, e.g. `imports.gi`
    namespace: str | None = None  # typelib named by a `gi://` specifier
    version: str | None = None  # `?version=` from the specifier


def resolve_native_specifier(
    spec: str,
    native_modules: Collection[str] = (),
) -> NativeTarget | None:
    """Map an import specifier onto the runtime binding table.

    Returns None when the specifier names nothing the runtime provides.
    """
    if spec == GI_MODULE:
        return NativeTarget(GI_ACCESSOR)

    if spec.startswith(GI_SCHEME):
        parts = urlsplit(spec)
        namespace = parts.netloc or parts.path.lstrip("/")
        if not namespace.isidentifier():
            return None
        versions = parse_qs(parts.query).get("version")
        return NativeTarget(GI_ACCESSOR, namespace, versions[0] if versions else None)

    if spec in CORE_MODULES or spec in native_modules:
        dotted = spec.replace("/", ".")
        if all(part.isidentifier() for part in dotted.split(".")):
            return NativeTarget(f"imports.{dotted}")
    return None


# --- statement shapes --------------------------------------------------------


@dataclass
class ImportClause:
    """Names an import statement binds; `named` holds (imported, local)."""

    spec: str
    whole: list[str]
    named: list[tuple[str, str]]
    # `__importDefault(require(...))`: uses read `ALIAS.default.X`
    default_wrapped: bool = False


def _parse_named(s: TokenStream, lo: int, hi: int, sep: str) -> list[tuple[str, str]] | None:
    """Parse `A, B as C` (sep='as') or `A, B: C` (sep=':') between brackets."""
    named: list[tuple[str, str]] = []
    j = lo
    while j < hi:
        if not s.is_ident(j):
            return None
        imported = s.text(j) or ""
        local = imported
        j += 1
        if sep == "as" and s.is_ident(j, "as"):
            if not s.is_ident(j + 1):
                return None
            local = s.text(j + 1) or ""
            j += 2
        elif sep == ":" and s.is_punct(j, ":"):
            if not s.is_ident(j + 1):
                return None
            local = s.text(j + 1) or ""
            j += 2
        named.append((imported, local))
        if j < hi:
            if not s.is_punct(j, ","):
                return None
            j += 1
    return named


def _parse_es_import(s: TokenStream, k: int) -> tuple[int, ImportClause | None]:
    """Parse an `import ... from "spec";` statement starting at k.

    Returns (end, clause); clause is None when the shape is not understood.
    """
    end = s.statement_end(k)
    if end is None:
        end = len(s) - 1

    # import "spec";
    if s.kind(k + 1) == STRING and k + 2 == end:
        return end, ImportClause(string_value(s.text(k + 1) or ""), [], [])

    if not (s.is_ident(end - 2, "from") and s.kind(end - 1) == STRING):
        return end, None
    spec = string_value(s.text(end - 1) or "")

    whole: list[str] = []
    named: list[tuple[str, str]] = []
    j, hi = k + 1, end - 2
    while j < hi:
        if s.is_ident(j) and not whole and not named:
            whole.append(s.text(j) or "")  # default import
            j += 1
        elif s.is_punct(j, "*") and s.is_ident(j + 1, "as") and s.is_ident(j + 2):
            whole.append(s.text(j + 2) or "")
            j += 3
        elif s.is_punct(j, "{"):
            close = s.matching_close(j)
            if close is None or close > hi:
                return end, None
            parsed = _parse_named(s, j + 1, close, "as")
            if parsed is None:
                return end, None
            named.extend(parsed)
            j = close + 1
        else:
            return end, None
        if j < hi:
            if not s.is_punct(j, ","):
                return end, None
            j += 1
    return end, ImportClause(spec, whole, named)


def _parse_require_binding(s: TokenStream, k: int) -> tuple[int, ImportClause] | None:
    """Parse `const X = require("spec");` or `const {A, B: C} = require("spec");`."""
    if s.text(k) not in DECLARATION_KEYWORDS:
        return None
    if s.is_ident(k + 1) and s.is_punct(k + 2, "="):
        j = k + 3
        # const Gtk = __importStar(require("gi://Gtk"));
        # const Gtk_1 = __importDefault(require("gi://Gtk?version=3.0"));
        wrapper = s.text(j) if s.text(j) in INTEROP_WRAPPERS else None
        wrapped = wrapper is not None and s.is_punct(j + 1, "(")
        if wrapped:
            j += 2
        spec = require_spec(s, j)
        if spec is None:
            return None
        j += 4
        if wrapped:
            if not s.is_punct(j, ")"):
                return None
            j += 1
        if not s.is_punct(j, ";"):
            return None
        clause = ImportClause(spec, [s.text(k + 1) or ""], [])
        clause.default_wrapped = wrapped and wrapper == "__importDefault"
        return j, clause
    if s.is_punct(k + 1, "{"):
        close = s.matching_close(k + 1)
        if close is None or not s.is_punct(close + 1, "="):
            return None
        spec = require_spec(s, close + 2)
        if spec is None or not s.is_punct(close + 6, ";"):
            return None
        named = _parse_named(s, k + 2, close, ":")
        if named is None:
            return None
        return close + 6, ImportClause(spec, [], named)
    return None


# --- binding ----------------------------------------------------------------


def _pin(
    unit: Unit,
    namespace: str,
    spec_version: str | None,
    versions: Mapping[str, str],
    statement: str,
) -> None:
    configured = versions.get(namespace)
    if spec_version and configured and spec_version != configured:
        xmsg = (
            f"'{namespace}' is imported as version {spec_version}"
            f" but configured as version {configured}"
        )
        raise TranslationError(xmsg, unit=unit.name, statement=statement)

    version = spec_version or configured
    if version is None:
        if namespace in MULTI_VERSION_NAMESPACES:
            xmsg = (
                f"No version pinned for '{namespace}'; set `versions.{namespace}`"
                f" or import 'gi://{namespace}?version=...'"
            )
            raise TranslationError(xmsg, unit=unit.name, statement=statement)
        return

    previous = unit.pins.get(namespace)
    if previous is not None and previous != version:
        xmsg = f"'{namespace}' is pinned to both {previous} and {version}"
        raise TranslationError(xmsg, unit=unit.name, statement=statement)
    unit.pins[namespace] = version


def _bind(unit: Unit, binding: NativeBinding, statement: str) -> None:
    for existing in unit.bindings:
        if existing.local != binding.local:
            continue
        if existing.target != binding.target:
            xmsg = f"'{binding.local}' is imported twice from different namespaces"
            raise TranslationError(xmsg, unit=unit.name, statement=statement)
        return
    unit.bindings.append(binding)


def bind_clause(
    unit: Unit,
    clause: ImportClause,
    statement: str,
    *,
    versions: Mapping[str, str],
    native_modules: Collection[str],
) -> None:
    """Record the native bindings and pins one import statement asks for."""
    target = resolve_native_specifier(clause.spec, native_modules)
    if target is None:
        xmsg = f"'{clause.spec}' is not a recognized native namespace"
        raise TranslationError(xmsg, unit=unit.name, statement=statement)

    if target.namespace is not None:
        # gi://Gtk?version=3.0
        _pin(unit, target.namespace, target.version, versions, statement)
        for local in clause.whole:
            _bind(unit, NativeBinding(local, GI_ACCESSOR, target.namespace), statement)
        for imported, local in clause.named:
            accessor = f"{GI_ACCESSOR}.{target.namespace}"
            _bind(unit, NativeBinding(local, accessor, imported), statement)
        return

    if target.accessor == GI_ACCESSOR:
        # named imports from "gi" are typelib namespaces
        for imported, _local in clause.named:
            _pin(unit, imported, None, versions, statement)

    for local in clause.whole:
        _bind(unit, NativeBinding(local, target.accessor), statement)
    for imported, local in clause.named:
        _bind(unit, NativeBinding(local, target.accessor, imported), statement)


# --- pass --------------------------------------------------------------------


def _leftover_loader(s: TokenStream, claimed: list[tuple[int, int]]) -> int | None:
    """Index of the first `require(`/`import(` call outside claimed ranges."""
    for k in range(len(s)):
        if any(lo <= k <= hi for lo, hi in claimed):
            continue
        if s.is_member_access(k) or s.is_ident(k - 1, "function"):
            continue
        if not s.is_punct(k + 1, "("):
            continue
        if not (s.is_ident(k, "require") or s.is_ident(k, "import")):
            continue
        close = s.matching_close(k + 1)
        if close is not None and s.is_punct(close + 1, "{"):
            continue  # method definition
        return k
    return None


def _member_accesses(
    s: TokenStream, local: str, claimed: list[tuple[int, int]]
) -> Iterator[int]:
    """Indices where `local` is the object of a `local.member` access."""
    for k in range(len(s)):
        if any(lo <= k <= hi for lo, hi in claimed):
            continue
        if (
            s.is_ident(k, local)
            and not s.is_member_access(k)
            and s.is_punct(k + 1, ".")
            and s.is_ident(k + 2)
        ):
            yield k


def _follow_whole_binding(
    s: TokenStream,
    unit: Unit,
    clause: ImportClause,
    statement: str,
    claimed: list[tuple[int, int]],
    *,
    versions: Mapping[str, str],
    native_modules: Collection[str],
) -> list[Edit]:
    """Unwrap `ALIAS.default` and pin typelibs reached through `imports.gi`.

    `const gi_1 = require("gi")` leaves `gi_1.Gtk.Window` in the body, so
    every namespace read off the alias needs its version pinned.
    """
    target = resolve_native_specifier(clause.spec, native_modules)
    through_gi = (
        target is not None
        and target.accessor == GI_ACCESSOR
        and target.namespace is None
    )
    edits: list[Edit] = []
    for local in clause.whole:
        for k in _member_accesses(s, local, claimed):
            member: int | None = k + 2
            if clause.default_wrapped and s.is_ident(k + 2, "default"):
                edits.append(Edit(s.index(k + 1), s.index(k + 2)))
                member = k + 4 if s.is_punct(k + 3, ".") and s.is_ident(k + 4) else None
            if through_gi and member is not None:
                _pin(unit, s.text(member) or "", None, versions, statement)
    return edits


def translate_unit(
    unit: Unit,
    *,
    versions: Mapping[str, str] | None = None,
    native_modules: Collection[str] = (),
) -> Unit:
    """Replace native imports in `unit.body` with recorded bindings."""
    logger = get_logger()
    versions = versions or {}
    try:
        s = TokenStream.from_source(unit.body)
    except LexError as e:
        xmsg = f"Cannot tokenize compiled text: {e}"
        raise TranslationError(xmsg, unit=unit.name) from e

    edits: list[Edit] = []
    claimed: list[tuple[int, int]] = []
    bound: list[tuple[ImportClause, str]] = []
    for k in s.statement_starts():
        if claimed and k <= claimed[-1][1]:
            continue

        parsed: tuple[int, ImportClause | None] | None = None
        if s.is_ident(k, "import") and not (
            s.is_punct(k + 1, "(") or s.is_punct(k + 1, ".")
        ):
            parsed = _parse_es_import(s, k)
        else:
            parsed = _parse_require_binding(s, k)
        if parsed is None:
            continue

        end, clause = parsed
        statement = s.source_between(k, end)
        if clause is None:
            xmsg = "Unrecognized import statement"
            raise TranslationError(xmsg, unit=unit.name, statement=statement)
        bind_clause(
            unit,
            clause,
            statement,
            versions=versions,
            native_modules=native_modules,
        )
        edits.append(removal(s, k, end))
        claimed.append((k, end))
        bound.append((clause, statement))

    leftover = _leftover_loader(s, claimed)
    if leftover is not None:
        kind = "Dynamic import()" if s.is_ident(leftover, "import") else "Loader call"
        xmsg = f"{kind} cannot be flattened into a single scope"
        raise TranslationError(xmsg, unit=unit.name, statement=s.line_of(leftover))

    for clause, statement in bound:
        edits.extend(
            _follow_whole_binding(
                s,
                unit,
                clause,
                statement,
                claimed,
                versions=versions,
                native_modules=native_modules,
            )
        )

    unit.body = apply_edits(s.tokens, edits)
    logger.trace(
        f"[translate] {unit.name}: {len(unit.bindings)} binding(s),"
        f" pins={unit.pins}"
    )
    return unit
