# src/flatlink/references.py
"""Join unit exports into one flat namespace and rewrite references to it.

After stripping, units still refer to each other through loader aliases:
`A_1.foo`, `(0, A_1.foo)(...)`, `a_1.default`, `exports.bar`. In the
flat script every exported binding is a bare top-level name, so each of
those becomes `foo`, `Foo`, `bar`. The symbol table is built first and
checked for collisions so that nothing is rewritten, let alone written,
when two units would fight over one name.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import NameCollisionError, TranslationError, UnresolvedReferenceError
from .jslex import IDENT, NUMBER, Edit, LexError, TokenStream, apply_edits
from .logs import get_logger
from .units import NativeBinding, Unit

LEXICAL_KEYWORDS = frozenset({"let", "const"})


@dataclass
class SymbolTable:
    units: dict[str, Unit]
    owners: dict[str, str] = field(default_factory=dict)  # bare name → unit
    natives: dict[str, tuple[NativeBinding, str]] = field(default_factory=dict)
    pins: dict[str, tuple[str, str]] = field(default_factory=dict)  # ns → (ver, unit)

    def resolve_export(
        self,
        unit_name: str,
        member: str,
        _seen: set[tuple[str, str]] | None = None,
    ) -> str | None:
        """Bare name that `unit_name`'s export `member` is bound to, if any."""
        seen = _seen if _seen is not None else set()
        if (unit_name, member) in seen:
            return None
        seen.add((unit_name, member))

        unit = self.units.get(unit_name)
        if unit is None:
            return None
        if member in unit.exports:
            return unit.exports[member]
        if member in unit.reexports:
            source, source_member = unit.reexports[member]
            return self.resolve_export(source, source_member, seen)
        if member != "default":
            for star in unit.star_reexports:
                found = self.resolve_export(star, member, seen)
                if found is not None:
                    return found
        return None


# --- top-level declarations ----------------------------------------------------


def top_level_declarations(body: str) -> list[str]:
    """Names a unit body declares at its top level.

    Covers `function f`, `class C` and simple `let`/`const` declarators.
    `var` may be redeclared by several units, and destructuring patterns
    are skipped.
    """
    s = TokenStream.from_source(body)
    names: list[str] = []
    for k in s.statement_starts():
        j = k
        if s.is_ident(j, "async"):
            j += 1
        if s.is_ident(j, "function") or s.is_ident(j, "class"):
            j += 1
            if s.is_punct(j, "*"):
                j += 1
            if s.is_ident(j):
                names.append(s.text(j) or "")
            continue
        if s.text(k) not in LEXICAL_KEYWORDS:
            continue
        end = s.statement_end(k)
        last = end if end is not None else len(s)
        depth = s.depth[k]
        expect_name = True
        for i in range(k + 1, last):
            if s.depth[i] != depth:
                continue
            if expect_name and s.is_ident(i):
                names.append(s.text(i) or "")
                expect_name = False
            elif s.is_punct(i, ","):
                expect_name = True
            else:
                expect_name = False
    return list(dict.fromkeys(names))


# --- symbol table ---------------------------------------------------------------


def build_symbol_table(units: list[Unit]) -> SymbolTable:
    """Join every unit's top-level names and native bindings.

    Raises NameCollisionError for any bare name two units would both
    declare, or one local name bound to two different native objects.
    """
    logger = get_logger()
    table = SymbolTable({u.name: u for u in units})

    for unit in units:
        try:
            declared = top_level_declarations(unit.body)
        except LexError as e:
            xmsg = f"Cannot tokenize compiled text: {e}"
            raise UnresolvedReferenceError(xmsg, unit=unit.name) from e
        for name in [*unit.exports.values(), *declared]:
            first = table.owners.get(name)
            if first is not None and first != unit.name:
                raise NameCollisionError(name, first, unit.name)
            table.owners[name] = unit.name

    for unit in units:
        for binding in unit.bindings:
            owner = table.owners.get(binding.local)
            if owner is not None:
                raise NameCollisionError(binding.local, owner, unit.name)
            previous = table.natives.get(binding.local)
            if previous is not None and previous[0].target != binding.target:
                raise NameCollisionError(binding.local, previous[1], unit.name)
            table.natives.setdefault(binding.local, (binding, unit.name))

        for namespace, version in unit.pins.items():
            pinned = table.pins.get(namespace)
            if pinned is not None and pinned[0] != version:
                xmsg = (
                    f"'{namespace}' is pinned to {pinned[0]} by '{pinned[1]}'"
                    f" and to {version} here"
                )
                raise TranslationError(xmsg, unit=unit.name)
            table.pins.setdefault(namespace, (version, unit.name))

    logger.debug(
        f"Symbol table: {len(table.owners)} top-level name(s),"
        f" {len(table.natives)} native binding(s)"
    )
    return table


# --- rewriting -----------------------------------------------------------------


def _resolve(
    s: TokenStream,
    k: int,
    unit: Unit,
    table: SymbolTable,
    alias: str,
    member: str,
) -> str:
    target = unit.name if alias == "exports" else unit.aliases[alias]
    bare = table.resolve_export(target, member)
    if bare is not None:
        return bare
    if member == "default":
        xmsg = f"'{target}' has no named default export to bind"
    else:
        xmsg = f"'{target}' does not export '{member}'"
    raise UnresolvedReferenceError(xmsg, unit=unit.name, statement=s.line_of(k))


def _spacer(s: TokenStream, k: int) -> str:
    """A space if the token just before significant k would fuse with a name."""
    i = s.index(k)
    if i > 0 and s.tokens[i - 1].kind in (IDENT, NUMBER):
        return " "
    return ""


def rewrite_unit(unit: Unit, table: SymbolTable) -> Unit:
    """Rewrite qualified cross-unit references in `unit.body` to bare names."""
    logger = get_logger()
    try:
        s = TokenStream.from_source(unit.body)
    except LexError as e:
        xmsg = f"Cannot tokenize compiled text: {e}"
        raise UnresolvedReferenceError(xmsg, unit=unit.name) from e

    qualifiers = {*unit.aliases, "exports"}
    edits: list[Edit] = []
    k = 0
    while k < len(s):
        # (0, A_1.foo)  →  foo
        if (
            s.is_punct(k, "(")
            and s.kind(k + 1) == NUMBER
            and s.text(k + 1) == "0"
            and s.is_punct(k + 2, ",")
            and s.text(k + 3) in qualifiers
            and s.is_ident(k + 3)
            and s.is_punct(k + 4, ".")
            and s.is_ident(k + 5)
            and s.is_punct(k + 6, ")")
            and s.expression_position(k)
        ):
            bare = _resolve(s, k, unit, table, s.text(k + 3) or "", s.text(k + 5) or "")
            edits.append(Edit(s.index(k), s.index(k + 6), _spacer(s, k) + bare))
            k += 7
            continue

        if s.is_ident(k) and s.text(k) in qualifiers and not s.is_member_access(k):
            name = s.text(k) or ""
            # A_1.foo  →  foo
            if s.is_punct(k + 1, ".") and s.is_ident(k + 2):
                bare = _resolve(s, k, unit, table, name, s.text(k + 2) or "")
                edits.append(Edit(s.index(k), s.index(k + 2), bare))
                k += 3
                continue
            # object key `{ A_1: ... }`
            if s.is_punct(k + 1, ":") and (s.is_punct(k - 1, "{") or s.is_punct(k - 1, ",")):
                k += 1
                continue
            xmsg = f"'{name}' is used as a value; only qualified member references can be flattened"
            raise UnresolvedReferenceError(xmsg, unit=unit.name, statement=s.line_of(k))
        k += 1

    unit.body = apply_edits(s.tokens, edits)
    logger.trace(f"[rewrite] {unit.name}: {len(edits)} reference(s)")
    return unit
