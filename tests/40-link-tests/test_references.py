# tests/40-link-tests/test_references.py
"""Tests for flatlink.references (symbol table and reference rewriting)."""

import pytest

import flatlink.references as mod_refs
from flatlink.errors import (
    NameCollisionError,
    TranslationError,
    UnresolvedReferenceError,
)
from flatlink.units import NativeBinding, Unit


def _unit(
    name: str,
    body: str = "",
    *,
    exports: dict[str, str] | None = None,
    aliases: dict[str, str] | None = None,
) -> Unit:
    unit = Unit.from_text(name, body)
    unit.exports = dict(exports or {})
    unit.aliases = dict(aliases or {})
    return unit


# ---------------------------------------------------------------------------
# Top-level declarations
# ---------------------------------------------------------------------------


def test_top_level_declarations() -> None:
    # --- setup ---
    body = (
        "function f() { const inner = 1; }\n"
        "async function g() {}\n"
        "class C {}\n"
        "const a = 1, b = [1, 2];\n"
        "let { x } = obj;\n"
        "var v = 1;\n"
    )

    # --- execute ---
    names = mod_refs.top_level_declarations(body)

    # --- verify ---
    assert names == ["f", "g", "C", "a", "b"]


# ---------------------------------------------------------------------------
# Symbol table
# ---------------------------------------------------------------------------


def test_symbol_table_joins_exports() -> None:
    # --- setup ---
    a = _unit("a", "function foo() {}\n", exports={"foo": "foo"})
    b = _unit("b", "class Bar {}\n", exports={"default": "Bar"})

    # --- execute ---
    table = mod_refs.build_symbol_table([a, b])

    # --- verify ---
    assert table.owners == {"foo": "a", "Bar": "b"}
    assert table.resolve_export("b", "default") == "Bar"


def test_symbol_table_detects_export_collision() -> None:
    # --- setup ---
    a = _unit("a", "function helper() {}\n", exports={"helper": "helper"})
    b = _unit("b", "function helper() {}\n")

    # --- execute ---
    with pytest.raises(NameCollisionError) as excinfo:
        mod_refs.build_symbol_table([a, b])

    # --- verify ---
    err = excinfo.value
    assert (err.name, err.first, err.second) == ("helper", "a", "b")


def test_symbol_table_allows_shared_var() -> None:
    """`var` temporaries emitted in several units are not collisions."""
    # --- setup ---
    a = _unit("a", "var _a;\n")
    b = _unit("b", "var _a;\n")

    # --- execute and verify ---
    mod_refs.build_symbol_table([a, b])


def test_symbol_table_native_clashes_with_declaration() -> None:
    # --- setup ---
    a = _unit("a", "const Gtk = {};\n")
    b = _unit("b")
    b.bindings = [NativeBinding("Gtk", "imports.gi", "Gtk")]

    # --- execute and verify ---
    with pytest.raises(NameCollisionError, match="'Gtk'"):
        mod_refs.build_symbol_table([a, b])


def test_symbol_table_native_bound_two_ways() -> None:
    # --- setup ---
    a = _unit("a")
    a.bindings = [NativeBinding("exit", "imports.system", "exit")]
    b = _unit("b")
    b.bindings = [NativeBinding("exit", "imports.gi.GLib", "exit")]

    # --- execute and verify ---
    with pytest.raises(NameCollisionError):
        mod_refs.build_symbol_table([a, b])


def test_symbol_table_shares_identical_native() -> None:
    # --- setup ---
    a = _unit("a")
    a.bindings = [NativeBinding("Gtk", "imports.gi", "Gtk")]
    b = _unit("b")
    b.bindings = [NativeBinding("Gtk", "imports.gi", "Gtk")]

    # --- execute ---
    table = mod_refs.build_symbol_table([a, b])

    # --- verify ---
    assert table.natives["Gtk"][1] == "a"


def test_symbol_table_rejects_conflicting_pins() -> None:
    # --- setup ---
    a = _unit("a")
    a.pins = {"Gtk": "3.0"}
    b = _unit("b")
    b.pins = {"Gtk": "4.0"}

    # --- execute and verify ---
    with pytest.raises(TranslationError, match="pinned to 3.0 by 'a'"):
        mod_refs.build_symbol_table([a, b])


def test_resolve_export_follows_reexports() -> None:
    # --- setup ---
    util = _unit("lib/util", exports={"clamp": "clamp"})
    index = _unit("lib/index")
    index.reexports = {"limit": ("lib/util", "clamp")}
    barrel = _unit("barrel")
    barrel.star_reexports = ["lib/index"]
    table = mod_refs.build_symbol_table([util, index, barrel])

    # --- execute and verify ---
    assert table.resolve_export("barrel", "limit") == "clamp"
    assert table.resolve_export("barrel", "default") is None
    assert table.resolve_export("barrel", "missing") is None


def test_resolve_export_survives_star_cycles() -> None:
    # --- setup ---
    a = _unit("a")
    a.star_reexports = ["b"]
    b = _unit("b")
    b.star_reexports = ["a"]
    table = mod_refs.build_symbol_table([a, b])

    # --- execute and verify ---
    assert table.resolve_export("a", "anything") is None


# ---------------------------------------------------------------------------
# Rewriting
# ---------------------------------------------------------------------------


def _rewrite(body: str, **exports: str) -> str:
    lib = _unit("lib", exports=exports)
    app = _unit("app", body, aliases={"lib_1": "lib"})
    table = mod_refs.build_symbol_table([lib, app])
    return mod_refs.rewrite_unit(app, table).body


def test_rewrite_qualified_reference() -> None:
    assert _rewrite("const x = lib_1.foo + 1;", foo="foo") == "const x = foo + 1;"


def test_rewrite_indirect_call() -> None:
    """`(0, A.f)(...)` drops the comma operator along with the qualifier."""
    # --- execute ---
    result = _rewrite("run((0, lib_1.foo)(1));\nreturn(0, lib_1.foo)();", foo="foo")

    # --- verify ---
    assert result == "run(foo(1));\nreturn foo();"


def test_rewrite_default_export() -> None:
    # --- execute ---
    result = _rewrite("new lib_1.default();", default="Widget")

    # --- verify ---
    assert result == "new Widget();"


def test_rewrite_keeps_call_arguments() -> None:
    """`f(0, A.x)` is an ordinary call, not an indirect-call wrapper."""
    assert _rewrite("f(0, lib_1.x);", x="x") == "f(0, x);"


def test_rewrite_ignores_lookalikes() -> None:
    # --- setup ---
    body = (
        "obj.lib_1.foo;\n"
        "const s = 'lib_1.foo';\n"
        "// lib_1.foo\n"
        "const o = { lib_1: 1 };\n"
    )

    # --- execute and verify ---
    assert _rewrite(body, foo="foo") == body


def test_rewrite_inside_template_substitution() -> None:
    assert _rewrite("`v${lib_1.foo}`;", foo="foo") == "`v${foo}`;"


def test_rewrite_self_export_reference() -> None:
    # --- setup ---
    unit = _unit(
        "a",
        "function run() { (0, exports.helper)(); }",
        exports={"helper": "helper"},
    )
    table = mod_refs.build_symbol_table([unit])

    # --- execute ---
    mod_refs.rewrite_unit(unit, table)

    # --- verify ---
    assert unit.body == "function run() { helper(); }"


def test_rewrite_rejects_unknown_member() -> None:
    # --- execute ---
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        _rewrite("  lib_1.nope();", foo="foo")

    # --- verify ---
    assert "'lib' does not export 'nope'" in str(excinfo.value)
    assert excinfo.value.statement == "  lib_1.nope();"


def test_rewrite_rejects_alias_used_as_value() -> None:
    with pytest.raises(UnresolvedReferenceError, match="used as a value"):
        _rewrite("register(lib_1);", foo="foo")


def test_rewrite_rejects_missing_default() -> None:
    with pytest.raises(UnresolvedReferenceError, match="no named default export"):
        _rewrite("lib_1.default();", foo="foo")
