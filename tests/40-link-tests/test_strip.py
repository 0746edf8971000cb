# tests/40-link-tests/test_strip.py
"""Tests for flatlink.strip."""

import pytest

import flatlink.strip as mod_strip
from flatlink.errors import ReadError, UnresolvedReferenceError
from flatlink.units import Unit
from tests.utils.samples import UNIT_A, UNIT_B

IMPORT_DEFAULT_SHIM = """\
"use strict";
var __importDefault = (this && this.__importDefault) || function (mod) {
    return (mod && mod.__esModule) ? mod : { "default": mod };
};
Object.defineProperty(exports, "__esModule", { value: true });
const widget_1 = __importDefault(require("./widget"));
function make() { return new widget_1.default(); }
exports.make = make;
"""


def test_strip_removes_scaffolding_and_records_exports() -> None:
    # --- setup ---
    unit = Unit.from_text("a", UNIT_A)

    # --- execute ---
    mod_strip.strip_unit(unit)

    # --- verify ---
    assert unit.body == (
        'const Gtk = require("gi://Gtk?version=3.0");\n'
        'var VERSION = "1.0";\n'
        "function greet(name) {\n"
        "    return `Hello ${name} from Gtk ${Gtk.MAJOR_VERSION}`;\n"
        "}\n"
    )
    assert unit.exports == {"greet": "greet", "VERSION": "VERSION"}
    assert unit.dependencies == []


def test_strip_records_loader_aliases_as_dependencies() -> None:
    # --- setup ---
    unit = Unit.from_text("b", UNIT_B)

    # --- execute ---
    mod_strip.strip_unit(unit)

    # --- verify ---
    assert unit.aliases == {"a_1": "a"}
    assert unit.dependencies == ["a"]
    assert "require(" not in unit.body
    assert "exports" not in unit.body
    assert unit.body.startswith("class Greeter {")


def test_strip_is_idempotent() -> None:
    """Stripping already-stripped text changes nothing."""
    # --- execute ---
    once = mod_strip.strip_text(UNIT_B, "b")
    twice = mod_strip.strip_text(once, "b")

    # --- verify ---
    assert once == twice


def test_strip_leaves_lookalikes_in_strings_and_comments() -> None:
    # --- setup ---
    text = (
        "const help = 'exports.foo = require(\"./a\");';\n"
        "// exports.bar = bar;\n"
        "const re = /require\\(\"\\.\\/a\"\\);/;\n"
    )

    # --- execute ---
    result = mod_strip.strip_text(text)

    # --- verify ---
    assert result == text


def test_strip_removes_interop_shim_and_wrapped_loader() -> None:
    # --- setup ---
    unit = Unit.from_text("app", IMPORT_DEFAULT_SHIM)

    # --- execute ---
    mod_strip.strip_unit(unit)

    # --- verify ---
    assert unit.body == "function make() { return new widget_1.default(); }\n"
    assert unit.aliases == {"widget_1": "widget"}
    assert unit.dependencies == ["widget"]


def test_strip_function_form_shim() -> None:
    # --- setup ---
    text = (
        "function __exportStar(m, exports) {\n"
        "    for (var p in m) if (p !== \"default\") exports[p] = m[p];\n"
        "}\n"
        "run();\n"
    )

    # --- execute and verify ---
    assert mod_strip.strip_text(text) == "run();\n"


def test_strip_expression_export_becomes_declaration() -> None:
    # --- setup ---
    text = "exports.answer = 6 * 7;\nexports.twice = (x) => x * 2;\n"

    # --- execute ---
    unit = mod_strip.strip_unit(Unit.from_text("m", text))

    # --- verify ---
    assert unit.body == "var answer = 6 * 7;\nvar twice = (x) => x * 2;\n"
    assert unit.exports == {"answer": "answer", "twice": "twice"}


def test_strip_default_export_alias() -> None:
    # --- setup ---
    text = "class Window {}\nexports.default = Window;\n"

    # --- execute ---
    unit = mod_strip.strip_unit(Unit.from_text("window", text))

    # --- verify ---
    assert unit.default_export == "Window"
    assert unit.body == "class Window {}\n"


def test_strip_module_exports_alias() -> None:
    # --- execute ---
    unit = mod_strip.strip_unit(
        Unit.from_text("cfg", "const settings = {};\nmodule.exports = settings;\n")
    )

    # --- verify ---
    assert unit.default_export == "settings"
    assert unit.body == "const settings = {};\n"


def test_strip_rejects_anonymous_default() -> None:
    # --- execute and verify ---
    with pytest.raises(UnresolvedReferenceError) as excinfo:
        mod_strip.strip_text("exports.default = function () { return 1; };", "anon")

    assert excinfo.value.unit == "anon"
    assert "exports.default = function" in (excinfo.value.statement or "")


def test_strip_rejects_chained_expression_export() -> None:
    with pytest.raises(UnresolvedReferenceError):
        mod_strip.strip_text("exports.a = exports.b = compute();")


def test_strip_reexport_getter() -> None:
    """`export { foo } from "./a"` compiles to a getter over the loader alias."""
    # --- setup ---
    text = (
        "exports.foo = void 0;\n"
        'var a_1 = require("./a");\n'
        'Object.defineProperty(exports, "foo", { enumerable: true,'
        " get: function () { return a_1.foo; } });\n"
    )

    # --- execute ---
    unit = mod_strip.strip_unit(Unit.from_text("index", text))

    # --- verify ---
    assert unit.body == ""
    assert unit.reexports == {"foo": ("a", "foo")}
    assert unit.dependencies == ["a"]


def test_strip_export_star() -> None:
    # --- setup ---
    text = '__exportStar(require("./lib/util"), exports);\n'

    # --- execute ---
    unit = mod_strip.strip_unit(Unit.from_text("index", text))

    # --- verify ---
    assert unit.body == ""
    assert unit.star_reexports == ["lib/util"]
    assert unit.dependencies == ["lib/util"]


def test_strip_side_effect_require() -> None:
    # --- execute ---
    unit = mod_strip.strip_unit(Unit.from_text("main", 'require("./setup");\ngo();\n'))

    # --- verify ---
    assert unit.body == "go();\n"
    assert unit.dependencies == ["setup"]


def test_strip_resolves_directory_index_against_known_units() -> None:
    # --- setup ---
    unit = Unit.from_text("app/main", 'const ui_1 = require("../ui");\n')

    # --- execute ---
    mod_strip.strip_unit(unit, known={"ui/index", "app/main"})

    # --- verify ---
    assert unit.aliases == {"ui_1": "ui/index"}


def test_strip_keeps_native_requires_for_the_translator() -> None:
    # --- setup ---
    text = 'const system = require("system");\n'

    # --- execute and verify ---
    assert mod_strip.strip_text(text) == text


def test_strip_wraps_lex_errors() -> None:
    with pytest.raises(ReadError) as excinfo:
        mod_strip.strip_text("const s = 'unterminated;\n", "broken")

    assert excinfo.value.unit == "broken"
