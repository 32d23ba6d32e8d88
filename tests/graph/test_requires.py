"""Tests for require-call extraction from Luau source."""

from __future__ import annotations

from lunepack.graph import extract_requires


def targets(source: str) -> list[str | None]:
    return [call.target for call in extract_requires(source)]


# ===========================================================================
# Recognized call forms
# ===========================================================================


class TestCallForms:
    """Literal require forms yield their target."""

    def test_parenthesized(self) -> None:
        """require("x") and require('x')."""
        assert targets('local a = require("./a")\nlocal b = require(\'./b\')') == ["./a", "./b"]

    def test_without_parentheses(self) -> None:
        """require "x" and require [[x]]."""
        assert targets('local a = require "./a"\nlocal b = require [[./b]]') == ["./a", "./b"]

    def test_long_bracket_with_level(self) -> None:
        """require([==[x]==]) is a literal."""
        assert targets("require([==[@pkg/json]==])") == ["@pkg/json"]

    def test_whitespace_and_comments_inside_call(self) -> None:
        """Trivia between the parenthesis and the literal is skipped."""
        assert targets('require( --[[ why ]] "./a" )') == ["./a"]

    def test_escapes(self) -> None:
        """Escape sequences are decoded."""
        assert targets('require("./a\\\\b")') == ["./a\\b"]

    def test_line_numbers(self) -> None:
        """Lines are 1-based and count long comments."""
        src = '--[[\nheader\n]]\nlocal x = 1\nlocal m = require("./m")\n'
        calls = extract_requires(src)
        assert [c.line for c in calls] == [5]

    def test_bytes_input(self) -> None:
        """Byte sources are decoded as UTF-8."""
        calls = extract_requires('require("./café")'.encode("utf-8"))
        assert [c.target for c in calls] == ["./café"]

    def test_order_preserved(self) -> None:
        """Calls are returned in source order."""
        assert targets('require("./b")\nrequire("./a")\nrequire("./b")') == ["./b", "./a", "./b"]


# ===========================================================================
# False positives avoided
# ===========================================================================


class TestNotRequires:
    """Text that merely mentions require is ignored."""

    def test_in_line_comment(self) -> None:
        """-- require("x") is a comment."""
        assert targets('-- require("./nope")\nlocal a = 1') == []

    def test_in_long_comment(self) -> None:
        """--[[ ... ]] comments may span lines."""
        assert targets('--[==[\nrequire("./nope")\n]==]\nrequire("./yes")') == ["./yes"]

    def test_in_strings(self) -> None:
        """Quoted, long and interpolated strings are skipped."""
        src = (
            'local s = "require(\'./a\')"\n'
            "local l = [[require('./b')]]\n"
            "local i = `require('./c') {x}`\n"
        )
        assert targets(src) == []

    def test_method_and_field(self) -> None:
        """obj.require(...) and obj:require(...) are not the global."""
        assert targets('loader.require("./a")\nloader:require("./b")') == []

    def test_function_named_require(self) -> None:
        """A local function definition is not a call."""
        assert targets("local function require(path)\n  return path\nend") == []

    def test_identifier_containing_require(self) -> None:
        """Longer identifiers are not matched."""
        assert targets('local myrequire = requireAll("./x")') == []

    def test_hex_numerals(self) -> None:
        """Numerals are consumed whole."""
        assert targets('local n = 0xFF require("./a")') == ["./a"]


# ===========================================================================
# Dynamic requires
# ===========================================================================


class TestDynamic:
    """Non-literal arguments are reported with their expression."""

    def test_variable(self) -> None:
        """require(path) is dynamic."""
        calls = extract_requires("local m = require(path)")
        assert len(calls) == 1
        assert calls[0].is_dynamic
        assert calls[0].expression == "path"

    def test_concatenation(self) -> None:
        """A literal followed by more expression is dynamic."""
        calls = extract_requires('require("./mods/" .. name)')
        assert calls[0].is_dynamic
        assert calls[0].expression == '"./mods/" .. name'

    def test_nested_parentheses(self) -> None:
        """The full balanced argument is captured."""
        calls = extract_requires('require(pick(a, ")"))\nrequire("./after")')
        assert calls[0].expression == 'pick(a, ")")'
        assert calls[1].target == "./after"

    def test_instance_path(self) -> None:
        """Roblox-style instance requires are dynamic."""
        calls = extract_requires("require(script.Parent.Util)")
        assert calls[0].is_dynamic
