"""Tests for comment rendering."""

import ast
import textwrap

import pytest
from docloom.core.ast_parser import ElementKind, Parameter, Scope, StructuralElement
from docloom.core.placement import CommentFormatter
from docloom.core.placement.formatter import is_void, normalize_description, strip_comment_markup


def _function(params=(), return_type=None, kind=ElementKind.FUNCTION, name="add", **kwargs):
    return StructuralElement(
        kind=kind,
        name=name,
        start_line=0,
        end_line=2,
        parameters=tuple(params),
        return_type=return_type,
        **kwargs,
    )


TWO_NUMBERS = (Parameter("a", "number"), Parameter("b", "number"))


# =========================================================================
# Tests: Description normalization
# =========================================================================

class TestNormalizeDescription:
    def test_capitalizes_and_terminates(self):
        assert normalize_description("  adds   two numbers ") == "Adds two numbers."

    def test_keeps_existing_punctuation(self):
        assert normalize_description("Done!") == "Done!"

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            normalize_description("   ")

    def test_void_types(self):
        assert is_void(None)
        assert is_void("void")
        assert is_void("Promise< void >")
        assert not is_void("number")


# =========================================================================
# Tests: JSDoc
# =========================================================================

class TestJsDoc:
    def test_params_and_returns(self):
        formatter = CommentFormatter()
        text = formatter.format("adds two numbers", _function(TWO_NUMBERS, "number"), "typescript")
        assert text.split("\n") == [
            "/**",
            " * Adds two numbers.",
            " *",
            " * @param {number} a",
            " * @param {number} b",
            " * @returns {number}",
            " */",
        ]

    def test_one_param_tag_per_parameter(self):
        formatter = CommentFormatter()
        params = [Parameter(f"p{i}", "string") for i in range(4)]
        text = formatter.format("joins strings", _function(params, "string"), "javascript")
        assert text.count("@param") == 4
        assert text.count("@returns") == 1

    def test_void_has_no_returns(self):
        formatter = CommentFormatter()
        text = formatter.format("logs a value", _function(TWO_NUMBERS, "void"), "typescript")
        assert text.count("@param") == 2
        assert "@returns" not in text

    def test_optional_and_default(self):
        formatter = CommentFormatter()
        params = [Parameter("a", "number", optional=True), Parameter("b", "number", optional=True, default="2")]
        text = formatter.format("scales", _function(params), "typescript")
        assert "@param {number} [a]" in text
        assert "@param {number} [b=2]" in text

    def test_private_async_method(self):
        formatter = CommentFormatter()
        element = _function(kind=ElementKind.METHOD, scope=Scope.PRIVATE, is_async=True)
        text = formatter.format("loads data", element, "typescript")
        assert "@async" in text
        assert "@private" in text

    def test_summary_only_without_element(self):
        formatter = CommentFormatter()
        assert formatter.format("module helpers", None, "javascript") == "/**\n * Module helpers.\n */"

    def test_high_complexity_note(self):
        formatter = CommentFormatter()
        text = formatter.format("routes requests", _function(complexity=20), "javascript")
        assert "Note: high complexity (20)" in text


# =========================================================================
# Tests: Other languages
# =========================================================================

class TestLanguages:
    def test_python_one_liner(self):
        formatter = CommentFormatter()
        assert formatter.format("reset state", _function(), "python") == '"""Reset state."""'

    def test_python_google_style(self):
        formatter = CommentFormatter()
        params = [Parameter("x", "int"), Parameter("y", "int", optional=True, default="1")]
        text = formatter.format("add two numbers", _function(params, "int"), "python")
        assert text.split("\n") == [
            '"""Add two numbers.',
            "",
            "Args:",
            "    x (int):",
            "    y (int, optional): Defaults to 1.",
            "",
            "Returns:",
            "    int:",
            '"""',
        ]

    def test_python_line_comments(self):
        formatter = CommentFormatter()
        text = formatter.format("add two numbers", _function(), "python", line_comments=True)
        assert text == "# Add two numbers."

    def test_javadoc(self):
        formatter = CommentFormatter()
        text = formatter.format("adds", _function([Parameter("a", "int")], "int"), "java")
        assert " * @param a {@code int}" in text
        assert " * @return {@code int}" in text

    def test_godoc_starts_with_name(self):
        formatter = CommentFormatter()
        text = formatter.format("starts the server", _function(name="Start"), "go")
        assert text == "// Start starts the server."

    def test_csharp_xml(self):
        formatter = CommentFormatter()
        text = formatter.format("adds", _function([Parameter("a", "int")], "int"), "csharp")
        lines = text.split("\n")
        assert lines[0] == "/// <summary>"
        assert '/// <param name="a">int</param>' in lines
        assert "/// <returns>int</returns>" in lines

    def test_rustdoc_sections(self):
        formatter = CommentFormatter()
        text = formatter.format("area of a rectangle", _function([Parameter("r", "&Rect")], "f64"), "rust")
        assert "/// # Arguments" in text
        assert "/// * `r` - `&Rect`" in text
        assert "/// # Returns" in text

    def test_fallback_tokens(self):
        formatter = CommentFormatter()
        assert formatter.format("note", None, "sql") == "-- Note."
        assert formatter.format("note", None, "css") == "/* Note. */"
        assert formatter.format("note", None, "cobol") == "// Note."


# =========================================================================
# Tests: Comment terminators inside text
# =========================================================================

class TestTerminators:
    def test_block_close_in_description_is_escaped(self):
        comment = CommentFormatter().format("adds a */ b", _function(TWO_NUMBERS), "typescript")
        assert comment.split("\n")[1] == " * Adds a *\\/ b."
        assert comment.count("*/") == 1
        assert comment.endswith(" */")

    def test_block_close_in_javadoc(self):
        comment = CommentFormatter().format("see a*/b", None, "java")
        assert comment == "/**\n * See a*\\/b.\n */"

    def test_triple_quotes_in_docstring_are_escaped(self):
        docstring = CommentFormatter().format('wraps """ quotes', None, "python")
        assert docstring == '"""Wraps \\"\\"\\" quotes."""'
        assert ast.literal_eval(docstring) == 'Wraps """ quotes.'

    def test_triple_quotes_in_multiline_docstring(self):
        docstring = CommentFormatter().format('wraps """ quotes', _function([Parameter("a")]), "python")
        module = ast.parse(f"def add(a):\n{textwrap.indent(docstring, '    ')}\n    return a\n")
        assert ast.get_docstring(module.body[0]).startswith('Wraps """ quotes.')

    def test_html_close_is_escaped(self):
        assert CommentFormatter().format("see --> here", None, "html") == "<!-- See --&gt; here. -->"


class TestStripCommentMarkup:
    def test_block_comment(self):
        assert strip_comment_markup("/**\n * Adds numbers.\n *\n * @param a\n */") == "Adds numbers."

    def test_inline_block_and_docstring(self):
        assert strip_comment_markup("/** Greets someone. */") == "Greets someone."
        assert strip_comment_markup('"""Greets someone."""') == "Greets someone."

    def test_line_comments_joined(self):
        assert strip_comment_markup("// first part\n// second part") == "first part second part"

    def test_plain_prose_untouched(self):
        assert strip_comment_markup("Adds two numbers") == "Adds two numbers"
        assert strip_comment_markup("/**\n */") == ""
