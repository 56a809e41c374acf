"""Tests for the structural analyzer (exact and heuristic tiers)."""

from unittest.mock import patch

import pytest
from docloom.core.ast_parser import (
    AnalysisResult,
    AnalysisTier,
    ElementKind,
    Parameter,
    Scope,
    analyze,
    analyze_source,
    detect_language,
    get_support_level,
    normalize_language,
)
from docloom.core.ast_parser.lexical import brace_depths, strip_lines
from docloom.core.ast_parser.utils import get_parser


# =========================================================================
# Sample source fixtures
# =========================================================================

PY_CLASS_WITH_METHODS = '''
import os


class Calculator:
    """A simple calculator."""

    def __init__(self):
        """Initialize."""
        self.value = 0

    def add(self, x: int, y: int = 1) -> int:
        """Add two numbers."""
        return x + y

    def reset(self):
        self.value = 0
'''

PY_DECORATED = '''
@staticmethod
def helper():
    pass


async def fetch(url, *args, **kwargs):
    if url:
        for arg in args:
            pass
    return None
'''

TS_ADD = "function add(a: number, b: number): number { return a + b; }"

TS_INTERFACE = '''
export interface Shape {
  area(): number;
  name: string;
}

export class Square {
  private side = 1;

  constructor(side: number) {
    this.side = side;
  }

  protected scale(factor?: number, offset: number = 0): number {
    return this.side * (factor ?? 1) + offset;
  }
}
'''

JS_SOURCE = '''
const helper = (x) => x * 2;

class Greeter {
  greet(name = "world") {
    if (name) {
      return "hi " + name;
    }
    return "hi";
  }
}

function outer() {
  function inner() {}
  return inner;
}
'''

JAVA_SOURCE = '''
public class Service {
    @Override
    public String toString() {
        return "Service";
    }

    private int compute(int a, int b) {
        for (int i = 0; i < a; i++) {
            b += i;
        }
        return b;
    }
}
'''

GO_SOURCE = '''
package main

// Server handles requests.
type Server struct {
    addr string
}

func (s *Server) Start(port int) error {
    if port == 0 {
        return nil
    }
    return nil
}

func NewServer(addr string) *Server {
    return &Server{addr: addr}
}
'''

RUST_SOURCE = '''
pub struct Rect {
    w: f64,
}

pub fn area(r: &Rect) -> f64 {
    r.w * r.w
}
'''


def _summary(elements):
    return [(e.kind, e.name, e.start_line) for e in elements]


# =========================================================================
# Tests: Language detection and support levels
# =========================================================================

class TestLanguageDetection:
    def test_python(self):
        assert detect_language("foo/bar.py") == "python"

    def test_typescript_react(self):
        assert detect_language("src/App.tsx") == "typescriptreact"

    def test_unknown(self):
        assert detect_language("notes.unknownext") is None

    def test_case_insensitive(self):
        assert detect_language("FOO.PY") == "python"

    def test_normalize_aliases(self):
        assert normalize_language("TS") == "typescript"
        assert normalize_language(None) == "plaintext"

    def test_support_levels(self):
        assert get_support_level("python") == AnalysisTier.EXACT
        assert get_support_level("typescript") == AnalysisTier.EXACT
        assert get_support_level("go") == AnalysisTier.HEURISTIC
        assert get_support_level("plaintext") == AnalysisTier.HEURISTIC

    def test_no_parser_for_heuristic_language(self):
        with pytest.raises(ValueError):
            get_parser("go")


# =========================================================================
# Tests: Python (exact tier)
# =========================================================================

class TestPythonElements:
    def test_class_with_methods(self):
        result = analyze_source(PY_CLASS_WITH_METHODS, "python")
        assert isinstance(result, AnalysisResult)
        assert result.tier == AnalysisTier.EXACT

        names = [(e.kind, e.name) for e in result.elements]
        assert names == [
            (ElementKind.CLASS, "Calculator"),
            (ElementKind.METHOD, "__init__"),
            (ElementKind.METHOD, "add"),
            (ElementKind.METHOD, "reset"),
        ]
        for method in result.elements[1:]:
            assert method.parent_name == "Calculator"

    def test_docstrings_count_as_documentation(self):
        elements = {e.name: e for e in analyze(PY_CLASS_WITH_METHODS, "python")}
        assert elements["Calculator"].has_leading_comment
        assert elements["add"].has_leading_comment
        assert not elements["reset"].has_leading_comment

    def test_parameters_skip_self(self):
        add = next(e for e in analyze(PY_CLASS_WITH_METHODS, "python") if e.name == "add")
        assert add.parameters == (
            Parameter(name="x", type="int"),
            Parameter(name="y", type="int", optional=True, default="1"),
        )
        assert add.return_type == "int"

    def test_decorated_function_starts_at_decorator(self):
        helper = next(e for e in analyze(PY_DECORATED, "python") if e.name == "helper")
        assert helper.start_line == 1
        assert helper.kind == ElementKind.FUNCTION

    def test_async_and_complexity(self):
        fetch = next(e for e in analyze(PY_DECORATED, "python") if e.name == "fetch")
        assert fetch.is_async
        assert fetch.complexity == 3  # if + for
        assert [p.name for p in fetch.parameters][0] == "url"

    def test_empty_source(self):
        result = analyze_source("", "python")
        assert result.elements == []


# =========================================================================
# Tests: TypeScript / JavaScript (exact tier)
# =========================================================================

class TestScriptElements:
    def test_single_line_function(self):
        elements = analyze(TS_ADD, "typescript")
        assert len(elements) == 1

        add = elements[0]
        assert add.kind == ElementKind.FUNCTION
        assert add.name == "add"
        assert add.start_line == add.end_line == 0
        assert [p.name for p in add.parameters] == ["a", "b"]
        assert [p.type for p in add.parameters] == ["number", "number"]
        assert add.return_type == "number"

    def test_exported_interface(self):
        shape = analyze(TS_INTERFACE, "typescript")[0]
        assert shape.kind == ElementKind.INTERFACE
        assert shape.name == "Shape"
        assert shape.scope == Scope.EXPORTED
        assert "area" in shape.methods

    def test_class_members(self):
        elements = {e.name: e for e in analyze(TS_INTERFACE, "typescript")}
        square = elements["Square"]
        assert square.kind == ElementKind.CLASS
        assert square.scope == Scope.EXPORTED

        scale = elements["scale"]
        assert scale.kind == ElementKind.METHOD
        assert scale.parent_name == "Square"
        assert scale.scope == Scope.PROTECTED
        assert scale.parameters[0].optional
        assert scale.parameters[1].default == "0"

    def test_javascript_nesting_and_arrows(self):
        elements = analyze(JS_SOURCE, "javascript")
        assert _summary(elements) == [
            (ElementKind.ARROW_FUNCTION, "helper", 1),
            (ElementKind.CLASS, "Greeter", 3),
            (ElementKind.METHOD, "greet", 4),
            (ElementKind.FUNCTION, "outer", 12),
            (ElementKind.FUNCTION, "inner", 13),
        ]

    def test_javascript_method_details(self):
        greet = next(e for e in analyze(JS_SOURCE, "javascript") if e.name == "greet")
        assert greet.parent_name == "Greeter"
        assert greet.complexity == 2
        assert greet.parameters == (Parameter(name="name", optional=True, default='"world"'),)

    def test_nested_function_is_local(self):
        inner = next(e for e in analyze(JS_SOURCE, "javascript") if e.name == "inner")
        assert inner.scope == Scope.LOCAL

    def test_analysis_is_idempotent(self):
        assert analyze_source(TS_INTERFACE, "typescript") == analyze_source(TS_INTERFACE, "typescript")


# =========================================================================
# Tests: Java (exact tier)
# =========================================================================

class TestJavaElements:
    def test_annotation_is_part_of_method(self):
        elements = {e.name: e for e in analyze(JAVA_SOURCE, "java")}
        assert elements["Service"].kind == ElementKind.CLASS
        assert elements["Service"].scope == Scope.EXPORTED

        to_string = elements["toString"]
        assert to_string.start_line == 2
        assert to_string.return_type == "String"
        assert to_string.scope == Scope.PUBLIC

    def test_private_method(self):
        compute = next(e for e in analyze(JAVA_SOURCE, "java") if e.name == "compute")
        assert compute.scope == Scope.PRIVATE
        assert compute.parameters == (Parameter(name="a", type="int"), Parameter(name="b", type="int"))
        assert compute.return_type == "int"
        assert compute.complexity == 2


# =========================================================================
# Tests: Heuristic tier
# =========================================================================

class TestHeuristicElements:
    def test_go_declarations(self):
        result = analyze_source(GO_SOURCE, "go")
        assert result.tier == AnalysisTier.HEURISTIC
        assert [(e.kind, e.name) for e in result.elements] == [
            (ElementKind.CLASS, "Server"),
            (ElementKind.METHOD, "Start"),
            (ElementKind.FUNCTION, "NewServer"),
        ]

    def test_go_details(self):
        elements = {e.name: e for e in analyze(GO_SOURCE, "go")}
        assert elements["Server"].has_leading_comment
        assert elements["Server"].start_line == 4

        start = elements["Start"]
        assert start.start_line == 8
        assert start.end_line == 13
        assert start.return_type == "error"
        assert start.complexity == 2
        assert start.scope == Scope.EXPORTED
        assert start.parameters == (Parameter(name="port", type="int"),)

        assert elements["NewServer"].return_type == "*Server"

    def test_rust_function(self):
        area = next(e for e in analyze(RUST_SOURCE, "rust") if e.name == "area")
        assert area.kind == ElementKind.FUNCTION
        assert area.parameters == (Parameter(name="r", type="&Rect"),)
        assert area.return_type == "f64"

    def test_plaintext_has_no_elements(self):
        result = analyze_source("just some words\nmore words", "plaintext")
        assert result.tier == AnalysisTier.HEURISTIC
        assert result.elements == []

    @patch("docloom.core.ast_parser.get_parser", side_effect=RuntimeError("grammar missing"))
    def test_exact_failure_falls_back(self, mock_get_parser):
        result = analyze_source(TS_ADD, "typescript")
        assert result.tier == AnalysisTier.HEURISTIC
        assert [e.name for e in result.elements] == ["add"]
        assert "grammar missing" in result.errors[0].message


# =========================================================================
# Tests: Lexical scanning
# =========================================================================

class TestLexical:
    def test_braces_in_strings_and_comments_ignored(self):
        lines = [
            "function a() {",
            '  const s = "}{";',
            "  // }",
            "}",
            "x();",
        ]
        assert brace_depths(lines, "javascript") == [0, 1, 1, 1, 0]

    def test_block_comment_spans_lines(self):
        lines = ["/* {", "   { */", "let a = 1;"]
        assert brace_depths(lines, "javascript") == [0, 0, 0]

    def test_strip_removes_string_contents(self):
        stripped = strip_lines(['const s = "{";'], "javascript")
        assert "{" not in stripped[0]
