"""Structural analysis data models.

Defines the data structures produced by source analysis.
These are pure data containers: no parsing logic.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple


class ElementKind(str, Enum):
    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    INTERFACE = "interface"
    VARIABLE = "variable"
    ARROW_FUNCTION = "arrow-function"


class Scope(str, Enum):
    EXPORTED = "exported"
    LOCAL = "local"
    PUBLIC = "public"
    PRIVATE = "private"
    PROTECTED = "protected"


class AnalysisTier(str, Enum):
    """Which analyzer produced a result.

    EXACT results come from a full tree-sitter parse; HEURISTIC results come
    from per-line pattern matching and carry a lower confidence ceiling.
    """

    EXACT = "exact"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class Parameter:
    """One formal parameter of a callable element."""

    name: str
    type: Optional[str] = None
    optional: bool = False
    default: Optional[str] = None


@dataclass(frozen=True)
class StructuralElement:
    """A single declaration found in source (function, class, method, ...).

    Line numbers are 0-based and inclusive. ``start_line`` is the first line
    of the whole declaration, including decorators, annotations and an
    ``export`` wrapper.
    """

    kind: ElementKind
    name: str
    start_line: int
    end_line: int
    indentation: int = 0
    parameters: Tuple[Parameter, ...] = ()
    return_type: Optional[str] = None
    complexity: int = 1
    is_async: bool = False
    scope: Scope = Scope.LOCAL
    has_leading_comment: bool = False
    methods: Tuple[str, ...] = ()  # classes only
    properties: Tuple[str, ...] = ()  # classes only
    parent_name: Optional[str] = None  # for methods: class name

    @property
    def is_callable(self) -> bool:
        return self.kind in (ElementKind.FUNCTION, ElementKind.METHOD, ElementKind.ARROW_FUNCTION)

    def contains(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line


@dataclass
class ParseError:
    """An error encountered during analysis."""

    line: int
    message: str
    severity: str = "warning"  # "warning" | "error"


@dataclass
class AnalysisResult:
    """Complete analysis output for one source text."""

    language: str
    tier: AnalysisTier
    elements: List[StructuralElement]
    line_count: int = 0
    errors: List[ParseError] = field(default_factory=list)

    def element_at(self, line: int) -> Optional[StructuralElement]:
        """Return the first element whose declaration starts on ``line``."""
        for element in self.elements:
            if element.start_line == line:
                return element
        return None

    def innermost_containing(self, line: int) -> Optional[StructuralElement]:
        """Return the most deeply nested element whose range covers ``line``."""
        best: Optional[StructuralElement] = None
        for element in self.elements:
            if element.contains(line):
                if best is None or element.start_line >= best.start_line:
                    best = element
        return best
