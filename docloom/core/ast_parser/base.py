"""Base interface for exact-tier (tree-sitter) structural analyzers.

Shared walking, complexity counting and leading-comment detection live here;
language-specific element extraction is delegated to subclasses.
"""

import logging
from abc import ABC, abstractmethod
from typing import FrozenSet, List, Optional, Tuple

import tree_sitter

from .models import AnalysisResult, AnalysisTier, ElementKind, ParseError, Scope, StructuralElement

logger = logging.getLogger(__name__)


def count_lines(source_text: str) -> int:
    """Number of lines as an editor shows them (a trailing newline opens one more)."""
    return source_text.count("\n") + 1


def indentation_of(line: str) -> int:
    """Column of the first non-whitespace character (0 for blank lines)."""
    stripped = line.lstrip()
    if not stripped:
        return 0
    return len(line) - len(stripped)


class BaseLanguageParser(ABC):
    """Abstract base for language-specific tree-sitter analyzers.

    Subclasses implement:
    - get_language(): returns language name string
    - get_tree_sitter_language(): returns tree-sitter Language object
    - extract_elements(): walks the tree and returns StructuralElement objects

    and declare which node types count as branches (BRANCH_NODE_TYPES) and
    which prefixes start a comment line (COMMENT_PREFIXES).
    """

    BRANCH_NODE_TYPES: FrozenSet[str] = frozenset()
    COMMENT_PREFIXES: Tuple[str, ...] = ("//", "/*", "*")

    @abstractmethod
    def get_language(self) -> str:
        """Return the language identifier (e.g., 'python', 'javascript')."""
        ...

    @abstractmethod
    def get_tree_sitter_language(self) -> tree_sitter.Language:
        """Return the tree-sitter Language object for this language."""
        ...

    @abstractmethod
    def extract_elements(
        self, tree: tree_sitter.Tree, source: bytes, lines: List[str]
    ) -> List[StructuralElement]:
        """Extract structural elements from a parsed tree-sitter AST.

        Args:
            tree: Parsed tree-sitter tree
            source: Raw source bytes
            lines: Source split into lines (no terminators)

        Returns:
            Elements in source order, outer declarations before inner ones
        """
        ...

    def parse_source(self, source_text: str) -> AnalysisResult:
        """Parse source code into an exact-tier AnalysisResult.

        Never raises: extraction failures are logged and recorded in
        ``errors`` with an empty element list.
        """
        errors: List[ParseError] = []
        source_bytes = source_text.encode("utf-8")
        lines = source_text.split("\n")

        parser = tree_sitter.Parser(self.get_tree_sitter_language())
        tree = parser.parse(source_bytes)

        if tree.root_node.has_error:
            errors.append(
                ParseError(line=0, message="Tree-sitter reported parse errors in source")
            )

        try:
            elements = self.extract_elements(tree, source_bytes, lines)
        except Exception as e:
            logger.error(f"Failed to extract {self.get_language()} elements: {e}")
            elements = []
            errors.append(ParseError(line=0, message=f"Element extraction failed: {e}", severity="error"))

        return AnalysisResult(
            language=self.get_language(),
            tier=AnalysisTier.EXACT,
            elements=elements,
            line_count=len(lines),
            errors=errors,
        )

    # =========================================================================
    # Shared element construction
    # =========================================================================

    def build_element(
        self,
        kind: ElementKind,
        name: str,
        node: tree_sitter.Node,
        lines: List[str],
        outer: Optional[tree_sitter.Node] = None,
        documented: bool = False,
        **fields,
    ) -> StructuralElement:
        """Build an element spanning ``outer`` (or ``node``).

        ``node`` is the declaration itself and is what complexity is counted
        under; ``outer`` is the full extent including export wrappers,
        decorators or annotations.
        """
        span = outer if outer is not None else node
        start = span.start_point.row
        return StructuralElement(
            kind=kind,
            name=name,
            start_line=start,
            end_line=span.end_point.row,
            indentation=indentation_of(lines[start]) if start < len(lines) else 0,
            complexity=self.count_complexity(node),
            has_leading_comment=documented or self.has_leading_comment(lines, start),
            **fields,
        )

    def count_complexity(self, node: tree_sitter.Node) -> int:
        """McCabe-style count of branch nodes under ``node``, starting at 1."""
        complexity = 1
        stack = list(node.children)
        while stack:
            current = stack.pop()
            if current.type in self.BRANCH_NODE_TYPES:
                complexity += 1
            stack.extend(current.children)
        return complexity

    def has_leading_comment(self, lines: List[str], start_line: int) -> bool:
        """True when the line right above ``start_line`` is (the end of) a comment."""
        if start_line <= 0 or start_line > len(lines):
            return False
        previous = lines[start_line - 1].strip()
        if not previous:
            return False
        return previous.startswith(self.COMMENT_PREFIXES) or previous.endswith("*/")

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _node_text(node: tree_sitter.Node, source: bytes) -> str:
        return source[node.start_byte:node.end_byte].decode("utf-8", errors="replace")

    @staticmethod
    def _get_child_text(node: tree_sitter.Node, field_name: str, source: bytes) -> Optional[str]:
        child = node.child_by_field_name(field_name)
        if child:
            return source[child.start_byte:child.end_byte].decode("utf-8", errors="replace")
        return None

    @staticmethod
    def _get_child_by_type(node: tree_sitter.Node, type_name: str) -> Optional[tree_sitter.Node]:
        for child in node.children:
            if child.type == type_name:
                return child
        return None

    @staticmethod
    def _has_child_type(node: tree_sitter.Node, type_name: str) -> bool:
        return any(child.type == type_name for child in node.children)

    @staticmethod
    def _strip_type_annotation(text: Optional[str]) -> Optional[str]:
        """': number' -> 'number'."""
        if text is None:
            return None
        cleaned = text.strip()
        if cleaned.startswith(":"):
            cleaned = cleaned[1:].strip()
        if cleaned.startswith("->"):
            cleaned = cleaned[2:].strip()
        return cleaned or None

    @staticmethod
    def _member_scope(name: str, modifiers: List[str]) -> Scope:
        if "private" in modifiers or name.startswith("#"):
            return Scope.PRIVATE
        if "protected" in modifiers:
            return Scope.PROTECTED
        return Scope.PUBLIC
