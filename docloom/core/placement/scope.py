"""Line and scope queries over one document state.

A ScopeView is built once per validation from the current document text.
Declaration starts come from the structural analysis plus the heuristic
declaration patterns, so a line the analyzer missed but that plainly reads
as a declaration still counts. When the analysis is exact, a pattern match
only counts at top level or directly in a class body; anything deeper is a
body line the syntax tree already ruled out. Brace languages use the
running brace depth (strings and comments ignored); indentation languages
use element ranges.
"""

import logging
from typing import Callable, Dict, List, Optional, Set, Tuple

from docloom.core.ast_parser import (
    AnalysisResult,
    AnalysisTier,
    ElementKind,
    StructuralElement,
    analyze_source,
    language_family,
)
from docloom.core.ast_parser.base import indentation_of
from docloom.core.ast_parser.fallback_parser import ATTRIBUTE_LINE, match_declaration
from docloom.core.ast_parser.lexical import (
    BLOCK_ONLY_COMMENTS,
    LINE_COMMENT_TOKENS,
    brace_depths,
    ScanState,
    find_block_end,
    strip_line,
    syntax_for,
)

from .document import Document

logger = logging.getLogger(__name__)

# Block scoping by indentation instead of braces
INDENTATION_LANGUAGES = frozenset({"python"})

ENCLOSING_SEARCH_WINDOW = 30

# Element kinds whose bodies hold member declarations
CONTAINER_KINDS = frozenset({ElementKind.CLASS, ElementKind.INTERFACE})


class ScopeView:
    """Read-only structural view of a document at one point in time."""

    def __init__(self, lines: List[str], language: str, analysis: Optional[AnalysisResult] = None):
        self.lines = lines
        self.language = language
        self.family = language_family(language)
        self.analysis = analysis if analysis is not None else analyze_source("\n".join(lines), language)
        syntax = syntax_for(language)
        state = ScanState()
        self.code_lines: List[str] = []
        self.in_block_comment: List[bool] = []
        for line in lines:
            self.in_block_comment.append(state.block_end is not None)
            self.code_lines.append(strip_line(line, state, syntax))
        self.depths = brace_depths(lines, language)
        self.declaration_starts: Set[int] = {e.start_line for e in self.analysis.elements}
        for index, code in enumerate(self.code_lines):
            if index in self.declaration_starts or not code.strip():
                continue
            if match_declaration(code, language) is not None and self._pattern_start_allowed(index):
                self.declaration_starts.add(index)
        # A declaration preceded by decorator/annotation lines starts at the first of them
        self._attribute_top: Dict[int, int] = {}
        for line in sorted(self.declaration_starts):
            top = line
            while top > 0 and ATTRIBUTE_LINE.match(self.lines[top - 1]):
                top -= 1
            if top != line:
                self._attribute_top[line] = top
        self.declaration_starts.update(self._attribute_top.values())

    @classmethod
    def from_document(cls, document: Document, analysis: Optional[AnalysisResult] = None) -> "ScopeView":
        return cls(document.lines(), document.language_id, analysis)

    def _pattern_start_allowed(self, index: int) -> bool:
        if self.analysis.tier != AnalysisTier.EXACT:
            return True
        parent = self.container_of(index)
        if parent is not None and self._only_attributes_between(parent.start_line, index):
            # Header of a decorated/annotated element that starts at its first attribute
            return True
        if parent is None:
            return self.uses_indentation or self.depths[index] == 0
        if parent.kind not in CONTAINER_KINDS:
            return False
        return self.uses_indentation or self.depths[index] == self.depths[parent.start_line] + 1

    def _only_attributes_between(self, start: int, line: int) -> bool:
        return all(ATTRIBUTE_LINE.match(self.lines[j]) for j in range(start, line))

    def container_of(self, line: int) -> Optional[StructuralElement]:
        """Innermost analyzed element whose body (not its first line) holds ``line``."""
        best: Optional[StructuralElement] = None
        for element in self.analysis.elements:
            if element.start_line < line <= element.end_line:
                if best is None or element.start_line >= best.start_line:
                    best = element
        return best

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def uses_indentation(self) -> bool:
        return self.family in INDENTATION_LANGUAGES

    # =========================================================================
    # Line classification
    # =========================================================================

    def is_blank(self, line: int) -> bool:
        return not self.lines[line].strip()

    def is_declaration(self, line: int) -> bool:
        return line in self.declaration_starts

    def canonical(self, line: int) -> int:
        """The line a declaration really starts on (its first decorator, if any)."""
        return self._attribute_top.get(line, line)

    def is_comment(self, line: int) -> bool:
        if is_comment_text(self.lines[line], self.language):
            return True
        # Interior line of a multi-line block comment
        return self.in_block_comment[line] and not self.code_lines[line].strip() and not self.is_blank(line)

    def is_block_interior(self, line: int) -> bool:
        """True when ``line`` sits strictly inside a body.

        Declaration starts, and blank lines directly above one, are never
        interior.
        """
        if self.is_declaration(line):
            return False
        if self.is_blank(line) and line + 1 < self.line_count and self.is_declaration(line + 1):
            return False
        if self.uses_indentation:
            return self._indented_interior(line)
        return self.depths[line] > 0

    def _indented_interior(self, line: int) -> bool:
        for element in self.analysis.elements:
            if element.start_line < line <= element.end_line:
                return True
        # Indented continuation under a declaration the analyzer missed
        return self.enclosing_by_pattern(line) is not None

    # =========================================================================
    # Searches
    # =========================================================================

    def element_at(self, line: int) -> Optional[StructuralElement]:
        return self.analysis.element_at(line)

    def element_for(self, line: int) -> Optional[StructuralElement]:
        """Element declared at ``line``, looking through leading decorators."""
        element = self.analysis.element_at(self.canonical(line))
        if element is not None:
            return element
        # Multi-line decorator arguments the attribute pattern cannot follow
        best: Optional[StructuralElement] = None
        for candidate in self.analysis.elements:
            if not candidate.start_line < line <= min(candidate.end_line, candidate.start_line + 5):
                continue
            if self.lines[candidate.start_line].lstrip().startswith("@"):
                if best is None or candidate.start_line > best.start_line:
                    best = candidate
        return best

    def enclosing_declaration(self, line: int, window: int = ENCLOSING_SEARCH_WINDOW) -> Optional[int]:
        """Start of the innermost declaration whose body holds ``line``.

        Only declarations starting within ``window`` lines above are
        considered.
        """
        best: Optional[int] = None
        for element in self.analysis.elements:
            if element.start_line < line <= element.end_line and line - element.start_line <= window:
                if best is None or element.start_line > best:
                    best = element.start_line
        if best is not None:
            return best
        return self.enclosing_by_pattern(line, window)

    def enclosing_by_pattern(self, line: int, window: int = ENCLOSING_SEARCH_WINDOW) -> Optional[int]:
        """Nearest pattern-matched declaration above whose block reaches ``line``."""
        for candidate in range(line - 1, max(-1, line - window - 1), -1):
            if candidate not in self.declaration_starts:
                continue
            end = self.block_end(candidate)
            if end is not None and end >= line:
                return candidate
        return None

    def block_end(self, line: int) -> Optional[int]:
        """Last line of the block opened by the declaration at ``line``."""
        element = self.element_at(line)
        if element is not None and element.end_line > line:
            return element.end_line
        if self.uses_indentation:
            base = indentation_of(self.lines[line])
            last = None
            for j in range(line + 1, self.line_count):
                if self.is_blank(j):
                    continue
                if indentation_of(self.lines[j]) <= base:
                    break
                last = j
            return last
        return find_block_end(self.code_lines, line)

    def next_declaration(
        self,
        line: int,
        window: int,
        accept: Optional[Callable[[int], bool]] = None,
        include_start: bool = True,
    ) -> Optional[int]:
        """First declaration start at/after ``line`` within ``window`` lines."""
        first = line if include_start else line + 1
        for candidate in range(first, min(self.line_count, line + window + 1)):
            if candidate in self._attribute_top:
                continue
            if self.is_declaration(candidate) and (accept is None or accept(candidate)):
                return candidate
        return None

    def attached_declaration(self, line: int) -> Optional[int]:
        """Declaration directly below the comment block containing ``line``."""
        j = line
        while j < self.line_count and self.is_comment(j):
            j += 1
        if j < self.line_count and j != line and self.is_declaration(j):
            return j
        return None

    def comment_block_top(self, line: int) -> Optional[int]:
        """Top of the contiguous comment block ending right above ``line``."""
        j = line - 1
        if j < 0 or not self.is_comment(j):
            return None
        while j - 1 >= 0 and self.is_comment(j - 1):
            j -= 1
        return j

    def has_comment_above(self, line: int) -> bool:
        return self.comment_block_top(line) is not None

    # =========================================================================
    # Indentation-language signatures
    # =========================================================================

    def signature_end(self, line: int) -> Optional[int]:
        """Last line of the signature of the declaration starting at ``line``.

        Skips decorators, then follows the header to the first line where
        every bracket is closed. That line must end in ``:``; otherwise the
        body shares the header line (``def f(): return 1``) and there is no
        place for a docstring, so None is returned.
        """
        j = line
        while j < self.line_count and self.lines[j].lstrip().startswith("@"):
            j += 1
        element = self.element_for(line)
        last = element.end_line if element is not None and element.end_line >= j else self.line_count - 1
        depth = 0
        for k in range(j, min(last, self.line_count - 1) + 1):
            code = self.code_lines[k].rstrip()
            if not code.strip():
                continue
            for ch in code:
                if ch in "([{":
                    depth += 1
                elif ch in ")]}" and depth > 0:
                    depth -= 1
            if depth > 0 or code.endswith("\\"):
                continue
            return k if code.endswith(":") else None
        return None

    def body_indentation(self, line: int) -> int:
        """Indentation of the first body line after the signature at ``line``."""
        header = self.signature_end(line)
        base = indentation_of(self.lines[line])
        if header is None:
            return base + 4
        for j in range(header + 1, self.line_count):
            if self.is_blank(j):
                continue
            indent = indentation_of(self.lines[j])
            return indent if indent > base else base + 4
        return base + 4

    def has_docstring(self, line: int) -> bool:
        header = self.signature_end(line)
        if header is None:
            return False
        for j in range(header + 1, min(self.line_count, header + 3)):
            stripped = self.lines[j].strip()
            if stripped:
                return stripped.startswith(('"""', "'''", 'r"""', "r'''"))
        return False

    def indentation_for(self, line: int) -> int:
        """Indentation of ``line``, or of the nearest following non-blank line."""
        for j in range(line, self.line_count):
            if not self.is_blank(j):
                return indentation_of(self.lines[j])
        return 0


def comment_tokens(language: str) -> tuple:
    family = language_family(language)
    if family in BLOCK_ONLY_COMMENTS:
        start, end = BLOCK_ONLY_COMMENTS[family]
        return (start, end)
    token = LINE_COMMENT_TOKENS.get(family)
    if token == "#":
        return ("#",)
    if token:
        return (token, "/*", "*")
    return ("//", "/*", "*", "*/")


def comment_terminators(language: str) -> Tuple[str, ...]:
    """Tokens that close a block comment in ``language`` (none for ``#`` languages)."""
    family = language_family(language)
    if family in BLOCK_ONLY_COMMENTS:
        return (BLOCK_ONLY_COMMENTS[family][1],)
    if LINE_COMMENT_TOKENS.get(family) == "#":
        return ()
    return ("*/",)


def is_comment_text(text: str, language: str) -> bool:
    stripped = text.strip()
    if not stripped:
        return False
    if stripped.startswith(comment_tokens(language)):
        return True
    terminators = comment_terminators(language)
    return bool(terminators) and stripped.endswith(terminators)


def looks_like_comment(text: str, language: str, docstring: bool = True) -> bool:
    """True when ``text`` is one well-formed comment (or docstring) for ``language``.

    A block comment may close only once, at its very end. For indentation
    languages a quoted docstring is accepted only when ``docstring`` is set.
    """
    lines = [line for line in text.split("\n") if line.strip()]
    if not lines:
        return False
    stripped = text.strip()
    if language_family(language) in INDENTATION_LANGUAGES:
        for quote in ('"""', "'''"):
            if stripped.startswith(quote) and stripped.endswith(quote) and len(stripped) >= 6:
                return docstring and stripped.count(quote) == 2
    if not all(is_comment_text(line, language) for line in lines):
        return False
    for terminator in comment_terminators(language):
        if terminator in stripped and (stripped.count(terminator) != 1 or not stripped.endswith(terminator)):
            return False
    return True


def is_block_interior(document: Document, line: int, analysis: Optional[AnalysisResult] = None) -> bool:
    """Block-interior test for ``line`` of ``document`` (see ScopeView)."""
    view = ScopeView.from_document(document, analysis)
    if not 0 <= line < view.line_count:
        return False
    return view.is_block_interior(line)
