"""Line-oriented lexical scanning.

Strips string literals and comments from source lines so that brace counting
and declaration matching never see a ``{`` inside ``"..."`` or ``/* ... */``.
State (open block comment, open multi-line string) carries across lines.
"""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class CommentSyntax:
    """Comment and string delimiters for one language family."""

    line_comments: Tuple[str, ...] = ("//",)
    block_comments: Tuple[Tuple[str, str], ...] = (("/*", "*/"),)
    quotes: Tuple[str, ...] = ('"',)
    multiline_strings: Tuple[str, ...] = ()
    char_literals: bool = True  # 'x' is a character, not a string


C_LIKE = CommentSyntax()
SCRIPT_LIKE = CommentSyntax(quotes=('"', "'"), multiline_strings=("`",), char_literals=False)
PYTHON_LIKE = CommentSyntax(
    line_comments=("#",),
    block_comments=(),
    quotes=('"', "'"),
    multiline_strings=('"""', "'''"),
    char_literals=False,
)
RUBY_LIKE = CommentSyntax(line_comments=("#",), block_comments=(), quotes=('"', "'"), char_literals=False)
PHP_LIKE = CommentSyntax(line_comments=("//", "#"), quotes=('"', "'"), char_literals=False)
GO_LIKE = CommentSyntax(multiline_strings=("`",))
KOTLIN_LIKE = CommentSyntax(multiline_strings=('"""',))
SQL_LIKE = CommentSyntax(line_comments=("--",), quotes=("'",), char_literals=False)

SYNTAX_BY_LANGUAGE: Dict[str, CommentSyntax] = {
    "javascript": SCRIPT_LIKE,
    "javascriptreact": SCRIPT_LIKE,
    "typescript": SCRIPT_LIKE,
    "typescriptreact": SCRIPT_LIKE,
    "python": PYTHON_LIKE,
    "ruby": RUBY_LIKE,
    "perl": RUBY_LIKE,
    "shellscript": RUBY_LIKE,
    "r": RUBY_LIKE,
    "php": PHP_LIKE,
    "go": GO_LIKE,
    "kotlin": KOTLIN_LIKE,
    "swift": KOTLIN_LIKE,
    "sql": SQL_LIKE,
    "lua": SQL_LIKE,
}

# Single-line comment token per language (formatter fallback shape)
LINE_COMMENT_TOKENS: Dict[str, str] = {
    "python": "#",
    "ruby": "#",
    "perl": "#",
    "shellscript": "#",
    "r": "#",
    "yaml": "#",
    "toml": "#",
    "dockerfile": "#",
    "makefile": "#",
    "powershell": "#",
    "elixir": "#",
    "sql": "--",
    "lua": "--",
    "haskell": "--",
    "ada": "--",
    "clojure": ";",
    "lisp": ";",
    "scheme": ";",
    "ini": ";",
    "erlang": "%",
    "matlab": "%",
    "latex": "%",
    "vb": "'",
    "vbnet": "'",
    "fortran": "!",
}

# Languages whose only comment form is a block
BLOCK_ONLY_COMMENTS: Dict[str, Tuple[str, str]] = {
    "css": ("/*", "*/"),
    "html": ("<!--", "-->"),
    "xml": ("<!--", "-->"),
    "markdown": ("<!--", "-->"),
}

_CHAR_LITERAL = re.compile(r"'(?:\\.|[^\\'])'|'\\[uUx]?[0-9a-fA-F]{1,8}'")


def syntax_for(language: str) -> CommentSyntax:
    return SYNTAX_BY_LANGUAGE.get(language, C_LIKE)


@dataclass
class ScanState:
    """Lexical state carried from one line to the next."""

    block_end: Optional[str] = None  # closing token of an open block comment
    string_end: Optional[str] = None  # closing delimiter of an open multi-line string


def _find_closing(line: str, start: int, delimiter: str) -> int:
    """Index just past ``delimiter`` honoring backslash escapes, or -1."""
    i = start
    while i < len(line):
        if line[i] == "\\":
            i += 2
            continue
        if line.startswith(delimiter, i):
            return i + len(delimiter)
        i += 1
    return -1


def strip_line(line: str, state: ScanState, syntax: CommentSyntax) -> str:
    """Return ``line`` with comments and string contents blanked out.

    Strings are kept as empty quote pairs so that the line still reads as
    code. ``state`` is updated in place.
    """
    out: List[str] = []
    i = 0
    n = len(line)
    while i < n:
        if state.block_end:
            j = line.find(state.block_end, i)
            if j == -1:
                return "".join(out)
            i = j + len(state.block_end)
            state.block_end = None
            out.append(" ")
            continue

        if state.string_end:
            j = _find_closing(line, i, state.string_end)
            if j == -1:
                return "".join(out)
            i = j
            state.string_end = None
            out.append('""')
            continue

        if any(line.startswith(token, i) for token in syntax.line_comments):
            break

        opened = False
        for begin, end in syntax.block_comments:
            if line.startswith(begin, i):
                state.block_end = end
                i += len(begin)
                opened = True
                break
        if opened:
            continue

        for delimiter in syntax.multiline_strings:
            if line.startswith(delimiter, i):
                state.string_end = delimiter
                i += len(delimiter)
                opened = True
                break
        if opened:
            continue

        ch = line[i]
        if ch == "'" and syntax.char_literals:
            match = _CHAR_LITERAL.match(line, i)
            if match:
                out.append("''")
                i = match.end()
                continue
        elif ch in syntax.quotes:
            j = _find_closing(line, i + 1, ch)
            out.append(ch + ch)
            if j == -1:
                # Unterminated single-line string: rest of line is literal
                return "".join(out)
            i = j
            continue

        out.append(ch)
        i += 1
    return "".join(out)


def strip_lines(lines: List[str], language: str) -> List[str]:
    """Strip every line of a document, carrying state across lines."""
    syntax = syntax_for(language)
    state = ScanState()
    return [strip_line(line, state, syntax) for line in lines]


def brace_depths(lines: List[str], language: str) -> List[int]:
    """Unmatched ``{`` count at the *start* of each line.

    Depth never goes negative: a stray ``}`` is ignored rather than allowed
    to hide a later open scope.
    """
    depths: List[int] = []
    depth = 0
    for code in strip_lines(lines, language):
        depths.append(depth)
        for ch in code:
            if ch == "{":
                depth += 1
            elif ch == "}" and depth > 0:
                depth -= 1
    return depths


def find_block_end(code_lines: List[str], start: int, lookahead: int = 3) -> Optional[int]:
    """Line index of the ``}`` matching the first ``{`` at/after ``start``.

    ``code_lines`` must already be stripped. Returns None when no brace opens
    within ``lookahead`` lines of ``start``, or when the line ends in ``;``
    before any brace (a prototype or abstract declaration).
    """
    depth = 0
    opened = False
    for index in range(start, len(code_lines)):
        code = code_lines[index]
        if not opened and index > start + lookahead:
            return None
        for ch in code:
            if ch == "{":
                depth += 1
                opened = True
            elif ch == "}" and opened:
                depth -= 1
                if depth == 0:
                    return index
        if not opened and code.rstrip().endswith(";"):
            return None
    return len(code_lines) - 1 if opened else None
