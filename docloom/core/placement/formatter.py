"""Comment rendering: description + element metadata -> comment text.

Each supported language has exactly one canonical documentation shape.
Output is unindented and has no trailing newline; the insertion executor
applies indentation and line breaks.
"""

import logging
import re
from typing import Callable, Dict, List, Optional

from docloom.core.ast_parser import ElementKind, Parameter, Scope, StructuralElement, language_family
from docloom.core.ast_parser.lexical import BLOCK_ONLY_COMMENTS, LINE_COMMENT_TOKENS

logger = logging.getLogger(__name__)

HIGH_COMPLEXITY = 15

VOID_TYPES = frozenset({
    "void", "none", "()", "unit", "void?", "undefined", "never",
    "promise<void>", "task", "nothing", "noreturn",
})


# Text that would close a comment early, and what it is written as instead
TERMINATOR_ESCAPES = {
    "*/": "*\\/",
    '"""': '\\"\\"\\"',
    "-->": "--&gt;",
}

_LEADING_MARKUP = re.compile(r"""^\s*(?:/\*+|\*+/?|/{2,3}|#+|--|<!--|[rRuU]?(?:\"\"\"|'''))\s?""")
_TRAILING_MARKUP = re.compile(r"""\s*(?:\*+/|-->|\"\"\"|''')\s*$""")


def escape_terminator(text: str, terminator: str) -> str:
    return text.replace(terminator, TERMINATOR_ESCAPES[terminator])


def strip_comment_markup(text: str) -> str:
    """Prose inside ``text`` with comment delimiters, line prefixes and tag lines removed."""
    parts: List[str] = []
    for line in (text or "").split("\n"):
        line = _LEADING_MARKUP.sub("", _TRAILING_MARKUP.sub("", line)).strip()
        if line and not line.startswith("@"):
            parts.append(line)
    return " ".join(parts)


def normalize_description(description: str) -> str:
    """Collapse whitespace, capitalize, and ensure terminal punctuation."""
    text = re.sub(r"\s+", " ", description or "").strip()
    if not text:
        raise ValueError("Description must not be empty")
    text = text[0].upper() + text[1:]
    if text[-1] not in ".!?":
        text += "."
    return text


def is_void(return_type: Optional[str]) -> bool:
    if return_type is None:
        return True
    return return_type.strip().lower().replace(" ", "") in VOID_TYPES


def _complexity_note(element: Optional[StructuralElement]) -> Optional[str]:
    if element is not None and element.complexity > HIGH_COMPLEXITY:
        return f"Note: high complexity ({element.complexity}); consider reviewing for simplification."
    return None


def _params(element: Optional[StructuralElement]) -> List[Parameter]:
    if element is None or not element.is_callable:
        return []
    return list(element.parameters)


def _returns(element: Optional[StructuralElement]) -> Optional[str]:
    if element is None or not element.is_callable or is_void(element.return_type):
        return None
    return element.return_type


def _block(lines: List[str], opener: str = "/**", prefix: str = " *", closer: str = " */") -> str:
    lines = [escape_terminator(line, "*/") for line in lines]
    body = [f"{prefix} {line}".rstrip() if line else prefix for line in lines]
    return "\n".join([opener] + body + [closer])


def _prefixed(lines: List[str], prefix: str) -> str:
    return "\n".join(f"{prefix} {line}".rstrip() if line else prefix for line in lines)


class CommentFormatter:
    """Renders documentation comments per language.

    Public API:
        format(description, element, language, line_comments=False) → str
    """

    def __init__(self):
        self._renderers: Dict[str, Callable[[str, Optional[StructuralElement]], str]] = {
            "typescript": self._jsdoc,
            "javascript": self._jsdoc,
            "java": self._javadoc,
            "scala": self._javadoc,
            "groovy": self._javadoc,
            "kotlin": self._kdoc,
            "python": self._google_docstring,
            "csharp": self._xml_doc,
            "php": self._phpdoc,
            "c": self._doxygen,
            "cpp": self._doxygen,
            "rust": self._rustdoc,
            "go": self._godoc,
            "ruby": self._yard,
            "swift": self._swift_doc,
        }

    def format(
        self,
        description: str,
        element: Optional[StructuralElement],
        language: str,
        line_comments: bool = False,
    ) -> str:
        """Render ``description`` for ``element`` in ``language``.

        Args:
            description: Free text; normalized before rendering
            element: Documented element, or None for a summary-only comment
            language: Language identifier
            line_comments: Python only; render ``#`` lines instead of a docstring

        Raises:
            ValueError: If the description is empty
        """
        summary = normalize_description(description)
        family = language_family(language)

        if family == "python" and line_comments:
            return self._python_line_comments(summary, element)

        renderer = self._renderers.get(family)
        if renderer is not None:
            return renderer(summary, element)
        return self._fallback(summary, family)

    # =========================================================================
    # Block doc comments
    # =========================================================================

    def _jsdoc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        tags: List[str] = []
        for param in _params(element):
            type_text = param.type or "*"
            if param.optional and param.default is not None:
                tags.append(f"@param {{{type_text}}} [{param.name}={param.default}]")
            elif param.optional:
                tags.append(f"@param {{{type_text}}} [{param.name}]")
            else:
                tags.append(f"@param {{{type_text}}} {param.name}")
        returns = _returns(element)
        if returns:
            tags.append(f"@returns {{{returns}}}")
        if element is not None:
            if element.is_async:
                tags.append("@async")
            if element.kind == ElementKind.INTERFACE:
                tags.append("@interface")
            if element.kind == ElementKind.METHOD and element.scope == Scope.PRIVATE:
                tags.append("@private")
            elif element.kind == ElementKind.METHOD and element.scope == Scope.PROTECTED:
                tags.append("@protected")
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        if tags:
            lines += [""] + tags
        return _block(lines)

    def _javadoc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        tags = [
            f"@param {p.name} {{@code {p.type}}}" if p.type else f"@param {p.name}"
            for p in _params(element)
        ]
        returns = _returns(element)
        if returns:
            tags.append(f"@return {{@code {returns}}}")
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        if tags:
            lines += [""] + tags
        return _block(lines)

    def _kdoc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        tags = [f"@param {p.name}" for p in _params(element)]
        returns = _returns(element)
        if returns:
            tags.append(f"@return {returns}")
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        if tags:
            lines += [""] + tags
        return _block(lines)

    def _phpdoc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        tags: List[str] = []
        for param in _params(element):
            tag = f"@param {param.type or 'mixed'} ${param.name}"
            if param.default is not None:
                tag += f" Optional, defaults to {param.default}."
            tags.append(tag)
        returns = _returns(element)
        if returns:
            tags.append(f"@return {returns}")
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        if tags:
            lines += [""] + tags
        return _block(lines)

    def _doxygen(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [f"@brief {summary}"]
        tags = [f"@param {p.name}" for p in _params(element)]
        returns = _returns(element)
        if returns:
            tags.append(f"@return {returns}")
        note = _complexity_note(element)
        if note:
            lines += ["", f"@note {note[len('Note: '):]}"]
        if tags:
            lines += [""] + tags
        return _block(lines)

    # =========================================================================
    # Line-prefixed doc comments
    # =========================================================================

    def _xml_doc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = ["<summary>", summary, "</summary>"]
        for param in _params(element):
            lines.append(f'<param name="{param.name}">{param.type or ""}</param>')
        returns = _returns(element)
        if returns:
            lines.append(f"<returns>{returns}</returns>")
        note = _complexity_note(element)
        if note:
            lines.append(f"<remarks>{note}</remarks>")
        return _prefixed(lines, "///")

    def _rustdoc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        params = _params(element)
        if params:
            lines += ["", "# Arguments", ""]
            lines += [f"* `{p.name}` - `{p.type}`" if p.type else f"* `{p.name}`" for p in params]
        returns = _returns(element)
        if returns:
            lines += ["", "# Returns", "", f"`{returns}`"]
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        return _prefixed(lines, "///")

    def _godoc(self, summary: str, element: Optional[StructuralElement]) -> str:
        # Go doc comments start with the declared name
        text = summary
        if element is not None and element.name != "anonymous" and not summary.startswith(element.name + " "):
            text = f"{element.name} {summary[0].lower()}{summary[1:]}"
        lines = [text]
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        return _prefixed(lines, "//")

    def _yard(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        tags = [f"@param {p.name} [{p.type or 'Object'}]" for p in _params(element)]
        returns = _returns(element)
        if returns:
            tags.append(f"@return [{returns}]")
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        if tags:
            lines += [""] + tags
        return _prefixed(lines, "#")

    def _swift_doc(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [summary]
        tags = [f"- Parameter {p.name}: {p.type}" if p.type else f"- Parameter {p.name}:" for p in _params(element)]
        returns = _returns(element)
        if returns:
            tags.append(f"- Returns: {returns}")
        note = _complexity_note(element)
        if note:
            lines += ["", note]
        if tags:
            lines += [""] + tags
        return _prefixed(lines, "///")

    # =========================================================================
    # Python
    # =========================================================================

    def _google_body(self, summary: str, element: Optional[StructuralElement]) -> List[str]:
        lines = [summary]
        params = _params(element)
        if params:
            lines += ["", "Args:"]
            for param in params:
                label = param.name
                if param.type and param.optional:
                    label += f" ({param.type}, optional)"
                elif param.type:
                    label += f" ({param.type})"
                elif param.optional:
                    label += " (optional)"
                entry = f"    {label}:"
                if param.default is not None:
                    entry += f" Defaults to {param.default}."
                lines.append(entry)
        returns = _returns(element)
        if returns:
            lines += ["", "Returns:", f"    {returns}:"]
        note = _complexity_note(element)
        if note:
            lines += ["", "Note:", f"    {note[len('Note: '):]}"]
        return lines

    def _google_docstring(self, summary: str, element: Optional[StructuralElement]) -> str:
        lines = [escape_terminator(line, '"""') for line in self._google_body(summary, element)]
        if len(lines) == 1:
            return f'"""{lines[0]}"""'
        return "\n".join([f'"""{lines[0]}'] + lines[1:] + ['"""'])

    def _python_line_comments(self, summary: str, element: Optional[StructuralElement]) -> str:
        return _prefixed(self._google_body(summary, element), "#")

    # =========================================================================
    # Fallback
    # =========================================================================

    @staticmethod
    def _fallback(summary: str, family: str) -> str:
        if family in BLOCK_ONLY_COMMENTS:
            start, end = BLOCK_ONLY_COMMENTS[family]
            return f"{start} {escape_terminator(summary, end)} {end}"
        token = LINE_COMMENT_TOKENS.get(family, "//")
        return f"{token} {summary}"
