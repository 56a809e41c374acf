"""Heuristic (pattern-matching) analyzer for languages without a grammar.

Applies an ordered set of per-language regular expressions line by line;
the first pattern that matches a line wins. Brace-delimited bodies are
closed by brace matching on comment/string-stripped text, indentation
languages by dedent. Results carry ``AnalysisTier.HEURISTIC``.
"""

import logging
import re
from typing import Dict, List, Optional, Pattern, Tuple

from .base import indentation_of
from .lexical import LINE_COMMENT_TOKENS, find_block_end, strip_lines
from .models import AnalysisResult, AnalysisTier, ElementKind, Parameter, ParseError, Scope, StructuralElement

logger = logging.getLogger(__name__)

# Words that look like `name(` calls but are control flow, never declarations
CONTROL_KEYWORDS = frozenset({
    "if", "else", "elif", "for", "foreach", "while", "do", "switch", "case",
    "catch", "try", "finally", "return", "throw", "new", "delete", "sizeof",
    "typeof", "instanceof", "await", "yield", "using", "lock", "fixed",
    "when", "guard", "defer", "assert",
    "unless", "until", "rescue", "ensure", "function", "super", "this",
})

_MODIFIERS = r"(?:(?:public|private|protected|internal|static|final|abstract|virtual|override|sealed|async|extern|unsafe|partial|readonly|synchronized|native|default|new|open|inline|suspend|operator|infix|tailrec|data|export|declare|const|mutating|fileprivate|required|convenience)\s+)*"
_PARAMS = r"\((?P<params>[^()]*(?:\([^()]*\)[^()]*)*)\)?"

PatternEntry = Tuple[ElementKind, Pattern[str]]

# A function literal inside the parentheses marks a call taking a callback
_CALLBACK_ARGUMENT = re.compile(r"=>|->|\bfunction\b")


def _p(kind: ElementKind, regex: str) -> PatternEntry:
    return kind, re.compile(regex)


_SCRIPT_PATTERNS: List[PatternEntry] = [
    _p(ElementKind.CLASS, r"^\s*(?:export\s+)?(?:default\s+)?(?:abstract\s+)?class\s+(?P<name>[A-Za-z_$][\w$]*)"),
    _p(ElementKind.INTERFACE, r"^\s*(?:export\s+)?(?:declare\s+)?interface\s+(?P<name>[A-Za-z_$][\w$]*)"),
    _p(ElementKind.FUNCTION, r"^\s*(?:export\s+)?(?:default\s+)?(?:async\s+)?function\s*\*?\s*(?P<name>[A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*" + _PARAMS),
    _p(ElementKind.ARROW_FUNCTION, r"^\s*(?:export\s+)?(?:const|let|var)\s+(?P<name>[A-Za-z_$][\w$]*)\s*(?::[^=]+)?=\s*(?:async\s+)?(?:function\b[^(]*)?" + _PARAMS + r"\s*(?::[^=]+)?(?:=>|\{)"),
    _p(ElementKind.ARROW_FUNCTION, r"^\s*(?:export\s+)?(?:const|let|var)\s+(?P<name>[A-Za-z_$][\w$]*)\s*=\s*(?:async\s+)?[A-Za-z_$][\w$]*\s*=>"),
    _p(ElementKind.METHOD, r"^\s*" + _MODIFIERS + r"(?:get\s+|set\s+)?(?P<name>#?[A-Za-z_$][\w$]*)\s*(?:<[^>]*>)?\s*" + _PARAMS + r"\s*(?::\s*[^{;=]+)?\s*\{\s*$"),
]

_PATTERNS: Dict[str, List[PatternEntry]] = {
    "typescript": _SCRIPT_PATTERNS,
    "typescriptreact": _SCRIPT_PATTERNS,
    "javascript": _SCRIPT_PATTERNS,
    "javascriptreact": _SCRIPT_PATTERNS,
    "python": [
        _p(ElementKind.CLASS, r"^\s*class\s+(?P<name>\w+)"),
        _p(ElementKind.FUNCTION, r"^\s*(?:async\s+)?def\s+(?P<name>\w+)\s*" + _PARAMS),
    ],
    "java": [
        _p(ElementKind.INTERFACE, r"^\s*" + _MODIFIERS + r"@?interface\s+(?P<name>\w+)"),
        _p(ElementKind.CLASS, r"^\s*" + _MODIFIERS + r"(?:class|enum|record)\s+(?P<name>\w+)"),
        _p(ElementKind.METHOD, r"^\s*" + _MODIFIERS + r"(?:<[^>]*>\s*)?(?P<ret>[\w.<>\[\],? ]+?)\s+(?P<name>\w+)\s*" + _PARAMS + r"\s*(?:throws\s+[\w.,\s]+)?\s*\{?\s*$"),
        _p(ElementKind.METHOD, r"^\s*(?:public|private|protected)\s+(?P<name>[A-Z]\w*)\s*" + _PARAMS + r"\s*\{?\s*$"),
    ],
    "go": [
        _p(ElementKind.CLASS, r"^\s*type\s+(?P<name>\w+)\s+struct\b"),
        _p(ElementKind.INTERFACE, r"^\s*type\s+(?P<name>\w+)\s+interface\b"),
        _p(ElementKind.METHOD, r"^\s*func\s+\((?P<receiver>[^)]*)\)\s*(?P<name>\w+)\s*(?:\[[^\]]*\])?\s*" + _PARAMS),
        _p(ElementKind.FUNCTION, r"^\s*func\s+(?P<name>\w+)\s*(?:\[[^\]]*\])?\s*" + _PARAMS),
    ],
    "rust": [
        _p(ElementKind.CLASS, r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:struct|enum|union)\s+(?P<name>\w+)"),
        _p(ElementKind.INTERFACE, r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:unsafe\s+)?trait\s+(?P<name>\w+)"),
        _p(ElementKind.FUNCTION, r"^\s*(?:pub(?:\([^)]*\))?\s+)?(?:const\s+)?(?:async\s+)?(?:unsafe\s+)?(?:extern\s+\"[^\"]*\"\s+)?fn\s+(?P<name>\w+)\s*(?:<[^>]*>)?\s*" + _PARAMS),
    ],
    "csharp": [
        _p(ElementKind.INTERFACE, r"^\s*" + _MODIFIERS + r"interface\s+(?P<name>\w+)"),
        _p(ElementKind.CLASS, r"^\s*" + _MODIFIERS + r"(?:class|struct|record|enum)\s+(?P<name>\w+)"),
        _p(ElementKind.METHOD, r"^\s*" + _MODIFIERS + r"(?P<ret>[\w.<>\[\],?]+(?:\s*<[^>]*>)?)\s+(?P<name>\w+)\s*(?:<[^>]*>)?\s*" + _PARAMS + r"\s*(?:where\s+.+)?\s*(?:\{|=>)?\s*$"),
        _p(ElementKind.METHOD, r"^\s*(?:public|private|protected|internal)\s+(?P<name>[A-Z]\w*)\s*" + _PARAMS + r"\s*(?::\s*(?:base|this)\s*\(.*\))?\s*\{?\s*$"),
    ],
    "php": [
        _p(ElementKind.INTERFACE, r"^\s*interface\s+(?P<name>\w+)"),
        _p(ElementKind.CLASS, r"^\s*(?:abstract\s+|final\s+)?(?:class|trait|enum)\s+(?P<name>\w+)"),
        _p(ElementKind.FUNCTION, r"^\s*" + _MODIFIERS + r"function\s+&?(?P<name>\w+)\s*" + _PARAMS),
    ],
    "ruby": [
        _p(ElementKind.CLASS, r"^\s*(?:class|module)\s+(?P<name>[A-Z][\w:]*)"),
        _p(ElementKind.FUNCTION, r"^\s*def\s+(?:self\.)?(?P<name>[\w?!=\[\]]+)\s*(?:\((?P<params>[^)]*)\))?"),
    ],
    "kotlin": [
        _p(ElementKind.INTERFACE, r"^\s*" + _MODIFIERS + r"(?:fun\s+)?interface\s+(?P<name>\w+)"),
        _p(ElementKind.CLASS, r"^\s*" + _MODIFIERS + r"(?:enum\s+|sealed\s+|annotation\s+)?(?:class|object)\s+(?P<name>\w+)"),
        _p(ElementKind.FUNCTION, r"^\s*" + _MODIFIERS + r"fun\s+(?:<[^>]*>\s*)?(?:[\w.<>]+\.)?(?P<name>\w+)\s*" + _PARAMS),
    ],
    "swift": [
        _p(ElementKind.INTERFACE, r"^\s*" + _MODIFIERS + r"protocol\s+(?P<name>\w+)"),
        _p(ElementKind.CLASS, r"^\s*" + _MODIFIERS + r"(?:final\s+)?(?:class|struct|enum|actor|extension)\s+(?P<name>\w+)"),
        _p(ElementKind.FUNCTION, r"^\s*" + _MODIFIERS + r"(?:@\w+\s+)*func\s+(?P<name>\w+)\s*(?:<[^>]*>)?\s*" + _PARAMS),
        _p(ElementKind.METHOD, r"^\s*" + _MODIFIERS + r"(?P<name>init|deinit)\??\s*" + _PARAMS),
    ],
    "c": [
        _p(ElementKind.CLASS, r"^\s*(?:typedef\s+)?(?:struct|union|enum)\s+(?P<name>\w+)\s*\{?\s*$"),
        _p(ElementKind.FUNCTION, r"^\s*(?:(?:static|inline|extern|const|unsigned|signed|volatile|struct)\s+)*(?P<ret>[A-Za-z_][\w]*[\s*]+)(?P<name>[A-Za-z_]\w*)\s*" + _PARAMS + r"\s*\{?\s*$"),
    ],
    "cpp": [
        _p(ElementKind.CLASS, r"^\s*(?:template\s*<[^>]*>\s*)?(?:class|struct|union)\s+(?:\w+\s+)?(?P<name>\w+)\s*(?:final\s*)?(?::[^;{]*)?\{?\s*$"),
        _p(ElementKind.FUNCTION, r"^\s*(?:template\s*<[^>]*>\s*)?(?:(?:static|inline|virtual|explicit|constexpr|extern|const|unsigned|signed|friend)\s+)*(?:(?P<ret>[A-Za-z_][\w:<>,]*[\s*&]+))?(?P<name>~?[A-Za-z_][\w:~]*)\s*" + _PARAMS + r"\s*(?:const\s*)?(?:noexcept\s*)?(?:override\s*)?(?::[^{;]*)?\{?\s*$"),
    ],
    "default": [
        _p(ElementKind.CLASS, r"^\s*(?:export\s+)?(?:public\s+)?(?:class|struct)\s+(?P<name>\w+)"),
        _p(ElementKind.INTERFACE, r"^\s*(?:export\s+)?(?:public\s+)?(?:interface|trait|protocol)\s+(?P<name>\w+)"),
        _p(ElementKind.FUNCTION, r"^\s*(?:export\s+)?(?:pub\s+)?(?:async\s+)?(?:function|func|fn|def|fun|sub|proc)\s+(?P<name>[\w.]+)\s*" + _PARAMS),
    ],
}

_BRANCH_KEYWORDS = re.compile(
    r"\b(?:if|elif|elsif|for|foreach|while|until|unless|case|when|catch|except|rescue)\b|\?\s*[^:?.\s][^:]*:"
)
ATTRIBUTE_LINE = re.compile(r"^\s*(?:@[\w.]+(?:\(.*\))?|#\[.*\]|\[[A-Z][\w.]*(?:\(.*\))?\])\s*$")
_RETURN_ARROW = re.compile(r"\s*(?:->|:)\s*(?P<ret>[^{=;]+?)\s*(?:\{|=|where\b|;|$)")
_GO_RETURN = re.compile(r"\s*(?P<ret>[^{]+?)\s*\{\s*$")
_INDENT_LANGUAGES = frozenset({"python"})
_END_KEYWORD_LANGUAGES = frozenset({"ruby"})


def patterns_for(language: str) -> List[PatternEntry]:
    return _PATTERNS.get(language, _PATTERNS["default"])


def _is_callback_call(line: str, match: "re.Match[str]") -> bool:
    """``useEffect(() => {`` / ``it("x", function () {``: a call left open by its callback."""
    params = match.groupdict().get("params") or ""
    if not _CALLBACK_ARGUMENT.search(params):
        return False
    return line.count("(") > line.count(")")


def match_declaration(line: str, language: str) -> Optional[Tuple[ElementKind, "re.Match[str]"]]:
    """First pattern (in order) that matches ``line`` with a non-keyword name."""
    for kind, pattern in patterns_for(language):
        match = pattern.match(line)
        if match is None:
            continue
        name = match.group("name")
        if name.lstrip("#~") in CONTROL_KEYWORDS:
            continue
        ret = match.groupdict().get("ret")
        if ret and ret.split() and ret.split()[0] in CONTROL_KEYWORDS:
            continue
        if kind == ElementKind.METHOD and _is_callback_call(line, match):
            continue
        return kind, match
    return None


class FallbackParser:
    """Pattern-based analyzer producing heuristic-tier elements.

    Used for every language without a tree-sitter grammar, and as the backup
    when the exact tier fails on a supported language.
    """

    def __init__(self, language: str):
        self._language = language

    def parse_source(self, source_text: str) -> AnalysisResult:
        lines = source_text.split("\n")
        try:
            elements = self.extract_elements(lines)
            errors: List[ParseError] = []
        except Exception as e:
            logger.warning(f"Heuristic analysis failed for {self._language}: {e}")
            elements = []
            errors = [ParseError(line=0, message=f"Heuristic analysis failed: {e}", severity="error")]
        return AnalysisResult(
            language=self._language,
            tier=AnalysisTier.HEURISTIC,
            elements=elements,
            line_count=len(lines),
            errors=errors,
        )

    def extract_elements(self, lines: List[str]) -> List[StructuralElement]:
        code_lines = strip_lines(lines, self._language)
        elements: List[StructuralElement] = []
        open_classes: List[StructuralElement] = []

        for index, code in enumerate(code_lines):
            if not code.strip():
                continue
            # Declarations never start inside a multi-line literal: the
            # stripped text must agree with the raw line's leading token.
            if code.strip().split()[0:1] != lines[index].strip().split()[0:1]:
                continue
            found = match_declaration(code, self._language)
            if found is None:
                continue
            kind, match = found

            open_classes = [c for c in open_classes if c.end_line >= index]
            parent = open_classes[-1] if open_classes else None
            if kind == ElementKind.FUNCTION and parent is not None and parent.kind != ElementKind.INTERFACE:
                kind = ElementKind.METHOD

            element = self._build(kind, match, index, lines, code_lines, parent)
            elements.append(element)
            if kind in (ElementKind.CLASS, ElementKind.INTERFACE):
                open_classes.append(element)

        return elements

    # =========================================================================
    # Element construction
    # =========================================================================

    def _build(
        self,
        kind: ElementKind,
        match: "re.Match[str]",
        index: int,
        lines: List[str],
        code_lines: List[str],
        parent: Optional[StructuralElement],
    ) -> StructuralElement:
        name = match.group("name")
        start = self._attribute_start(lines, index)
        end = self._end_line(index, lines, code_lines)
        params_text = match.groupdict().get("params") or ""

        return StructuralElement(
            kind=kind,
            name=name,
            start_line=start,
            end_line=end,
            indentation=indentation_of(lines[start]),
            parameters=tuple(self._parameters(params_text)),
            return_type=self._return_type(match, code_lines[index]) if kind not in (ElementKind.CLASS, ElementKind.INTERFACE) else None,
            complexity=self._complexity(code_lines[index + 1:end + 1]),
            is_async=bool(re.search(r"\basync\b|\bsuspend\b", code_lines[index])),
            scope=self._scope(name, code_lines[index], parent is not None),
            has_leading_comment=self._has_leading_comment(lines, start, index),
            parent_name=parent.name if parent is not None and kind == ElementKind.METHOD else None,
        )

    @staticmethod
    def _attribute_start(lines: List[str], index: int) -> int:
        """Extend upward over decorator/annotation/attribute lines."""
        start = index
        while start > 0 and ATTRIBUTE_LINE.match(lines[start - 1]):
            start -= 1
        return start

    def _end_line(self, index: int, lines: List[str], code_lines: List[str]) -> int:
        if self._language in _INDENT_LANGUAGES or self._language in _END_KEYWORD_LANGUAGES:
            return self._dedent_end(index, lines, include_closer=self._language in _END_KEYWORD_LANGUAGES)
        end = find_block_end(code_lines, index)
        return end if end is not None else index

    @staticmethod
    def _dedent_end(index: int, lines: List[str], include_closer: bool) -> int:
        base = indentation_of(lines[index])
        last = index
        for j in range(index + 1, len(lines)):
            if not lines[j].strip():
                continue
            if indentation_of(lines[j]) <= base:
                return j if include_closer and lines[j].strip().startswith("end") else last
            last = j
        return last

    def _parameters(self, params_text: str) -> List[Parameter]:
        parameters: List[Parameter] = []
        for raw in _split_top_level(params_text):
            param = self._parameter(raw.strip())
            if param is not None:
                parameters.append(param)
        return parameters

    def _parameter(self, raw: str) -> Optional[Parameter]:
        if not raw or raw in ("void", "self", "&self", "&mut self", "mut self", "cls", "this"):
            return None
        default = None
        if "=" in raw and "=>" not in raw:
            raw, default = (part.strip() for part in raw.split("=", 1))
        variadic = raw.startswith(("...", "*")) or raw.endswith("...") or "..." in raw
        raw = raw.replace("...", "").strip()

        name: str
        type_text: Optional[str] = None
        if ":" in raw and self._language not in ("c", "cpp", "csharp", "java", "go"):
            name, type_text = (part.strip() for part in raw.split(":", 1))
            name = name.split()[-1] if name.split() else name
        elif self._language == "go":
            parts = raw.split(None, 1)
            name = parts[0]
            type_text = parts[1] if len(parts) > 1 else None
        elif self._language == "php":
            parts = raw.split()
            name = parts[-1].lstrip("&")
            type_text = " ".join(parts[:-1]) or None
        elif self._language in ("python", "ruby") or " " not in raw:
            name = raw
        else:
            parts = raw.replace("*", "* ").replace("&", "& ").split()
            name = parts[-1]
            type_text = " ".join(parts[:-1]).replace("* ", "*").replace("& ", "&") or None

        name = name.lstrip("*&").rstrip("?")
        if not name:
            return None
        return Parameter(
            name=name.lstrip("$") if self._language == "php" else name,
            type=type_text.strip() if type_text else None,
            optional=default is not None or variadic or raw.rstrip().endswith("?") or "?:" in raw,
            default=default,
        )

    def _return_type(self, match: "re.Match[str]", code: str) -> Optional[str]:
        ret = match.groupdict().get("ret")
        if ret:
            ret = ret.strip()
            return ret or None
        if match.groupdict().get("params") is None:
            return None
        rest = code[match.end():]
        if self._language == "go":
            found = _GO_RETURN.match(rest)
            if found:
                return found.group("ret").strip("() ") or None
            return None
        found = _RETURN_ARROW.match(rest)
        if found:
            return found.group("ret").strip().rstrip(":").strip() or None
        return None

    @staticmethod
    def _complexity(body: List[str]) -> int:
        return 1 + sum(len(_BRANCH_KEYWORDS.findall(code)) for code in body)

    def _scope(self, name: str, code: str, member: bool) -> Scope:
        if self._language == "go":
            return Scope.EXPORTED if name[:1].isupper() else Scope.LOCAL
        if re.search(r"\bprivate\b", code) or name.startswith("#"):
            return Scope.PRIVATE
        if re.search(r"\bprotected\b", code):
            return Scope.PROTECTED
        if re.search(r"\b(?:pub|export)\b", code):
            return Scope.EXPORTED
        if re.search(r"\bpublic\b", code):
            return Scope.PUBLIC if member else Scope.EXPORTED
        if self._language in ("python", "ruby") and name.startswith("_"):
            return Scope.PRIVATE if member else Scope.LOCAL
        return Scope.PUBLIC if member else Scope.LOCAL

    def _has_leading_comment(self, lines: List[str], start: int, index: int) -> bool:
        if self._language in _INDENT_LANGUAGES:
            # Docstring on the first body line counts as documentation
            for j in range(index + 1, min(index + 3, len(lines))):
                stripped = lines[j].strip()
                if stripped:
                    if stripped.startswith(('"""', "'''", 'r"""')):
                        return True
                    break
        if start == 0:
            return False
        previous = lines[start - 1].strip()
        if not previous:
            return False
        token = LINE_COMMENT_TOKENS.get(self._language, "//")
        return previous.startswith((token, "/*", "*", "///")) or previous.endswith("*/")


def _split_top_level(text: str) -> List[str]:
    """Split on commas that are not nested inside brackets."""
    parts: List[str] = []
    depth = 0
    current: List[str] = []
    for ch in text:
        if ch in "([{<":
            depth += 1
        elif ch in ")]}>" and depth > 0:
            depth -= 1
        if ch == "," and depth == 0:
            parts.append("".join(current))
            current = []
        else:
            current.append(ch)
    if "".join(current).strip():
        parts.append("".join(current))
    return parts
