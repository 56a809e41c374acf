"""Structural analyzer utilities.

Language detection and normalization, support levels, and the lazily
populated exact-tier parser registry.
"""

import os
from typing import Dict, Optional, TYPE_CHECKING

from .models import AnalysisTier

if TYPE_CHECKING:
    from .base import BaseLanguageParser

# Extension → language mapping
SUPPORTED_EXTENSIONS: Dict[str, str] = {
    ".py": "python",
    ".pyi": "python",
    ".js": "javascript",
    ".mjs": "javascript",
    ".cjs": "javascript",
    ".jsx": "javascriptreact",
    ".ts": "typescript",
    ".mts": "typescript",
    ".cts": "typescript",
    ".tsx": "typescriptreact",
    ".java": "java",
    ".go": "go",
    ".rs": "rust",
    ".cs": "csharp",
    ".php": "php",
    ".rb": "ruby",
    ".kt": "kotlin",
    ".kts": "kotlin",
    ".swift": "swift",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".hpp": "cpp",
    ".hh": "cpp",
    ".sql": "sql",
    ".lua": "lua",
    ".sh": "shellscript",
    ".css": "css",
    ".html": "html",
    ".xml": "xml",
}

# Aliases editors and users commonly pass for the same language
LANGUAGE_ALIASES: Dict[str, str] = {
    "py": "python",
    "python3": "python",
    "js": "javascript",
    "node": "javascript",
    "jsx": "javascriptreact",
    "react": "javascriptreact",
    "ts": "typescript",
    "tsx": "typescriptreact",
    "cs": "csharp",
    "c#": "csharp",
    "c++": "cpp",
    "cxx": "cpp",
    "golang": "go",
    "rs": "rust",
    "rb": "ruby",
    "kt": "kotlin",
    "bash": "shellscript",
    "sh": "shellscript",
    "zsh": "shellscript",
}

# Languages analyzed by a tree-sitter grammar
EXACT_TIER_LANGUAGES = frozenset({
    "python",
    "javascript",
    "javascriptreact",
    "typescript",
    "typescriptreact",
    "java",
})

# Parser registry, lazy-loaded
_parser_registry: Dict[str, "BaseLanguageParser"] = {}


def detect_language(file_path: str) -> Optional[str]:
    """Detect language from file extension.

    Args:
        file_path: Path to the source file

    Returns:
        Language identifier string or None if unknown
    """
    _, ext = os.path.splitext(file_path)
    return SUPPORTED_EXTENSIONS.get(ext.lower())


def normalize_language(language_id: Optional[str]) -> str:
    """Map an editor/user language id onto the canonical identifier."""
    if not language_id:
        return "plaintext"
    lowered = language_id.strip().lower()
    return LANGUAGE_ALIASES.get(lowered, lowered)


def language_family(language: str) -> str:
    """Collapse React variants onto their base language."""
    language = normalize_language(language)
    if language == "typescriptreact":
        return "typescript"
    if language == "javascriptreact":
        return "javascript"
    return language


def get_support_level(language: str) -> AnalysisTier:
    """Which analysis tier handles ``language``."""
    if normalize_language(language) in EXACT_TIER_LANGUAGES:
        return AnalysisTier.EXACT
    return AnalysisTier.HEURISTIC


def get_parser(language: str) -> "BaseLanguageParser":
    """Get an exact-tier parser instance for the given language.

    Uses a lazy-initialized registry to avoid loading every grammar
    at startup.

    Args:
        language: Language identifier (e.g., "python")

    Returns:
        Parser instance

    Raises:
        ValueError: If the language has no tree-sitter grammar
    """
    language = normalize_language(language)
    if language not in _parser_registry:
        if language == "python":
            from .python_parser import PythonParser
            _parser_registry["python"] = PythonParser()
        elif language in ("javascript", "javascriptreact"):
            # The JavaScript grammar covers JSX
            from .javascript_parser import JavaScriptParser
            _parser_registry[language] = JavaScriptParser()
        elif language == "typescript":
            from .typescript_parser import TypeScriptParser
            _parser_registry["typescript"] = TypeScriptParser()
        elif language == "typescriptreact":
            from .typescript_parser import TypeScriptParser
            _parser_registry["typescriptreact"] = TypeScriptParser(tsx=True)
        elif language == "java":
            from .java_parser import JavaParser
            _parser_registry["java"] = JavaParser()
        else:
            raise ValueError(
                f"Unsupported language: {language}. "
                f"Supported: {sorted(EXACT_TIER_LANGUAGES)}"
            )

    return _parser_registry[language]
