"""docloom structural analyzer: tree-sitter exact tier, regex heuristic tier.

Public API:
    analyze_source(source_text, language) → AnalysisResult
    analyze(source_text, language) → List[StructuralElement]
    detect_language(file_path) → str | None
    get_support_level(language) → AnalysisTier
"""

import logging
from typing import List

from .fallback_parser import FallbackParser
from .models import (
    AnalysisResult,
    AnalysisTier,
    ElementKind,
    Parameter,
    ParseError,
    Scope,
    StructuralElement,
)
from .utils import detect_language, get_parser, get_support_level, language_family, normalize_language

logger = logging.getLogger(__name__)

__all__ = [
    "analyze_source",
    "analyze",
    "detect_language",
    "get_support_level",
    "language_family",
    "normalize_language",
    "AnalysisResult",
    "AnalysisTier",
    "ElementKind",
    "Parameter",
    "ParseError",
    "Scope",
    "StructuralElement",
]


def analyze_source(source_text: str, language: str) -> AnalysisResult:
    """Analyze source text into structural elements.

    Uses the tree-sitter parser when the language has one and falls back to
    the heuristic tier when it does not, when the exact tier raises, or when
    the exact tier reports syntax errors and finds nothing. Never raises.

    Args:
        source_text: Full document text
        language: Language identifier (editor ids and aliases accepted)

    Returns:
        AnalysisResult whose ``tier`` records which analyzer ran
    """
    language = normalize_language(language)
    if get_support_level(language) == AnalysisTier.HEURISTIC:
        return FallbackParser(language).parse_source(source_text)

    try:
        result = get_parser(language).parse_source(source_text)
    except Exception as e:
        logger.warning(f"Exact analysis unavailable for {language}, using heuristic tier: {e}")
        result = FallbackParser(language).parse_source(source_text)
        result.errors.insert(0, ParseError(line=0, message=f"Exact analysis failed: {e}"))
        return result

    if result.errors and not result.elements:
        logger.warning(
            f"Exact analysis of {language} found no elements "
            f"({len(result.errors)} errors), using heuristic tier"
        )
        fallback = FallbackParser(language).parse_source(source_text)
        fallback.errors = result.errors + fallback.errors
        return fallback

    return result


def analyze(source_text: str, language: str) -> List[StructuralElement]:
    """Element list only; see analyze_source."""
    return analyze_source(source_text, language).elements
