"""Candidate scoring: rank undocumented elements near the cursor.

Confidence is additive from a base over five independent criteria
(proximity, name mention, complexity, parameter count, kind vocabulary),
capped at 1.0. Heuristic-tier elements are additionally capped lower.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Sequence, Tuple

from docloom.core.ast_parser import AnalysisTier, ElementKind, StructuralElement

from .models import InsertPosition, PlacementCandidate

logger = logging.getLogger(__name__)

BASE_SCORE = 0.3
PROXIMITY_WINDOW = 10  # elements farther than this are never candidates
ALWAYS_KEEP_DISTANCE = 2  # elements this close are kept without text relevance
HEURISTIC_CONFIDENCE_CAP = 0.8
MIN_SUBSTRING_NAME_LENGTH = 3

# (max distance, weight), checked in order
PROXIMITY_WEIGHTS: Tuple[Tuple[int, float], ...] = (
    (0, 0.3),
    (1, 0.25),
    (2, 0.2),
    (5, 0.1),
)
NAME_WHOLE_WORD_WEIGHT = 0.25
NAME_SUBSTRING_WEIGHT = 0.15
# (complexity strictly greater than, weight), checked in order
COMPLEXITY_WEIGHTS: Tuple[Tuple[int, float], ...] = (
    (10, 0.2),
    (5, 0.15),
    (3, 0.1),
)
MANY_PARAMETERS = 3
MANY_PARAMETERS_WEIGHT = 0.15
SOME_PARAMETERS_WEIGHT = 0.1
KIND_KEYWORD_WEIGHT = 0.1

_FUNCTION_WORDS = frozenset({
    "function", "method", "calculates", "calculate", "computes", "compute",
    "returns", "return", "gets", "get", "sets", "set", "handles", "handle",
    "processes", "process", "creates", "create", "builds", "build", "checks",
    "check", "validates", "validate", "parses", "parse", "converts", "convert",
    "adds", "add", "removes", "remove", "updates", "update", "fetches", "fetch",
    "loads", "load", "saves", "save", "sends", "send", "renders", "render",
})
KIND_KEYWORDS: Dict[ElementKind, FrozenSet[str]] = {
    ElementKind.FUNCTION: _FUNCTION_WORDS,
    ElementKind.METHOD: _FUNCTION_WORDS,
    ElementKind.ARROW_FUNCTION: _FUNCTION_WORDS | {"callback", "handler", "arrow"},
    ElementKind.CLASS: frozenset({
        "class", "contains", "represents", "manages", "stores", "holds",
        "model", "service", "component", "wraps", "encapsulates", "object",
    }),
    ElementKind.INTERFACE: frozenset({
        "interface", "contract", "defines", "describes", "shape", "type",
        "protocol", "structure", "represents",
    }),
    ElementKind.VARIABLE: frozenset({
        "variable", "constant", "value", "holds", "stores", "config",
        "configuration", "setting", "flag", "default",
    }),
}

_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


@dataclass
class CandidateScorer:
    """Scores elements against a cursor line and a free-text description."""

    proximity_window: int = PROXIMITY_WINDOW
    always_keep_distance: int = ALWAYS_KEEP_DISTANCE
    heuristic_cap: float = HEURISTIC_CONFIDENCE_CAP
    kind_keywords: Dict[ElementKind, FrozenSet[str]] = field(default_factory=lambda: dict(KIND_KEYWORDS))

    def score(
        self,
        elements: Sequence[StructuralElement],
        cursor_line: int,
        description: str,
        tier: AnalysisTier = AnalysisTier.EXACT,
    ) -> List[PlacementCandidate]:
        """Return eligible candidates, highest confidence first.

        Ties go to the closer element, then to the earlier line.
        """
        words = {w.lower() for w in _WORD.findall(description)}
        lowered = description.lower()
        scored: List[Tuple[float, int, int, PlacementCandidate]] = []

        for element in elements:
            if element.has_leading_comment:
                continue
            distance = abs(element.start_line - cursor_line)
            if distance > self.proximity_window:
                continue

            name_weight = self._name_weight(element.name, words, lowered)
            kind_hit = self._kind_hit(element.kind, words)
            if distance > self.always_keep_distance and not (name_weight or kind_hit):
                continue

            confidence, reasons = self._confidence(element, distance, name_weight, kind_hit)
            if tier == AnalysisTier.HEURISTIC and confidence > self.heuristic_cap:
                confidence = self.heuristic_cap
                reasons.append("heuristic analysis")

            candidate = PlacementCandidate(
                target_line=element.start_line,
                insert_position=InsertPosition.BEFORE,
                confidence=confidence,
                reasoning=", ".join(reasons),
                element=element,
            )
            scored.append((-confidence, distance, element.start_line, candidate))

        scored.sort(key=lambda item: item[:3])
        candidates = [item[3] for item in scored]
        if candidates:
            best = candidates[0]
            logger.debug(
                f"{len(candidates)} candidate(s) near line {cursor_line}; best "
                f"'{best.element.name}' at {best.target_line} ({best.confidence:.2f})"
            )
        return candidates

    # =========================================================================
    # Criteria
    # =========================================================================

    def _confidence(
        self,
        element: StructuralElement,
        distance: int,
        name_weight: float,
        kind_hit: bool,
    ) -> Tuple[float, List[str]]:
        score = BASE_SCORE
        reasons: List[str] = []

        for max_distance, weight in PROXIMITY_WEIGHTS:
            if distance <= max_distance:
                score += weight
                reasons.append("at cursor" if distance == 0 else f"{distance} line(s) from cursor")
                break

        if name_weight:
            score += name_weight
            if name_weight == NAME_WHOLE_WORD_WEIGHT:
                reasons.append(f"name '{element.name}' mentioned")
            else:
                reasons.append(f"name '{element.name}' partially mentioned")

        for threshold, weight in COMPLEXITY_WEIGHTS:
            if element.complexity > threshold:
                score += weight
                reasons.append(f"complexity {element.complexity}")
                break

        param_count = len(element.parameters)
        if param_count > MANY_PARAMETERS:
            score += MANY_PARAMETERS_WEIGHT
            reasons.append(f"{param_count} parameters")
        elif param_count >= 1:
            score += SOME_PARAMETERS_WEIGHT
            reasons.append(f"{param_count} parameter(s)")

        if kind_hit:
            score += KIND_KEYWORD_WEIGHT
            reasons.append(f"describes a {element.kind.value}")

        return min(score, 1.0), reasons

    @staticmethod
    def _name_weight(name: str, words: set, lowered: str) -> float:
        lowered_name = name.lower().lstrip("#$")
        if not lowered_name or lowered_name == "anonymous":
            return 0.0
        if lowered_name in words:
            return NAME_WHOLE_WORD_WEIGHT
        if len(lowered_name) >= MIN_SUBSTRING_NAME_LENGTH and lowered_name in lowered:
            return NAME_SUBSTRING_WEIGHT
        return 0.0

    def _kind_hit(self, kind: ElementKind, words: set) -> bool:
        return bool(self.kind_keywords.get(kind, frozenset()) & words)
