"""Tests for candidate scoring."""

import pytest
from docloom.core.ast_parser import AnalysisTier, ElementKind, Parameter, StructuralElement
from docloom.core.placement import CandidateScorer, InsertPosition


def _element(name="add", line=10, kind=ElementKind.FUNCTION, params=0, complexity=1, documented=False):
    return StructuralElement(
        kind=kind,
        name=name,
        start_line=line,
        end_line=line + 3,
        parameters=tuple(Parameter(name=f"p{i}") for i in range(params)),
        complexity=complexity,
        has_leading_comment=documented,
    )


# =========================================================================
# Tests: Eligibility
# =========================================================================

class TestEligibility:
    def test_documented_elements_excluded(self):
        scorer = CandidateScorer()
        assert scorer.score([_element(documented=True)], 10, "adds numbers") == []

    def test_outside_window_excluded(self):
        scorer = CandidateScorer()
        # Fifteen lines away, even with the name mentioned
        assert scorer.score([_element(line=25)], 10, "add two numbers") == []

    def test_close_elements_kept_without_relevance(self):
        scorer = CandidateScorer()
        candidates = scorer.score([_element(name="zeta", line=12)], 10, "something unrelated")
        assert len(candidates) == 1

    def test_distant_irrelevant_elements_dropped(self):
        scorer = CandidateScorer()
        assert scorer.score([_element(name="zeta", line=14)], 10, "something unrelated") == []

    def test_distant_relevant_elements_kept(self):
        scorer = CandidateScorer()
        by_name = scorer.score([_element(name="zeta", line=18)], 10, "zeta helper")
        by_kind = scorer.score([_element(name="zeta", line=18)], 10, "computes things")
        assert len(by_name) == 1
        assert len(by_kind) == 1


# =========================================================================
# Tests: Confidence
# =========================================================================

class TestConfidence:
    def test_single_line_add_scores_high(self):
        scorer = CandidateScorer()
        element = _element(name="add", line=0, params=2)
        candidate = scorer.score([element], 0, "adds two numbers")[0]

        # base + at cursor + partial name + params + kind keyword
        assert candidate.confidence == pytest.approx(0.95)
        assert candidate.target_line == 0
        assert candidate.insert_position == InsertPosition.BEFORE
        assert "at cursor" in candidate.reasoning

    def test_whole_word_beats_substring(self):
        scorer = CandidateScorer()
        whole = scorer.score([_element(name="render", line=10)], 10, "render the view")[0]
        partial = scorer.score([_element(name="render", line=10)], 10, "rerendering view")[0]
        assert whole.confidence > partial.confidence

    def test_short_names_need_whole_word(self):
        scorer = CandidateScorer()
        candidate = scorer.score([_element(name="id", line=10)], 10, "identify the row")[0]
        assert "mentioned" not in candidate.reasoning

    def test_confidence_capped_at_one(self):
        scorer = CandidateScorer()
        element = _element(name="add", line=10, params=5, complexity=20)
        candidate = scorer.score([element], 10, "add values")[0]
        assert candidate.confidence == 1.0

    def test_heuristic_tier_cap(self):
        scorer = CandidateScorer()
        element = _element(name="add", line=10, params=5, complexity=20)
        candidate = scorer.score([element], 10, "add values", tier=AnalysisTier.HEURISTIC)[0]
        assert candidate.confidence == pytest.approx(0.8)
        assert "heuristic analysis" in candidate.reasoning

    def test_proximity_is_monotonic(self):
        scorer = CandidateScorer()
        element = _element(name="render", line=10)
        scores = [
            scorer.score([element], cursor, "render the page")[0].confidence
            for cursor in range(0, 11)
        ]
        assert scores == sorted(scores)
        assert scores[-1] > scores[0]


# =========================================================================
# Tests: Ordering
# =========================================================================

class TestOrdering:
    def test_sorted_by_confidence(self):
        scorer = CandidateScorer()
        near = _element(name="alpha", line=10)
        named = _element(name="render", line=13, params=2)
        candidates = scorer.score([near, named], 10, "render the page")
        assert [c.element.name for c in candidates] == ["render", "alpha"]

    def test_ties_go_to_closer_element(self):
        scorer = CandidateScorer()
        farther = _element(name="beta", line=14)
        closer = _element(name="alpha", line=13)
        candidates = scorer.score([farther, closer], 10, "computes totals")
        assert candidates[0].confidence == candidates[1].confidence
        assert [c.element.name for c in candidates] == ["alpha", "beta"]

    def test_ties_at_same_distance_go_to_earlier_line(self):
        scorer = CandidateScorer()
        below = _element(name="beta", line=11)
        above = _element(name="alpha", line=9)
        candidates = scorer.score([below, above], 10, "unrelated words")
        assert [c.element.name for c in candidates] == ["alpha", "beta"]
