"""Position validation and correction.

Every placement, whatever produced it, passes through PositionValidator
before anything is written. Corrections run in a fixed order:

1. clamp the line into the document
2. normalize the position (``after`` a declaration becomes ``before``,
   except for after-signature languages such as Python)
3. move lines inside a body to the enclosing declaration
4. move non-declarations and batch-claimed lines to the next free declaration
5. step around existing documentation
6. recompute indentation

When no declaration can be found the clamped line is returned with
``is_confident=False`` and the caller decides whether to proceed.
The validator only reads the document.
"""

import logging
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from docloom.core.ast_parser import AnalysisResult, StructuralElement

from .batch import BatchRegistry
from .document import Document
from .formatter import CommentFormatter, strip_comment_markup
from .models import ExistingCommentPolicy, InsertPosition, PlacementProposal, ValidatedPlacement
from .scope import ENCLOSING_SEARCH_WINDOW, ScopeView, looks_like_comment

logger = logging.getLogger(__name__)

CLAIM_SEARCH_WINDOW = 10
REDOCUMENT_SEARCH_WINDOW = 10
LOW_CONFIDENCE_PREFIX = "low confidence: "


@dataclass
class _Trace:
    """Corrections applied while validating one proposal."""

    notes: List[str] = field(default_factory=list)

    def add(self, note: str) -> None:
        self.notes.append(note)
        logger.debug(note)


class PositionValidator:
    """Turns any PlacementProposal into a ValidatedPlacement.

    Public API:
        validate(proposal, document, batch=None, analysis=None) → ValidatedPlacement
    """

    def __init__(
        self,
        formatter: Optional[CommentFormatter] = None,
        after_signature_languages: FrozenSet[str] = frozenset({"python"}),
        existing_comment_policy: ExistingCommentPolicy = ExistingCommentPolicy.NEXT_DECLARATION,
        enclosing_window: int = ENCLOSING_SEARCH_WINDOW,
        claim_window: int = CLAIM_SEARCH_WINDOW,
        redocument_window: int = REDOCUMENT_SEARCH_WINDOW,
    ):
        self._formatter = formatter or CommentFormatter()
        self._after_signature_languages = frozenset(after_signature_languages)
        self._policy = existing_comment_policy
        self._enclosing_window = enclosing_window
        self._claim_window = claim_window
        self._redocument_window = redocument_window

    def validate(
        self,
        proposal: PlacementProposal,
        document: Document,
        batch: Optional[BatchRegistry] = None,
        analysis: Optional[AnalysisResult] = None,
    ) -> ValidatedPlacement:
        view = ScopeView.from_document(document, analysis)
        after_signature = view.family in self._after_signature_languages
        trace = _Trace()

        def claimed(line: int) -> bool:
            return batch is not None and batch.is_used(document.document_id, line)

        def takes_docstring(line: int) -> bool:
            # One-line bodies (``def f(): return 1``) get comments above instead
            return after_signature and view.signature_end(line) is not None

        def documented(line: int) -> bool:
            if takes_docstring(line):
                return view.has_docstring(line)
            return view.has_comment_above(line)

        # 1. Clamp
        line = min(max(proposal.target_line, 0), view.line_count - 1)
        if line != proposal.target_line:
            trace.add(f"clamped line {proposal.target_line} to {line}")
        clamped = line

        # 2. Position: "after L" on a non-declaration means "before L + 1"
        if proposal.insert_position == InsertPosition.AFTER and not view.is_declaration(line):
            if line + 1 < view.line_count:
                line += 1
                trace.add(f"after line {line - 1} read as before line {line}")
        elif proposal.insert_position == InsertPosition.AFTER and not after_signature:
            trace.add("documentation goes before the declaration, not after it")

        # 3. Inside a body
        if view.is_block_interior(line):
            attached = view.attached_declaration(line) if view.is_comment(line) else None
            if attached is not None:
                trace.add(f"line {line} belongs to the comment above the declaration at {attached}")
                line = attached
            else:
                enclosing = view.enclosing_declaration(line, self._enclosing_window)
                if enclosing is None:
                    return self._unresolved(
                        proposal, view, clamped, trace,
                        f"line {line} is inside a body with no declaration within {self._enclosing_window} lines above",
                    )
                trace.add(f"line {line} is inside a body; moved to its declaration at {enclosing}")
                line = enclosing
        line = view.canonical(line)

        # 4. Not a declaration, or already claimed in this batch
        if not view.is_declaration(line):
            following = view.next_declaration(line, self._claim_window, accept=lambda c: not claimed(c))
            if following is None:
                return self._unresolved(
                    proposal, view, clamped, trace,
                    f"no unclaimed declaration within {self._claim_window} lines of line {line}",
                )
            trace.add(f"line {line} is not a declaration; moved to {following}")
            line = following
        elif claimed(line):
            trace.add(f"line {line} already documented in this batch; kept as a real declaration")

        # 5. Existing documentation
        insert_line = line
        if documented(line):
            following = None
            if self._policy == ExistingCommentPolicy.NEXT_DECLARATION:
                following = view.next_declaration(
                    line,
                    self._redocument_window,
                    accept=lambda c: not claimed(c) and not documented(c),
                    include_start=False,
                )
            if following is not None:
                trace.add(f"declaration at {line} is already documented; moved to {following}")
                line = following
                insert_line = line
            elif takes_docstring(line):
                return self._unresolved(
                    proposal, view, clamped, trace,
                    f"declaration at {line} already has a docstring",
                )
            else:
                insert_line = view.comment_block_top(line)
                trace.add(f"existing comment above {line}; inserting above it at {insert_line}")

        # 6. Position and indentation
        docstring = takes_docstring(line)
        if docstring:
            position = InsertPosition.AFTER
            insert_line = view.signature_end(line) + 1
            indentation = view.body_indentation(line)
        else:
            if after_signature:
                trace.add(f"body of the declaration at {line} shares its line; commenting above it")
            position = InsertPosition.BEFORE
            indentation = view.indentation_for(line)

        element = view.element_for(line)
        if element is None and proposal.element is not None and proposal.element.start_line == line:
            element = proposal.element

        reasoning = "; ".join(part for part in [proposal.reasoning] + trace.notes if part)
        return ValidatedPlacement(
            target_line=line,
            insert_position=position,
            indentation=indentation,
            comment_text=self._comment_text(proposal, element, view, docstring),
            reasoning=reasoning,
            insert_line=insert_line,
            confidence=proposal.confidence,
            is_confident=True,
            element=element,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _comment_text(
        self,
        proposal: PlacementProposal,
        element: Optional[StructuralElement],
        view: ScopeView,
        docstring: bool,
    ) -> str:
        supplied = (proposal.comment_text or "").strip("\n")
        if supplied.strip() and looks_like_comment(supplied, view.language, docstring=docstring):
            return supplied
        # Prose from a remote assistant is a better description than the raw one,
        # once any comment markup of the wrong shape is taken off
        description = strip_comment_markup(supplied) or proposal.description
        return self._formatter.format(
            description,
            element,
            view.language,
            line_comments=view.uses_indentation and not docstring,
        )

    def _unresolved(
        self,
        proposal: PlacementProposal,
        view: ScopeView,
        line: int,
        trace: _Trace,
        reason: str,
    ) -> ValidatedPlacement:
        logger.info(f"No safe declaration for proposal at line {proposal.target_line}: {reason}")
        reasoning = LOW_CONFIDENCE_PREFIX + "; ".join(
            part for part in [reason, proposal.reasoning] + trace.notes if part
        )
        return ValidatedPlacement(
            target_line=line,
            insert_position=InsertPosition.BEFORE,
            indentation=view.indentation_for(line),
            comment_text=self._comment_text(proposal, None, view, docstring=False),
            reasoning=reasoning,
            insert_line=line,
            confidence=min(proposal.confidence, 0.2),
            is_confident=False,
            element=None,
        )


def diagnose(document: Document, line: int, analysis: Optional[AnalysisResult] = None) -> str:
    """Human-readable account of how the validator sees ``line``."""
    view = ScopeView.from_document(document, analysis)
    if not 0 <= line < view.line_count:
        return f"line {line}: outside document (0..{view.line_count - 1})"
    facts = [f"brace depth {view.depths[line]}"]
    if view.is_declaration(line):
        element = view.element_for(line)
        facts.append(f"declaration of '{element.name}' ({element.kind.value})" if element else "declaration")
    if view.is_comment(line):
        facts.append("comment")
    if view.is_blank(line):
        facts.append("blank")
    if view.is_block_interior(line):
        enclosing = view.enclosing_declaration(line)
        facts.append(f"inside body of declaration at {enclosing}" if enclosing is not None else "inside a body")
    if view.has_comment_above(line):
        facts.append("already has a comment above")
    return f"line {line}: " + ", ".join(facts)
