"""Placement orchestration.

One request runs: select strategy → analyze locally or ask the remote
assistant → validate → reject or insert. A remote failure always falls
back to local analysis. Edits against the same document never overlap:
each document gets its own lock, held for a whole request or batch.
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional, Sequence

from docloom.core.ast_parser import AnalysisResult, analyze_source

from .batch import BatchRegistry
from .document import Document, EditRejectedError, TextDocument
from .feedback import FeedbackSink, JsonlFeedbackSink, LoggingFeedbackSink
from .formatter import CommentFormatter
from .inserter import InsertionExecutor
from .models import (
    BatchItem,
    BatchReport,
    ExistingCommentPolicy,
    FeedbackRecord,
    InsertPosition,
    PlacementOutcome,
    PlacementProposal,
    PlacementStatus,
    ProposalSource,
    Strategy,
    StrategyPreference,
    ValidatedPlacement,
)
from .remote import RemoteAssistAdapter
from .scorer import CandidateScorer
from .strategy import HIGH_COMPLEXITY_THRESHOLD, choose_strategy
from .validator import PositionValidator

logger = logging.getLogger(__name__)

RAW_CURSOR_CONFIDENCE = 0.3


class PlacementEngine:
    """Runs placement requests against host documents.

    Public API:
        place(document, cursor_line, description, *, has_credential, has_connectivity, batch=None)
        preview(document, cursor_line, description, *, has_credential, has_connectivity, batch=None)
        place_batch(document, items, cancel_event=None, ...) → BatchReport
    """

    def __init__(
        self,
        scorer: Optional[CandidateScorer] = None,
        validator: Optional[PositionValidator] = None,
        executor: Optional[InsertionExecutor] = None,
        remote: Optional[RemoteAssistAdapter] = None,
        feedback: Optional[FeedbackSink] = None,
        registry: Optional[BatchRegistry] = None,
        preference: StrategyPreference = StrategyPreference.AUTO,
        prefer_quality: bool = False,
        high_complexity_threshold: int = HIGH_COMPLEXITY_THRESHOLD,
        raw_cursor_fallback: bool = False,
        proceed_on_low_confidence: bool = False,
    ):
        self.scorer = scorer or CandidateScorer()
        self.validator = validator or PositionValidator()
        self.executor = executor or InsertionExecutor()
        self.remote = remote
        self.feedback = feedback or LoggingFeedbackSink()
        self.registry = registry or BatchRegistry()
        self.preference = StrategyPreference(preference)
        self.prefer_quality = prefer_quality
        self.high_complexity_threshold = high_complexity_threshold
        self.raw_cursor_fallback = raw_cursor_fallback
        self.proceed_on_low_confidence = proceed_on_low_confidence
        self._document_locks: Dict[str, "_DocumentLock"] = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Any, api_key: Optional[str] = None) -> "PlacementEngine":
        """Build an engine from DocloomSettings."""
        placement = settings.placement
        scorer = CandidateScorer(
            proximity_window=settings.scoring.proximity_window,
            always_keep_distance=settings.scoring.always_keep_distance,
            heuristic_cap=settings.scoring.heuristic_cap,
        )
        validator = PositionValidator(
            formatter=CommentFormatter(),
            after_signature_languages=frozenset(placement.after_signature_languages),
            existing_comment_policy=ExistingCommentPolicy(placement.existing_comment_policy),
            enclosing_window=placement.enclosing_window,
            claim_window=placement.claim_window,
            redocument_window=placement.redocument_window,
        )
        feedback: FeedbackSink = LoggingFeedbackSink()
        if placement.feedback_path:
            feedback = JsonlFeedbackSink(placement.feedback_path)
        return cls(
            scorer=scorer,
            validator=validator,
            remote=RemoteAssistAdapter.from_settings(settings.remote, api_key),
            feedback=feedback,
            preference=StrategyPreference(settings.strategy.preference),
            prefer_quality=settings.strategy.prefer_quality,
            high_complexity_threshold=settings.strategy.high_complexity_threshold,
            raw_cursor_fallback=placement.raw_cursor_fallback,
            proceed_on_low_confidence=placement.proceed_on_low_confidence,
        )

    # =========================================================================
    # Public API
    # =========================================================================

    def place(
        self,
        document: Document,
        cursor_line: int,
        description: str,
        *,
        has_credential: bool,
        has_connectivity: bool,
        batch: Optional[BatchRegistry] = None,
    ) -> PlacementOutcome:
        """Place one comment and insert it into ``document``."""
        with self._document_lock(document):
            return self._run(document, cursor_line, description, has_credential, has_connectivity, batch, dry_run=False)

    def preview(
        self,
        document: Document,
        cursor_line: int,
        description: str,
        *,
        has_credential: bool,
        has_connectivity: bool,
        batch: Optional[BatchRegistry] = None,
    ) -> PlacementOutcome:
        """Everything ``place`` does except the edit."""
        with self._document_lock(document):
            return self._run(document, cursor_line, description, has_credential, has_connectivity, batch, dry_run=True)

    def place_batch(
        self,
        document: Document,
        items: Sequence[BatchItem],
        cancel_event: Optional[threading.Event] = None,
        *,
        has_credential: bool = False,
        has_connectivity: bool = False,
        dry_run: bool = False,
    ) -> BatchReport:
        """Place several comments into one document, strictly in order.

        Each item is validated against the document as left by the previous
        items. Cancellation stops further items; completed insertions stay.
        A dry run rehearses the batch on an in-memory copy, so its previews
        match what a real run would do while ``document`` stays untouched.
        """
        document_id = document.document_id
        report = BatchReport(document_id=document_id)
        target = document
        if dry_run:
            target = TextDocument(document.get_text(), document.language_id, document_id=document_id)
        # Cursors refer to the text as submitted; they move down with every insertion above them
        cursors = [item.cursor_line for item in items]
        with self._document_lock(document):
            self.registry.start_batch(document_id)
            try:
                for index, item in enumerate(items):
                    if cancel_event is not None and cancel_event.is_set():
                        report.cancelled = True
                        report.skipped = len(items) - index
                        logger.info(f"Batch for {document_id} cancelled; {report.skipped} item(s) skipped")
                        break
                    outcome = self._run(
                        target,
                        cursors[index],
                        item.description,
                        has_credential,
                        has_connectivity,
                        self.registry,
                        dry_run=False,
                        rehearsal=dry_run,
                    )
                    report.outcomes.append(outcome)
                    if outcome.lines_inserted:
                        at = outcome.placement.insert_line
                        for later in range(index + 1, len(cursors)):
                            if cursors[later] >= at:
                                cursors[later] += outcome.lines_inserted
            finally:
                self.registry.end_batch(document_id)

        logger.info(
            f"Batch for {document_id}: {report.inserted} inserted, "
            f"{report.failed} not placed, {report.skipped} skipped"
        )
        return report

    # =========================================================================
    # Pipeline
    # =========================================================================

    def _run(
        self,
        document: Document,
        cursor_line: int,
        description: str,
        has_credential: bool,
        has_connectivity: bool,
        batch: Optional[BatchRegistry],
        dry_run: bool,
        rehearsal: bool = False,
    ) -> PlacementOutcome:
        if not (description or "").strip():
            return PlacementOutcome(PlacementStatus.NO_PLACEMENT, description or "", message="Empty description")

        analysis = analyze_source(document.get_text(), document.language_id)
        strategy = choose_strategy(
            has_credential,
            has_connectivity,
            self.preference,
            self._complexity_hint(analysis, cursor_line),
            prefer_quality=self.prefer_quality,
            high_complexity_threshold=self.high_complexity_threshold,
        )
        logger.debug(f"Strategy {strategy.value} for {document.document_id}:{cursor_line}")

        proposal: Optional[PlacementProposal] = None
        if strategy == Strategy.REMOTE and self.remote is not None:
            proposal = self.remote.propose(document, cursor_line, description)
            if proposal is None:
                logger.info("Remote assistance failed; falling back to local analysis")
                strategy = Strategy.LOCAL
        elif strategy == Strategy.REMOTE:
            strategy = Strategy.LOCAL

        if proposal is None:
            proposal = self._local_proposal(document, analysis, cursor_line, description, batch)
        if proposal is None:
            logger.info(f"No placement candidate near line {cursor_line} of {document.document_id}")
            return PlacementOutcome(
                PlacementStatus.NO_PLACEMENT,
                description,
                strategy=strategy.value,
                message=f"No undocumented declaration near line {cursor_line}",
            )

        placement = self.validator.validate(proposal, document, batch=batch, analysis=analysis)
        if not placement.is_confident and not self.proceed_on_low_confidence:
            self._emit_feedback(description, placement, accepted=False)
            return PlacementOutcome(
                PlacementStatus.REJECTED,
                description,
                placement=placement,
                strategy=strategy.value,
                message=placement.reasoning,
            )

        if dry_run:
            return PlacementOutcome(
                PlacementStatus.PREVIEW,
                description,
                placement=placement,
                strategy=strategy.value,
                message=placement.reasoning,
            )

        try:
            added = self.executor.insert(document, placement)
        except EditRejectedError as e:
            logger.error(f"Edit rejected for {document.document_id}:{placement.insert_line}: {e}")
            self._emit_feedback(description, placement, accepted=False)
            return PlacementOutcome(
                PlacementStatus.FAILED,
                description,
                placement=placement,
                strategy=strategy.value,
                message=str(e),
            )

        if batch is not None:
            self._claim(batch, document.document_id, placement, added)
        if rehearsal:
            return PlacementOutcome(
                PlacementStatus.PREVIEW,
                description,
                placement=placement,
                strategy=strategy.value,
                message=placement.reasoning,
                lines_inserted=added,
            )
        self._emit_feedback(description, placement, accepted=True)
        return PlacementOutcome(
            PlacementStatus.INSERTED,
            description,
            placement=placement,
            strategy=strategy.value,
            message=placement.reasoning,
            lines_inserted=added,
        )

    def _local_proposal(
        self,
        document: Document,
        analysis: AnalysisResult,
        cursor_line: int,
        description: str,
        batch: Optional[BatchRegistry],
    ) -> Optional[PlacementProposal]:
        candidates = self.scorer.score(analysis.elements, cursor_line, description, analysis.tier)
        if candidates:
            chosen = candidates[0]
            if batch is not None:
                free = [c for c in candidates if not batch.is_used(document.document_id, c.target_line)]
                chosen = free[0] if free else chosen
            return PlacementProposal.from_candidate(chosen, description)

        if self.raw_cursor_fallback:
            return PlacementProposal(
                target_line=cursor_line,
                insert_position=InsertPosition.BEFORE,
                description=description,
                source=ProposalSource.CURSOR,
                reasoning="raw cursor position",
                confidence=RAW_CURSOR_CONFIDENCE,
            )
        return None

    def _complexity_hint(self, analysis: AnalysisResult, cursor_line: int) -> int:
        nearby = [
            e.complexity for e in analysis.elements
            if e.contains(cursor_line) or abs(e.start_line - cursor_line) <= self.scorer.proximity_window
        ]
        return max(nearby, default=1)

    @staticmethod
    def _claim(batch: BatchRegistry, document_id: str, placement: ValidatedPlacement, added: int) -> None:
        # Earlier claims below the edit move down with the text
        batch.shift(document_id, placement.insert_line, added)
        anchor = placement.target_line
        if anchor >= placement.insert_line:
            anchor += added
        batch.mark_used(document_id, anchor)

    def _emit_feedback(self, description: str, placement: ValidatedPlacement, accepted: bool) -> None:
        record = FeedbackRecord(
            description=description,
            generated_comment=placement.comment_text,
            accepted=accepted,
            confidence=placement.confidence,
            element_kind=placement.element.kind if placement.element else None,
        )
        try:
            self.feedback.record(record)
        except Exception as e:
            logger.warning(f"Feedback sink failed: {e}")

    @contextmanager
    def _document_lock(self, document: Document) -> Iterator[None]:
        """Hold the document's lock; its entry goes away with the last user."""
        document_id = document.document_id
        with self._locks_guard:
            entry = self._document_locks.setdefault(document_id, _DocumentLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._document_locks[document_id]


@dataclass
class _DocumentLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0
