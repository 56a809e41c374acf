"""docloom placement: scoring, validation, formatting and insertion of comments.

Public API:
    PlacementEngine.place / preview / place_batch
    PositionValidator.validate, is_block_interior, diagnose
    CandidateScorer.score
    CommentFormatter.format
    choose_strategy
"""

from .batch import BatchRegistry
from .document import Document, EditRejectedError, TextDocument
from .engine import PlacementEngine
from .feedback import FeedbackSink, JsonlFeedbackSink, LoggingFeedbackSink
from .formatter import CommentFormatter
from .inserter import InsertionExecutor
from .models import (
    BatchItem,
    BatchReport,
    ExistingCommentPolicy,
    FeedbackRecord,
    InsertPosition,
    PlacementCandidate,
    PlacementOutcome,
    PlacementProposal,
    PlacementStatus,
    ProposalSource,
    Strategy,
    StrategyPreference,
    ValidatedPlacement,
)
from .remote import RemoteAssistAdapter
from .scope import is_block_interior
from .scorer import CandidateScorer
from .strategy import choose_strategy
from .validator import PositionValidator, diagnose

__all__ = [
    "BatchItem",
    "BatchRegistry",
    "BatchReport",
    "CandidateScorer",
    "CommentFormatter",
    "Document",
    "EditRejectedError",
    "ExistingCommentPolicy",
    "FeedbackRecord",
    "FeedbackSink",
    "InsertionExecutor",
    "InsertPosition",
    "JsonlFeedbackSink",
    "LoggingFeedbackSink",
    "PlacementCandidate",
    "PlacementEngine",
    "PlacementOutcome",
    "PlacementProposal",
    "PlacementStatus",
    "PositionValidator",
    "ProposalSource",
    "RemoteAssistAdapter",
    "Strategy",
    "StrategyPreference",
    "TextDocument",
    "ValidatedPlacement",
    "choose_strategy",
    "diagnose",
    "is_block_interior",
]
