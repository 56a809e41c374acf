"""Placement data contracts.

Every producer of a placement (local scorer, remote assistant, raw cursor)
hands the validator the same PlacementProposal shape; the insertion
executor only ever accepts a ValidatedPlacement.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from docloom.core.ast_parser.models import ElementKind, StructuralElement


class InsertPosition(str, Enum):
    BEFORE = "before"
    AFTER = "after"


class Strategy(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"


class StrategyPreference(str, Enum):
    AUTO = "auto"
    LOCAL_ONLY = "local-only"
    REMOTE_ONLY = "remote-only"


class ProposalSource(str, Enum):
    LOCAL = "local"
    REMOTE = "remote"
    CURSOR = "cursor"


class ExistingCommentPolicy(str, Enum):
    """What to do when the target already has a comment directly above it."""

    NEXT_DECLARATION = "next_declaration"  # move on to the next undocumented declaration
    STACK_ABOVE = "stack_above"  # insert above the existing comment block


class PlacementStatus(str, Enum):
    INSERTED = "inserted"
    PREVIEW = "preview"
    NO_PLACEMENT = "no_placement"
    REJECTED = "rejected"
    FAILED = "failed"


@dataclass(frozen=True)
class PlacementCandidate:
    """A scored, not-yet-validated placement produced by the local scorer."""

    target_line: int
    insert_position: InsertPosition
    confidence: float
    reasoning: str
    element: StructuralElement


@dataclass(frozen=True)
class PlacementProposal:
    """Uniform validator input regardless of where the proposal came from."""

    target_line: int
    insert_position: InsertPosition
    description: str
    source: ProposalSource
    comment_text: Optional[str] = None
    reasoning: str = ""
    confidence: float = 0.5
    element: Optional[StructuralElement] = None

    @classmethod
    def from_candidate(cls, candidate: PlacementCandidate, description: str) -> "PlacementProposal":
        return cls(
            target_line=candidate.target_line,
            insert_position=candidate.insert_position,
            description=description,
            source=ProposalSource.LOCAL,
            reasoning=candidate.reasoning,
            confidence=candidate.confidence,
            element=candidate.element,
        )


@dataclass(frozen=True)
class ValidatedPlacement:
    """A placement that passed every correction rule.

    ``target_line`` is the declaration the comment documents; ``insert_line``
    is the physical line the text goes in front of. They differ when the
    comment is stacked above an existing comment block, and for
    after-signature languages where the docstring follows the signature.
    """

    target_line: int
    insert_position: InsertPosition
    indentation: int
    comment_text: str
    reasoning: str
    insert_line: int
    confidence: float = 0.0
    is_confident: bool = True
    element: Optional[StructuralElement] = None


@dataclass
class PlacementOutcome:
    """Result of one placement request."""

    status: PlacementStatus
    description: str
    placement: Optional[ValidatedPlacement] = None
    strategy: Optional[str] = None
    message: str = ""
    lines_inserted: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status == PlacementStatus.INSERTED


@dataclass(frozen=True)
class BatchItem:
    cursor_line: int
    description: str


@dataclass
class BatchReport:
    """Outcome of a multi-item run, in item order."""

    document_id: str
    outcomes: List[PlacementOutcome] = field(default_factory=list)
    cancelled: bool = False
    skipped: int = 0

    @property
    def inserted(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == PlacementStatus.INSERTED)

    @property
    def failed(self) -> int:
        return sum(
            1 for outcome in self.outcomes
            if outcome.status in (PlacementStatus.FAILED, PlacementStatus.REJECTED, PlacementStatus.NO_PLACEMENT)
        )


@dataclass(frozen=True)
class FeedbackRecord:
    """One-way learning signal emitted after an inserted or rejected placement."""

    description: str
    generated_comment: str
    accepted: bool
    confidence: float
    element_kind: Optional[ElementKind] = None
