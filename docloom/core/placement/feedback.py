"""Feedback collaborator interface.

The engine emits one FeedbackRecord per inserted or rejected placement.
Delivery is fire-and-forget: the engine logs and swallows sink errors.
"""

import json
import logging
import os
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from .models import FeedbackRecord

logger = logging.getLogger(__name__)


class FeedbackSink(ABC):
    """Receives placement feedback records."""

    @abstractmethod
    def record(self, record: FeedbackRecord) -> None:
        ...


class LoggingFeedbackSink(FeedbackSink):
    """Default sink: writes each record to the log."""

    def record(self, record: FeedbackRecord) -> None:
        kind = record.element_kind.value if record.element_kind else "none"
        logger.info(
            f"Feedback: accepted={record.accepted} confidence={record.confidence:.2f} "
            f"kind={kind} description={record.description[:60]!r}"
        )


class JsonlFeedbackSink(FeedbackSink):
    """Appends one JSON object per record to a file."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def record(self, record: FeedbackRecord) -> None:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "description": record.description,
            "generated_comment": record.generated_comment,
            "accepted": record.accepted,
            "confidence": round(record.confidence, 3),
            "element_kind": record.element_kind.value if record.element_kind else None,
        }
        directory = os.path.dirname(self.path)
        with self._lock:
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(json.dumps(entry) + "\n")
