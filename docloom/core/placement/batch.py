"""Claimed-line registry for multi-item placement runs.

One registry instance is owned by whoever drives a batch (normally the
PlacementEngine); state is keyed strictly by document identity and exists
only between ``start_batch`` and ``end_batch``.
"""

import logging
import threading
from typing import Dict, FrozenSet, Set

logger = logging.getLogger(__name__)


class BatchRegistry:
    """Tracks lines already documented within a batch, per document."""

    def __init__(self):
        self._claimed: Dict[str, Set[int]] = {}
        self._lock = threading.Lock()

    def start_batch(self, document_id: str) -> None:
        with self._lock:
            self._claimed[document_id] = set()
        logger.debug(f"Batch started for {document_id}")

    def end_batch(self, document_id: str) -> None:
        with self._lock:
            claimed = self._claimed.pop(document_id, set())
        logger.debug(f"Batch ended for {document_id} ({len(claimed)} line(s) claimed)")

    def is_active(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._claimed

    def mark_used(self, document_id: str, line: int) -> None:
        with self._lock:
            self._claimed.setdefault(document_id, set()).add(line)

    def is_used(self, document_id: str, line: int) -> bool:
        with self._lock:
            return line in self._claimed.get(document_id, ())

    def used_lines(self, document_id: str) -> FrozenSet[int]:
        with self._lock:
            return frozenset(self._claimed.get(document_id, ()))

    def shift(self, document_id: str, from_line: int, delta: int) -> None:
        """Move claimed lines at or after ``from_line`` by ``delta``.

        Called after an edit so claimed lines keep pointing at the same
        source text.
        """
        if delta == 0:
            return
        with self._lock:
            claimed = self._claimed.get(document_id)
            if not claimed:
                return
            self._claimed[document_id] = {
                line + delta if line >= from_line else line for line in claimed
            }
