"""Host document interface.

The engine reads a document through ``line_at``/``line_count``/``get_text``
and writes through a single ``insert`` call. ``TextDocument`` is the
in-memory implementation used by the CLI and the tests; editor hosts
provide their own subclass.
"""

import logging
import os
from abc import ABC, abstractmethod
from typing import List, Optional

from docloom.core.ast_parser import detect_language, normalize_language

logger = logging.getLogger(__name__)


class EditRejectedError(RuntimeError):
    """The host refused to apply an edit."""


class Document(ABC):
    """Read/insert view of one open document."""

    @property
    @abstractmethod
    def document_id(self) -> str:
        ...

    @property
    @abstractmethod
    def language_id(self) -> str:
        ...

    @property
    @abstractmethod
    def line_count(self) -> int:
        ...

    @abstractmethod
    def line_at(self, line: int) -> str:
        """Text of ``line`` (0-based) without its terminator."""
        ...

    @abstractmethod
    def get_text(self) -> str:
        ...

    @abstractmethod
    def insert(self, line: int, column: int, text: str) -> None:
        """Insert ``text`` at (line, column) as one atomic edit.

        Raises:
            EditRejectedError: If the host refuses the edit. The document
                must be unchanged in that case.
        """
        ...

    def lines(self) -> List[str]:
        return [self.line_at(i) for i in range(self.line_count)]


class TextDocument(Document):
    """In-memory document backed by a list of lines."""

    def __init__(
        self,
        text: str,
        language_id: str,
        document_id: str = "untitled",
        read_only: bool = False,
    ):
        self._lines: List[str] = text.split("\n")
        self._language_id = normalize_language(language_id)
        self._document_id = document_id
        self._read_only = read_only
        self._path: Optional[str] = None

    @classmethod
    def from_file(cls, path: str, language_id: Optional[str] = None) -> "TextDocument":
        """Load a file; the language is detected from its extension when not given."""
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        language = language_id or detect_language(path) or "plaintext"
        document = cls(text, language, document_id=os.path.abspath(path))
        document._path = path
        return document

    @property
    def document_id(self) -> str:
        return self._document_id

    @property
    def language_id(self) -> str:
        return self._language_id

    @property
    def line_count(self) -> int:
        return len(self._lines)

    def line_at(self, line: int) -> str:
        return self._lines[line]

    def get_text(self) -> str:
        return "\n".join(self._lines)

    def insert(self, line: int, column: int, text: str) -> None:
        if self._read_only:
            raise EditRejectedError(f"{self._document_id} is read-only")
        if not 0 <= line <= len(self._lines):
            raise EditRejectedError(f"Line {line} is outside {self._document_id} (0..{len(self._lines)})")

        if line == len(self._lines):
            # Appending after the last line
            updated = self._lines + text.split("\n")
        else:
            current = self._lines[line]
            if not 0 <= column <= len(current):
                raise EditRejectedError(f"Column {column} is outside line {line}")
            merged = current[:column] + text + current[column:]
            updated = self._lines[:line] + merged.split("\n") + self._lines[line + 1:]

        # Swap in one step so a failure above leaves the document untouched
        added = len(updated) - len(self._lines)
        self._lines = updated
        logger.debug(f"Inserted {added} line(s) at {self._document_id}:{line}")

    def save(self, path: Optional[str] = None) -> str:
        target = path or self._path
        if not target:
            raise ValueError("No path to save to")
        with open(target, "w", encoding="utf-8") as f:
            f.write(self.get_text())
        return target
