"""Insertion of a validated placement into a document."""

import logging
import textwrap

from .document import Document
from .models import ValidatedPlacement

logger = logging.getLogger(__name__)


def indent_comment(comment: str, indentation: int) -> str:
    """Re-indent ``comment`` to ``indentation`` spaces.

    Relative indentation inside the comment (docstring sections) is kept.
    Continuation lines of a block comment that start with ``*`` are aligned
    one column in, under the first ``*`` of the opener.
    """
    indent = " " * max(indentation, 0)
    lines = textwrap.dedent(comment.strip("\n")).split("\n")
    result = []
    for line in lines:
        stripped = line.strip()
        if not stripped:
            result.append("")
        elif stripped == "*" or stripped.startswith(("* ", "*/")):
            result.append(f"{indent} {stripped}")
        else:
            result.append(f"{indent}{line.rstrip()}")
    return "\n".join(result)


class InsertionExecutor:
    """Applies a ValidatedPlacement as one atomic edit."""

    def insert(self, document: Document, placement: ValidatedPlacement) -> int:
        """Insert the comment and return the number of lines added.

        Raises:
            EditRejectedError: If the host refuses the edit
        """
        text = indent_comment(placement.comment_text, placement.indentation)
        before = document.line_count
        document.insert(placement.insert_line, 0, text + "\n")
        added = document.line_count - before
        logger.info(
            f"Inserted {added}-line comment at {document.document_id}:{placement.insert_line} "
            f"for declaration at line {placement.target_line}"
        )
        return added
