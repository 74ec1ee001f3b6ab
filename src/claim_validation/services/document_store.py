"""File-backed supporting-document extraction.

Documents are stored as already-extracted text, one file per document:
``<root>/<document_id>.txt`` (or ``.md``).
"""

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

DOCUMENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
TEXT_SUFFIXES = (".txt", ".md")


class FileDocumentStore:
    """Reads extracted document text from a directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def extract(self, document_id: str) -> str:
        """Return the text of a stored document.

        Raises:
            ValueError: If the id is not a plain file name.
            FileNotFoundError: If no text file exists for the id.
        """
        if not DOCUMENT_ID_PATTERN.match(document_id) or ".." in document_id:
            raise ValueError(f"Invalid document id: {document_id!r}")

        for suffix in TEXT_SUFFIXES:
            path = self.root / f"{document_id}{suffix}"
            if path.exists():
                text = path.read_text(encoding="utf-8")
                logger.debug(f"Extracted {len(text)} chars from document {document_id}")
                return text

        raise FileNotFoundError(f"Document {document_id} not found in {self.root}")
