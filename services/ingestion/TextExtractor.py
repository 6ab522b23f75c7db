"""PDF text extraction with PyMuPDF.

Pages are pulled one at a time so a large upload never has to be held in
memory as a whole; the caller decides when to read the next page.
"""

import re
from typing import Iterator

import fitz  # PyMuPDF
from pydantic import BaseModel

from shared.exceptions import ExtractionError

_WHITESPACE = re.compile(r"\s+")


class PageText(BaseModel):
    """Normalised text of one PDF page. page_number is 1-based."""

    page_number: int
    text: str


def normalize_whitespace(text: str) -> str:
    """Collapse every run of whitespace to a single space and trim."""
    return _WHITESPACE.sub(" ", text or "").strip()


def extract_pages(path: str) -> Iterator[PageText]:
    """Lazily yield the normalised text of each page in document order.

    The file is opened on the first pull and closed when the generator is
    exhausted or closed. Restart by calling again; the iterator cannot rewind.

    Args:
        path (str): Path of the stored PDF.

    Yields:
        PageText: One item per page, page_number 1..n.

    Raises:
        ExtractionError: If the file is missing, not a PDF, or a page cannot be read.
    """
    try:
        doc = fitz.open(path, filetype="pdf")
    except Exception as e:
        raise ExtractionError(f"Failed to open PDF '{path}': {e}") from e

    try:
        for index in range(doc.page_count):
            try:
                raw = doc.load_page(index).get_text("text")
            except Exception as e:
                raise ExtractionError(f"Failed to read page: {e}", page_number=index + 1) from e
            yield PageText(page_number=index + 1, text=normalize_whitespace(raw))
    finally:
        doc.close()
