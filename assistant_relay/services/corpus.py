"""PDF document corpus.

Loads every PDF in a directory once at start-up and keeps a lowercase,
whitespace-normalised copy of its text keyed by filename.  The composer
embeds the whole corpus in its prompt, so there is no chunking or ranking.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from pypdf import PdfReader

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Collapse whitespace runs to a single space and lowercase."""
    return _WHITESPACE_RE.sub(" ", text).strip().lower()


def extract_pdf_text(path: Path) -> str:
    """Return the raw text of every page of the PDF at *path*."""
    reader = PdfReader(path)
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def load_all(directory: str | Path) -> dict[str, str]:
    """Load every ``*.pdf`` in *directory* into ``{filename: normalized_text}``.

    A file that cannot be read is logged and skipped; the rest still load.
    """
    root = Path(directory)
    if not root.is_dir():
        logger.warning("Documents directory %s does not exist; corpus is empty", root)
        return {}

    contents: dict[str, str] = {}
    for path in sorted(root.glob("*.pdf")):
        try:
            contents[path.name] = normalize_text(extract_pdf_text(path))
        except Exception:
            logger.exception("Failed to load PDF %s", path.name)
            continue
        logger.info("Loaded PDF %s (%d chars)", path.name, len(contents[path.name]))

    return contents
