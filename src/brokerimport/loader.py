"""Statement loader — PDF and CSV files into token pages.

Supports both filesystem paths and in-memory bytes for uploads. Files of
other types are decoded as text so the dispatcher can still report them
as unsupported.
"""

from __future__ import annotations

import io
import logging
from pathlib import Path

from brokerimport.config import IngestionSettings
from brokerimport.schemas import LoadedDocument, Page

logger = logging.getLogger(__name__)


def to_page(lines: list[str]) -> Page:
    """Trim lines and drop empty ones."""
    return [line.strip() for line in lines if line.strip()]


class DocumentLoader:
    """Load statement files into a ``LoadedDocument``."""

    def __init__(self, settings: IngestionSettings | None = None):
        self.settings = settings or IngestionSettings()

    def load_file(self, path: str | Path) -> LoadedDocument:
        """Load a document from a filesystem path."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        data = path.read_bytes()
        result = self.load_bytes(data, path.name)
        result.source_path = str(path)
        return result

    def load_bytes(self, data: bytes, filename: str) -> LoadedDocument:
        """Load a document from in-memory bytes."""
        limit = self.settings.max_file_size_mb * 1024 * 1024
        if len(data) > limit:
            raise ValueError(
                f"{filename} is {len(data)} bytes, limit is {self.settings.max_file_size_mb} MB"
            )

        ext = Path(filename).suffix.lower()
        result = self._dispatch(data, ext)
        if ext not in self.settings.supported_formats:
            result.warnings.append(f"Unsupported format '{ext}', read as text")
        result.source_path = filename
        return result

    # ------------------------------------------------------------------
    # Private dispatch
    # ------------------------------------------------------------------

    def _dispatch(self, data: bytes, ext: str) -> LoadedDocument:
        handler = self._load_pdf if ext == ".pdf" else self._load_text
        pages, warnings = handler(data)
        logger.debug("Loaded %d page(s) from %s data", len(pages), ext or "untyped")
        return LoadedDocument(pages=pages, extension=ext.lstrip("."), warnings=warnings)

    # ------------------------------------------------------------------
    # Format-specific loaders
    # ------------------------------------------------------------------

    @staticmethod
    def _load_text(data: bytes) -> tuple[list[Page], list[str]]:
        for encoding in ("utf-8", "latin-1", "cp1252"):
            try:
                text = data.decode(encoding)
                break
            except UnicodeDecodeError:
                continue
        page = to_page(text.strip().splitlines())
        return ([page] if page else []), []

    @staticmethod
    def _load_pdf(data: bytes) -> tuple[list[Page], list[str]]:
        import pdfplumber

        warnings: list[str] = []
        pages: list[Page] = []

        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                for page in pdf.pages:
                    text = page.extract_text() or ""
                    pages.append(to_page(text.splitlines()))
        except Exception as exc:
            warnings.append(f"PDF extraction error: {exc}")
            return [], warnings

        if not any(pages):
            warnings.append("PDF contains no extractable text (may be scanned/image-only)")
            return [], warnings

        return pages, warnings
