from __future__ import annotations

import logging
from dataclasses import dataclass, field

import pymupdf

logger = logging.getLogger(__name__)


class DocumentDecodeError(ValueError):
    """The uploaded bytes are not a readable PDF."""


@dataclass
class PdfChunk:
    content: bytes
    start_page: int
    end_page: int
    index: int
    # Absolute page number -> public image URL, filled only when images are rendered.
    page_images: dict[int, str] = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return self.end_page - self.start_page + 1


def compute_page_ranges(
    total_pages: int,
    pages_per_chunk: int,
    start_page: int | None = None,
    end_page: int | None = None,
) -> list[tuple[int, int]]:
    """Split `[start_page, end_page]` (clamped to the document) into page ranges.

    Ranges are 1-based and inclusive, contiguous, and at most `pages_per_chunk` long;
    only the last one may be shorter.
    """
    if pages_per_chunk < 1:
        raise ValueError("pages_per_chunk must be >= 1")

    first = max(1, start_page or 1)
    last = min(total_pages, end_page or total_pages)

    ranges: list[tuple[int, int]] = []
    for chunk_start in range(first, last + 1, pages_per_chunk):
        ranges.append((chunk_start, min(chunk_start + pages_per_chunk - 1, last)))
    return ranges


def open_pdf(document: bytes) -> pymupdf.Document:
    try:
        pdf = pymupdf.open(stream=document, filetype="pdf")
    except (RuntimeError, ValueError) as e:
        raise DocumentDecodeError(f"Invalid PDF document: {e}") from e
    if not pdf.is_pdf:
        pdf.close()
        raise DocumentDecodeError("Invalid PDF document")
    return pdf


def split_pdf_into_chunks(
    document: bytes,
    *,
    pages_per_chunk: int,
    start_page: int | None = None,
    end_page: int | None = None,
) -> list[PdfChunk]:
    """Materialize each page range as a standalone PDF."""
    chunks: list[PdfChunk] = []
    with open_pdf(document) as source:
        ranges = compute_page_ranges(
            source.page_count, pages_per_chunk, start_page, end_page
        )
        for index, (first, last) in enumerate(ranges):
            with pymupdf.open() as chunk_pdf:
                # insert_pdf takes 0-based, inclusive page numbers.
                chunk_pdf.insert_pdf(source, from_page=first - 1, to_page=last - 1)
                content = chunk_pdf.tobytes()
            chunks.append(
                PdfChunk(content=content, start_page=first, end_page=last, index=index)
            )

    logger.info(
        "Split PDF into %d chunks of up to %d pages", len(chunks), pages_per_chunk
    )
    return chunks
