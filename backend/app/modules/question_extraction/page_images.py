"""Render chunk pages to PNG and publish them to the question image bucket."""
from __future__ import annotations

import logging
import re
import time

import pymupdf

from app.providers.storage import QuestionImageStorage

from .chunker import PdfChunk, open_pdf

logger = logging.getLogger(__name__)

DEFAULT_RENDER_SCALE = 2.0


def image_name_prefix(file_name: str) -> str:
    return "question_" + re.sub(r"[^a-zA-Z0-9]", "_", file_name)


def render_page_png(
    page: pymupdf.Page, scale: float = DEFAULT_RENDER_SCALE
) -> bytes:
    pixmap = page.get_pixmap(matrix=pymupdf.Matrix(scale, scale))
    return pixmap.tobytes("png")


def extract_chunk_images(
    chunk: PdfChunk,
    *,
    storage: QuestionImageStorage,
    prefix: str,
    scale: float = DEFAULT_RENDER_SCALE,
) -> dict[int, str]:
    """Render every page of the chunk and upload it.

    Returns absolute page number -> public URL for the pages that made it. Pages
    that fail to render or upload are skipped.
    """
    images: dict[int, str] = {}
    with open_pdf(chunk.content) as pdf:
        for offset, page in enumerate(pdf):
            page_number = chunk.start_page + offset
            try:
                png = render_page_png(page, scale)
            except (RuntimeError, ValueError):
                logger.warning("Failed to render page %d", page_number, exc_info=True)
                continue

            blob_name = f"{prefix}_page_{page_number}_{int(time.time() * 1000)}.png"
            url = storage.upload_png(png, blob_name)
            if url:
                images[page_number] = url

    chunk.page_images.update(images)
    return images
