from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import Any

from azure.core.exceptions import AzureError
from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import SessionLocal, get_db
from app.modules.ai_usage.repository import AiUsageRepository
from app.modules.ai_usage.service import AiUsageService
from app.providers.gemini import GeminiClient, GeminiConfigurationError
from app.providers.storage import QuestionImageStorage, image_storage

from .chunker import PdfChunk, split_pdf_into_chunks
from .jobs import ExtractionJob, job_registry
from .llm_extractor import QuestionLLMExtractor
from .models import Question
from .page_images import extract_chunk_images, image_name_prefix
from .parsing import normalize_difficulty, normalize_options, resolve_correct_answer
from .repository import QuestionRepository
from .schemas import ExtractedQuestion, ExtractionConfig

logger = logging.getLogger(__name__)

QuestionsSavedCallback = Callable[[], None]


def to_question_row(question: ExtractedQuestion, *, image_url: str | None) -> dict[str, Any]:
    options = normalize_options(question.options)
    return {
        "question_text": question.question_text,
        "options": options,
        "correct_answer": resolve_correct_answer(question.correct_answer, options),
        "topic": question.topic,
        "subtopic": question.subtopic,
        "difficulty": normalize_difficulty(question.difficulty),
        "explanation": question.explanation,
        "has_image": question.has_image,
        "image_description": question.image_description or None,
        "image_url": image_url if question.has_image else None,
        "is_verified": False,
    }


class QuestionPersister:
    """Stores one chunk's questions, rendering page images when any need them."""

    def __init__(
        self, *, repo: QuestionRepository, storage: QuestionImageStorage
    ) -> None:
        self.repo = repo
        self.storage = storage

    def _chunk_image_url(self, chunk: PdfChunk, file_name: str) -> str | None:
        # There is no per-question page attribution: the first uploaded page image
        # stands in for every image-bearing question of the chunk.
        try:
            if not self.storage.ensure_bucket():
                return None
            images = extract_chunk_images(
                chunk, storage=self.storage, prefix=image_name_prefix(file_name)
            )
        except (RuntimeError, ValueError, AzureError):
            logger.warning("Image extraction failed for chunk %d", chunk.index, exc_info=True)
            return None
        return next(iter(images.values()), None)

    def persist_chunk(
        self,
        chunk: PdfChunk,
        questions: Sequence[ExtractedQuestion],
        *,
        job: ExtractionJob,
        file_name: str,
        on_saved: QuestionsSavedCallback | None = None,
    ) -> int:
        """Insert the chunk's questions; returns how many rows were stored."""
        if not questions:
            return 0

        image_url: str | None = None
        with_images = [q for q in questions if q.has_image]
        if with_images:
            job.set_step("uploading", f"Extracting {len(with_images)} images...")
            image_url = self._chunk_image_url(chunk, file_name)

        job.set_step("saving", f"Saving {len(questions)} questions...")
        rows = [to_question_row(q, image_url=image_url) for q in questions]
        try:
            self.repo.bulk_insert(rows)
        except SQLAlchemyError:
            self.repo.rollback()
            logger.exception(
                "Insert failed for pages %d-%d of %s",
                chunk.start_page,
                chunk.end_page,
                file_name,
            )
            job.notify(
                "error",
                f"Failed to save questions from pages {chunk.start_page}-{chunk.end_page}",
            )
            return 0

        if on_saved is not None:
            on_saved()
        return len(rows)


class QuestionExtractionPipeline:
    def __init__(
        self,
        *,
        db: Session,
        client_factory: Callable[[], GeminiClient] | None = None,
        storage: QuestionImageStorage | None = None,
    ) -> None:
        self.db = db
        self.client_factory = client_factory or GeminiClient
        self.usage_service = AiUsageService(AiUsageRepository(db))
        self.persister = QuestionPersister(
            repo=QuestionRepository(db), storage=storage or image_storage
        )

    def run(
        self,
        job: ExtractionJob,
        document: bytes,
        *,
        config: ExtractionConfig | None = None,
        on_questions_saved: QuestionsSavedCallback | None = None,
    ) -> int:
        """Extract and store every chunk of `document`; returns the stored question count.

        Stop requests are honoured between chunks only. Chunks already saved stay saved.
        """
        config = config or ExtractionConfig()

        try:
            client = self.client_factory()
        except GeminiConfigurationError as e:
            logger.error("Extraction aborted: %s", e)
            job.finish("error", str(e))
            job.notify("error", str(e))
            return 0

        job.start()
        total_questions = 0
        stopped = False
        tokens = job.progress.tokens

        try:
            with client:
                extractor = QuestionLLMExtractor(
                    client=client, usage_service=self.usage_service, model=job.model
                )

                job.set_step("preparing", "Splitting PDF into chunks...")
                chunks = split_pdf_into_chunks(
                    document,
                    pages_per_chunk=config.pages_per_chunk,
                    start_page=config.start_page,
                    end_page=config.end_page,
                )

                for i, chunk in enumerate(chunks):
                    if job.stop_requested:
                        job.notify("info", "Extraction stopped by user")
                        stopped = True
                        break

                    job.set_step(
                        "extracting",
                        f"Processing pages {chunk.start_page}-{chunk.end_page}...",
                        current_chunk=i + 1,
                        total_chunks=len(chunks),
                    )
                    try:
                        result = extractor.extract(
                            chunk, file_name=job.file_name, on_stage=job.set_step
                        )
                        tokens.add(result.tokens)
                        saved = self.persister.persist_chunk(
                            chunk,
                            result.questions,
                            job=job,
                            file_name=job.file_name,
                            on_saved=on_questions_saved,
                        )
                    except Exception as e:
                        logger.exception("Chunk %d of %s failed", i + 1, job.file_name)
                        job.notify("error", f"Chunk {i + 1} failed: {e}")
                        continue

                    total_questions += saved
                    job.progress.questions_extracted = total_questions
        except Exception as e:
            logger.exception("Extraction of %s failed", job.file_name)
            job.finish("error", str(e))
            job.notify("error", f"Extraction failed: {e}")
            return total_questions

        if stopped:
            job.finish("stopped", f"Stopped after {total_questions} questions")
        else:
            job.finish("complete", f"Extracted {total_questions} questions!")
            job.notify(
                "success",
                f"Extracted {total_questions} questions! Tokens: {tokens.total:,}",
            )
        logger.info(
            "Extraction of %s finished (%s): %d questions, %d tokens",
            job.file_name,
            job.progress.step,
            total_questions,
            tokens.total,
        )
        return total_questions


def run_extraction_background(
    *, job_id: str, document: bytes, config: ExtractionConfig
) -> None:
    """BackgroundTasks entrypoint (creates its own SQL session)."""

    job = job_registry.get(job_id)
    if job is None:
        logger.warning("Extraction job %s vanished before it started", job_id)
        return

    db = SessionLocal()
    try:
        QuestionExtractionPipeline(db=db).run(job, document, config=config)
    finally:
        db.close()


class QuestionService:
    def __init__(self, repo: QuestionRepository) -> None:
        self.repo = repo

    def list_questions(
        self, *, limit: int, offset: int, verified: bool | None
    ) -> list[Question]:
        return list(self.repo.list(limit=limit, offset=offset, verified=verified))


def get_question_service(db: Session = Depends(get_db)) -> QuestionService:
    return QuestionService(QuestionRepository(db))
