from __future__ import annotations

import logging
from collections.abc import Callable

from langchain_core.prompts import PromptTemplate
from pydantic import BaseModel, Field

from app.core.settings import settings
from app.modules.ai_usage.service import AiUsageService
from app.providers.gemini import GeminiClient

from .chunker import PdfChunk
from .parsing import parse_questions
from .prompts.extraction_prompts import MCQ_EXTRACTION_PROMPT
from .schemas import ExtractedQuestion, ExtractionStep, TokenUsage

logger = logging.getLogger(__name__)

USAGE_OPERATION_TYPE = "question_extraction"

StageCallback = Callable[[ExtractionStep, str], None]


class ChunkExtraction(BaseModel):
    questions: list[ExtractedQuestion] = Field(default_factory=list)
    tokens: TokenUsage = Field(default_factory=TokenUsage)


class QuestionLLMExtractor:
    """Uploads a chunk to Gemini and parses the MCQs it returns."""

    def __init__(
        self,
        *,
        client: GeminiClient,
        usage_service: AiUsageService | None = None,
        model: str | None = None,
        temperature: float = 0.1,
    ) -> None:
        self.client = client
        self.usage_service = usage_service
        self.model = model or settings.gemini_model
        self.temperature = temperature
        self.prompt_template = PromptTemplate.from_template(MCQ_EXTRACTION_PROMPT)

    def build_prompt(self, chunk: PdfChunk) -> str:
        return self.prompt_template.format(
            page_count=chunk.page_count,
            start_page=chunk.start_page,
            end_page=chunk.end_page,
        )

    def extract(
        self,
        chunk: PdfChunk,
        *,
        file_name: str,
        on_stage: StageCallback | None = None,
    ) -> ChunkExtraction:
        """Run one chunk through upload + inference.

        Transport failures propagate; malformed model output yields an empty list.
        """

        def stage(step: ExtractionStep, detail: str) -> None:
            if on_stage is not None:
                on_stage(step, detail)

        pages = f"pages {chunk.start_page}-{chunk.end_page}"
        stage("uploading", f"Uploading {pages}...")
        file_uri = self.client.upload_file(
            chunk.content,
            f"{file_name}_chunk_{chunk.index}",
            on_processing=lambda: stage("processing", f"Waiting for {pages} to be processed..."),
        )

        stage("extracting", f"Extracting questions from {pages}...")
        result = self.client.generate_content(
            model=self.model,
            file_uri=file_uri,
            prompt=self.build_prompt(chunk),
            temperature=self.temperature,
        )
        tokens = TokenUsage(
            total=result.usage.total_tokens,
            prompt=result.usage.prompt_tokens,
            completion=result.usage.completion_tokens,
        )

        if self.usage_service is not None:
            self.usage_service.log_usage(
                model=self.model,
                input_tokens=tokens.prompt,
                output_tokens=tokens.completion,
                operation_type=USAGE_OPERATION_TYPE,
                details={"file_name": file_name, "chunk_index": chunk.index},
            )

        questions = parse_questions(result.text)
        logger.info(
            "Chunk %d (%s): %d questions, %d tokens",
            chunk.index,
            pages,
            len(questions),
            tokens.total,
        )
        return ChunkExtraction(questions=questions, tokens=tokens)
