from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.core.settings import settings

ExtractionStep = Literal[
    "idle",
    "preparing",
    "uploading",
    "processing",
    "extracting",
    "saving",
    "complete",
    "stopped",
    "error",
]
NoticeLevel = Literal["info", "success", "error"]


class ExtractionConfig(BaseModel):
    pages_per_chunk: int = Field(
        default_factory=lambda: settings.extraction_pages_per_chunk, ge=1
    )
    start_page: int | None = Field(default=None, description="1-based, inclusive")
    end_page: int | None = Field(default=None, description="1-based, inclusive")


class ExtractedQuestion(BaseModel):
    """One MCQ as proposed by the model, after shape coercion."""

    question_text: str
    options: list[str] = Field(default_factory=list)
    correct_answer: str = ""
    topic: str = ""
    subtopic: str = ""
    difficulty: str = ""
    explanation: str = ""
    has_image: bool = False
    image_description: str | None = None


class TokenUsage(BaseModel):
    total: int = 0
    prompt: int = 0
    completion: int = 0

    def add(self, other: TokenUsage) -> None:
        self.total += other.total
        self.prompt += other.prompt
        self.completion += other.completion


class Notice(BaseModel):
    level: NoticeLevel
    message: str
    created_at: datetime


class ExtractionProgress(BaseModel):
    step: ExtractionStep = "idle"
    detail: str = ""
    current_chunk: int | None = None
    total_chunks: int | None = None
    tokens: TokenUsage = Field(default_factory=TokenUsage)
    questions_extracted: int = 0
    notices: list[Notice] = Field(default_factory=list)


class ExtractionJobRead(BaseModel):
    job_id: str
    file_name: str
    model: str
    is_processing: bool
    progress: ExtractionProgress


class StartExtractionResponse(BaseModel):
    message: str
    job: ExtractionJobRead


class QuestionRead(BaseModel):
    id: int
    question_text: str
    options: list[str]
    correct_answer: str
    topic: str | None
    subtopic: str | None
    difficulty: str
    explanation: str | None
    has_image: bool
    image_description: str | None
    image_url: str | None
    is_verified: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
