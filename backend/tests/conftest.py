from __future__ import annotations

from collections.abc import Callable
from unittest.mock import MagicMock

import pymupdf
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.modules.question_extraction.jobs import job_registry
from app.providers.gemini import GenerateContentResult, UsageMetadata
from app.providers.storage import QuestionImageStorage
from main import app

# Setup in-memory SQLite database
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def clear_job_registry():
    job_registry.clear()
    yield
    job_registry.clear()


@pytest.fixture
def make_pdf() -> Callable[[int], bytes]:
    """Build an in-memory PDF whose page N reads "Page N"."""

    def _make(page_count: int) -> bytes:
        with pymupdf.open() as pdf:
            for number in range(1, page_count + 1):
                page = pdf.new_page()
                page.insert_text((72, 72), f"Page {number}")
            return pdf.tobytes()

    return _make


@pytest.fixture
def mock_image_storage(monkeypatch):
    mock_storage = MagicMock(spec=QuestionImageStorage)
    mock_storage.is_configured = True
    mock_storage.ensure_bucket.return_value = True
    mock_storage.upload_png.side_effect = (
        lambda content, blob_name: f"https://blob.example/question-images/{blob_name}"
    )

    # Patch the instance in the service module
    monkeypatch.setattr(
        "app.modules.question_extraction.service.image_storage", mock_storage
    )
    return mock_storage


class FakeGeminiClient:
    """Stands in for GeminiClient; replies are consumed one per generate call."""

    def __init__(
        self,
        replies: list[str | Exception] | None = None,
        *,
        default_reply: str = "[]",
        usage: UsageMetadata | None = None,
        processing: bool = False,
    ) -> None:
        self.replies = list(replies or [])
        self.default_reply = default_reply
        self.usage = usage or UsageMetadata(
            prompt_tokens=100, completion_tokens=50, total_tokens=150
        )
        self.processing = processing
        self.uploads: list[str] = []
        self.prompts: list[str] = []
        self.closed = False

    def __enter__(self) -> FakeGeminiClient:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.closed = True

    def upload_file(
        self,
        content: bytes,
        display_name: str,
        *,
        mime_type: str = "application/pdf",
        on_processing=None,
    ) -> str:
        assert content.startswith(b"%PDF")
        self.uploads.append(display_name)
        if self.processing and on_processing is not None:
            on_processing()
        return f"https://generativelanguage.example/v1beta/files/{len(self.uploads)}"

    def generate_content(
        self,
        *,
        model: str,
        file_uri: str,
        prompt: str,
        mime_type: str = "application/pdf",
        temperature: float = 0.1,
        max_output_tokens: int | None = None,
    ) -> GenerateContentResult:
        self.prompts.append(prompt)
        reply = self.replies.pop(0) if self.replies else self.default_reply
        if isinstance(reply, Exception):
            raise reply
        return GenerateContentResult(text=reply, usage=self.usage)


@pytest.fixture
def fake_gemini_factory():
    return FakeGeminiClient
