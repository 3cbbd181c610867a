import re

from fastapi import (
    APIRouter,
    BackgroundTasks,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    status,
)

from app.core.settings import settings

from .jobs import ExtractionJob, job_registry
from .schemas import (
    ExtractionConfig,
    ExtractionJobRead,
    QuestionRead,
    StartExtractionResponse,
)
from .service import QuestionService, get_question_service, run_extraction_background

router = APIRouter(tags=["question_extraction"])

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}
# Model ids end up in the inference URL path.
MODEL_ID_PATTERN = re.compile(r"[\w.-]+")


def _is_pdf_upload(file: UploadFile) -> bool:
    name = (file.filename or "").lower().strip()
    content_type = (file.content_type or "").lower().strip()
    return name.endswith(".pdf") or content_type in PDF_CONTENT_TYPES


def _get_job_or_404(job_id: str) -> ExtractionJob:
    job = job_registry.get(job_id)
    if job is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Extraction job not found"
        )
    return job


@router.post(
    "/extractions",
    response_model=StartExtractionResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def start_extraction(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    pages_per_chunk: int | None = Form(default=None, ge=1),
    start_page: int | None = Form(default=None, ge=1),
    end_page: int | None = Form(default=None, ge=1),
    model: str | None = Form(default=None),
):
    if not _is_pdf_upload(file):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Only PDF files are supported"
        )
    if start_page is not None and end_page is not None and start_page > end_page:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_page must not be greater than end_page",
        )
    if model and not MODEL_ID_PATTERN.fullmatch(model):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid model identifier"
        )

    document = await file.read()
    if not document:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Uploaded file is empty"
        )

    config = ExtractionConfig(
        pages_per_chunk=pages_per_chunk or settings.extraction_pages_per_chunk,
        start_page=start_page,
        end_page=end_page,
    )
    job = job_registry.create(
        file_name=file.filename or "document.pdf",
        model=model or settings.gemini_model,
    )
    background_tasks.add_task(
        run_extraction_background, job_id=job.job_id, document=document, config=config
    )
    return StartExtractionResponse(message="Extraction started", job=job.to_read())


@router.get("/extractions/{job_id}", response_model=ExtractionJobRead)
def get_extraction(job_id: str):
    return _get_job_or_404(job_id).to_read()


@router.post(
    "/extractions/{job_id}/stop",
    response_model=ExtractionJobRead,
    status_code=status.HTTP_202_ACCEPTED,
)
def stop_extraction(job_id: str):
    job = _get_job_or_404(job_id)
    if not job.is_finished and not job.stop_requested:
        job.request_stop()
    return job.to_read()


@router.get("/questions", response_model=list[QuestionRead])
def list_questions(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    verified: bool | None = None,
    service: QuestionService = Depends(get_question_service),
):
    return service.list_questions(limit=limit, offset=offset, verified=verified)
