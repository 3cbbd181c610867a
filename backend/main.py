import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

# Import models to ensure they are registered with Base.metadata
import app.modules.ai_usage.models  # noqa
import app.modules.question_extraction.models  # noqa
from app.core.api_schemas import HealthCheckItem, HealthResponse, RootResponse
from app.core.database import Base, engine
from app.core.settings import settings
from app.modules.ai_usage import routes as ai_usage_routes
from app.modules.question_extraction import routes as question_extraction_routes
from app.providers.storage import image_storage

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    Base.metadata.create_all(bind=engine)
    if not settings.gemini_api_key:
        logger.warning("Gemini API key not configured; extraction jobs will fail")
    yield


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    lifespan=lifespan,
)

# Trust proxy headers (X-Forwarded-Proto, X-Forwarded-For) from the hosting platform.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

origins = [
    o.strip() for o in (settings.cors_allow_origins or "").split(",") if o.strip()
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(question_extraction_routes.router)
app.include_router(ai_usage_routes.router)


@app.get("/", response_model=RootResponse)
def read_root() -> RootResponse:
    return RootResponse(message="Welcome to Question Bank")


@app.get("/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    checks: list[HealthCheckItem] = []

    # SQL
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        checks.append(HealthCheckItem(name="sql", status="ok"))
    except Exception as e:
        checks.append(HealthCheckItem(name="sql", status="error", detail=str(e)))

    # Gemini credentials (no network call)
    if settings.gemini_api_key:
        checks.append(HealthCheckItem(name="gemini", status="ok"))
    else:
        checks.append(
            HealthCheckItem(
                name="gemini",
                status="error",
                detail="Gemini API key not configured",
            )
        )

    # Azure Blob Storage
    if not image_storage.is_configured:
        checks.append(
            HealthCheckItem(
                name="azure_blob",
                status="skipped",
                detail="Azure Storage is not configured",
            )
        )
    else:
        try:
            # HEAD request; validates auth. The container may not exist until first use.
            image_storage.container_client.exists()
            checks.append(HealthCheckItem(name="azure_blob", status="ok"))
        except Exception as e:
            checks.append(
                HealthCheckItem(name="azure_blob", status="error", detail=str(e))
            )

    any_error = any(c.status == "error" for c in checks)
    any_skipped = any(c.status == "skipped" for c in checks)
    overall_status = (
        "unhealthy" if any_error else ("degraded" if any_skipped else "healthy")
    )

    return HealthResponse(status=overall_status, checks=checks)


# Alias for common PaaS health probes.
@app.get("/healthz", response_model=HealthResponse, include_in_schema=False)
def healthz() -> HealthResponse:
    return health_check()
