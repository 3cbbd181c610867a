from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="QUESTION_BANK_",
        extra="ignore",
    )

    app_name: str = "Question Bank Backend"
    log_level: str = Field(default="INFO", description="Root logging level")
    database_url: str = Field(
        default="sqlite:///./data/app.db",
        description="SQLAlchemy database URL",
    )
    cors_allow_origins: str | None = Field(
        default=None, description="Comma separated list of allowed CORS origins"
    )
    cors_allow_credentials: bool = True

    # Object storage for rendered question images
    azure_storage_connection_string: str | None = Field(
        default=None, description="Azure Blob Storage Connection String"
    )
    azure_container_name: str = Field(
        default="question-images", description="Public container for question images"
    )

    # Gemini (file upload + inference)
    gemini_api_key: str | None = Field(
        default=None,
        description="Gemini API key. Extraction refuses to start without it.",
    )
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com",
        description="Gemini REST API root",
    )
    gemini_model: str = Field(default="gemini-1.5-flash")
    gemini_timeout_seconds: float = Field(
        default=300.0, description="HTTP timeout for a single Gemini request"
    )
    gemini_file_poll_interval_seconds: float = Field(
        default=2.0, description="Delay between remote file state polls"
    )
    gemini_file_poll_timeout_seconds: float = Field(
        default=300.0,
        description="Give up on a remote file that is still PROCESSING after this long",
    )
    gemini_max_output_tokens: int = 16000

    # Chunking defaults
    extraction_pages_per_chunk: int = Field(default=3, ge=1)


settings = Settings()
