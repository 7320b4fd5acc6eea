"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str | None = None
    openai_timeout_seconds: float = 60.0
    low_tier_model: str = "gpt-4o-mini"
    high_tier_model: str = "gpt-4o"
    # Canned answers for development; never implied by a missing key
    use_mock_ai: bool = False

    # Database
    database_url: str = "sqlite:///./resume_extraction.db"

    # Debug flags
    sql_debug: bool = False
    debug: bool = False

    # Billing
    credits_per_job: int = Field(default=100, ge=0)

    # PDF.co rasterization (image-based PDFs without embedded images)
    pdfco_api_key: str | None = None
    pdfco_base_url: str = "https://api.pdf.co/v1"
    rasterization_timeout_seconds: float = 30.0

    # Extraction tuning
    text_timeout_seconds: float = 30.0
    text_min_chars: int = Field(default=50, ge=0)
    text_abundant_chars: int = Field(default=100, ge=0)
    max_pages: int = Field(default=3, ge=1)
    min_image_bytes: int = 1000
    max_image_base64_chars: int = 4_000_000
    max_prompt_text_chars: int = 50_000

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    model_config = SettingsConfigDict(
        # Load from .env file in the package directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )

    @property
    def rasterization_enabled(self) -> bool:
        """Whether image-based PDFs without embedded images can be processed."""
        return bool(self.pdfco_api_key)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
