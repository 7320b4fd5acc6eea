"""Pytest configuration and fixtures."""

import io
import json
import os
from collections.abc import Callable, Generator

# Tests never talk to OpenAI, PDF.co or an on-disk database
os.environ["OPENAI_API_KEY"] = ""
os.environ["PDFCO_API_KEY"] = ""
os.environ["DATABASE_URL"] = "sqlite://"

import pymupdf
import pytest
from fastapi.testclient import TestClient
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.resume_extraction.database import Base, get_db
from app.resume_extraction.main import app
from app.resume_extraction.models_db import Account
from app.resume_extraction.services.ai.mode import ModelTier
from app.resume_extraction.services.exceptions import MissingCapability
from app.resume_extraction.services.job_ledger import JobLedger
from app.resume_extraction.services.pdf_service import DocumentBuffer, RasterImage
from app.resume_extraction.services.pipeline import ExtractionPipeline, get_pipeline


# =============================================================================
# Fake capabilities
# =============================================================================


class FakePDFService:
    """Stands in for PDFService with canned text and images."""

    def __init__(
        self,
        text: str = "",
        images: list[RasterImage] | None = None,
        text_error: Exception | None = None,
        image_error: Exception | None = None,
        page_count: int = 1,
    ):
        self.text = text
        self.images = images or []
        self.text_error = text_error
        self.image_error = image_error
        self.page_count = page_count

    async def extract_text(self, document: DocumentBuffer) -> str:
        if self.text_error:
            raise self.text_error
        return self.text

    async def extract_embedded_images(self, document: DocumentBuffer) -> list[RasterImage]:
        if self.image_error:
            raise self.image_error
        return list(self.images)

    async def get_page_count(self, document: DocumentBuffer) -> int:
        return self.page_count


class FakeRasterizer:
    """Stands in for RasterizationService; unconfigured by default."""

    def __init__(
        self,
        images: list[RasterImage] | None = None,
        error: Exception | None = None,
        enabled: bool = False,
    ):
        self.images = images or []
        self.error = error
        self.enabled = enabled
        self.calls = 0

    async def rasterize(self, document: DocumentBuffer) -> list[RasterImage]:
        self.calls += 1
        if not self.enabled:
            raise MissingCapability("No PDF conversion API configured")
        if self.error:
            raise self.error
        return list(self.images)


class FakeAIService:
    """Records every completion request and answers with a canned response."""

    MODELS = {ModelTier.LOW: "gpt-4o-mini", ModelTier.HIGH: "gpt-4o"}

    def __init__(self, response: str | Exception):
        self.response = response
        self.calls: list[tuple[str, list[dict]]] = []

    async def complete(self, model: str, messages: list[dict]) -> str:
        self.calls.append((model, messages))
        if isinstance(self.response, Exception):
            raise self.response
        return self.response

    def model_for(self, tier: ModelTier) -> str:
        return self.MODELS[tier]


# =============================================================================
# Sample data
# =============================================================================

SAMPLE_RESUME = {
    "profile": {
        "name": "Jane",
        "surname": "Doe",
        "email": "jane@example.com",
        "headline": "Backend Engineer",
        "professionalSummary": "Builds data pipelines.",
        "linkedIn": None,
        "website": None,
        "country": "Germany",
        "city": "Berlin",
        "relocation": None,
        "remote": True,
    },
    "workExperiences": [
        {
            "jobTitle": "Engineer",
            "company": "Old Co",
            "employmentType": "FULL_TIME",
            "startMonth": 1,
            "startYear": 2015,
            "endMonth": 12,
            "endYear": 2018,
            "current": False,
        },
        {
            "jobTitle": "Senior Engineer",
            "company": "New Co",
            "employmentType": "full-time",
            "locationType": "remote",
            "startMonth": 2,
            "startYear": 2019,
            "endMonth": 5,
            "endYear": 2024,
            "current": True,
        },
    ],
    "educations": [
        {"school": "TU Berlin", "degree": "MASTER", "major": "CS", "startYear": 2012}
    ],
    "skills": ["Python", "python", {"name": "SQL"}],
    "languages": ["German", {"language": "English", "level": "ADVANCED"}],
}

EMPTY_RESUME = {
    "profile": {"name": "", "surname": ""},
    "workExperiences": [],
    "educations": [],
    "skills": [],
}

LONG_TEXT = "Jane Doe, Backend Engineer at New Co since 2019. " * 40


@pytest.fixture
def sample_resume_json() -> str:
    """Model answer for a fully populated resume."""
    return json.dumps(SAMPLE_RESUME)


@pytest.fixture
def empty_resume_json() -> str:
    """Model answer with the resume shape but no data."""
    return json.dumps(EMPTY_RESUME)


# =============================================================================
# PDFs and images
# =============================================================================


def noise_image(fmt: str = "JPEG", size: int = 160) -> bytes:
    """Random-noise image; incompressible enough to stay well above 1000 bytes."""
    image = Image.effect_noise((size, size), 80)
    if fmt == "JPEG":
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format=fmt)
    return buffer.getvalue()


def tiny_png() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color="red").save(buffer, format="PNG")
    return buffer.getvalue()


def build_pdf(
    pages: list[str],
    images: dict[int, list[bytes]] | None = None,
) -> bytes:
    """Build a PDF with one text block per page and optional images per page index."""
    images = images or {}
    doc = pymupdf.open()
    for index, text in enumerate(pages):
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
        for offset, image in enumerate(images.get(index, [])):
            top = 300 + offset * 180
            page.insert_image(pymupdf.Rect(72, top, 232, top + 160), stream=image)
    data = doc.tobytes()
    doc.close()
    return data


def raster(page_index: int = 0, fmt: str = "PNG") -> RasterImage:
    data = noise_image(fmt, size=32)
    return RasterImage(
        data=data,
        mime_type="image/png" if fmt == "PNG" else "image/jpeg",
        page_index=page_index,
    )


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A one-page text PDF."""
    return build_pdf(["Jane Doe\nBackend Engineer\njane@example.com"])


@pytest.fixture
def invalid_file_bytes() -> bytes:
    """Create invalid (non-PDF) file bytes for testing."""
    return b"This is not a PDF file"


@pytest.fixture
def document(sample_pdf_bytes: bytes) -> DocumentBuffer:
    return DocumentBuffer.from_bytes(sample_pdf_bytes, "resume.pdf")


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def db_session() -> Generator[Session, None, None]:
    """Session on a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def make_account(db_session: Session) -> Callable[..., Account]:
    """Factory for accounts with a given balance and plan."""
    counter = {"n": 0}

    def _make(credits: int = 500, plan_type: str = "FREE") -> Account:
        counter["n"] += 1
        account = Account(
            email=f"user{counter['n']}@example.com",
            credits=credits,
            plan_type=plan_type,
        )
        db_session.add(account)
        db_session.commit()
        db_session.refresh(account)
        return account

    return _make


@pytest.fixture
def ledger(db_session: Session) -> JobLedger:
    return JobLedger(db_session, credits_per_job=100)


# =============================================================================
# Pipeline and API
# =============================================================================


@pytest.fixture
def make_pipeline() -> Callable[..., ExtractionPipeline]:
    """Factory for a pipeline wired to fake capabilities."""

    def _make(
        text: str = "",
        images: list[RasterImage] | None = None,
        response: str | Exception = "",
        rasterizer: FakeRasterizer | None = None,
        text_error: Exception | None = None,
        image_error: Exception | None = None,
    ) -> ExtractionPipeline:
        return ExtractionPipeline(
            pdf_service=FakePDFService(
                text=text,
                images=images,
                text_error=text_error,
                image_error=image_error,
            ),
            rasterization_service=rasterizer or FakeRasterizer(),
            ai_service=FakeAIService(response),
        )

    return _make


@pytest.fixture
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""

    def _get_test_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_test_db
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def use_pipeline() -> Callable[[ExtractionPipeline], None]:
    """Route POST /extract through the given pipeline."""

    def _use(pipeline: ExtractionPipeline) -> None:
        app.dependency_overrides[get_pipeline] = lambda: pipeline

    return _use


@pytest.fixture
def pdf_factory() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture
def image_factory() -> Callable[..., bytes]:
    return noise_image


@pytest.fixture
def raster_factory() -> Callable[..., RasterImage]:
    return raster


@pytest.fixture
def rasterizer_factory() -> type[FakeRasterizer]:
    return FakeRasterizer


@pytest.fixture
def fake_ai_factory() -> type[FakeAIService]:
    return FakeAIService


@pytest.fixture
def long_text() -> str:
    """Resume text well above the abundant-text threshold."""
    return LONG_TEXT


@pytest.fixture
def tiny_image() -> bytes:
    """An 8x8 PNG, far below the minimum embedded image size."""
    return tiny_png()
