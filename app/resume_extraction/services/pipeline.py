"""
Resume extraction pipeline.

One pipeline for every kind of PDF: the text layer and the image branch
(embedded images, falling back to remote rasterization) are read
concurrently, the recovered signal picks the extraction mode, the model
answer is normalized and the outcome is committed to the job ledger.
"""

import asyncio
import contextlib
import logging
import uuid
from dataclasses import dataclass, field

from ..config import get_settings
from ..models import ResumeData
from ..models_db import Job
from .ai import AIService, get_ai_service
from .ai.extraction import MAX_PROMPT_IMAGES, invoke_extraction
from .ai.mode import ModeDecision, select_mode
from .exceptions import MissingCapability, Unprocessable
from .job_ledger import JobLedger
from .normalizer import ensure_not_empty, normalize
from .pdf_service import DocumentBuffer, PDFService, RasterImage, get_pdf_service
from .rasterization_service import RasterizationService, get_rasterization_service

logger = logging.getLogger(__name__)


@dataclass
class ExtractionSignal:
    """Everything recovered from a document before inference."""

    text: str = ""
    images: list[RasterImage] = field(default_factory=list)
    max_images: int = MAX_PROMPT_IMAGES

    def __post_init__(self) -> None:
        self.images = sorted(self.images, key=lambda image: image.page_index)[
            : self.max_images
        ]


@dataclass(frozen=True)
class ExtractionOutcome:
    result: ResumeData
    decision: ModeDecision
    model: str
    text_length: int
    image_count: int


class ExtractionPipeline:
    """
    Orchestrates a single document through extraction.

    Capabilities (PDF parsing, rasterization, inference) are injected so the
    same pipeline runs against fakes in tests.
    """

    def __init__(
        self,
        pdf_service: PDFService,
        rasterization_service: RasterizationService,
        ai_service: AIService,
        *,
        min_text_chars: int = 50,
        abundant_text_chars: int = 100,
        max_prompt_text_chars: int = 50_000,
        max_images: int = MAX_PROMPT_IMAGES,
    ):
        self.pdf_service = pdf_service
        self.rasterization_service = rasterization_service
        self.ai_service = ai_service
        self.min_text_chars = min_text_chars
        self.abundant_text_chars = abundant_text_chars
        self.max_prompt_text_chars = max_prompt_text_chars
        self.max_images = max_images

    # -------------------------------------------------------------------------
    # Content acquisition
    # -------------------------------------------------------------------------

    async def gather_signal(self, document: DocumentBuffer) -> ExtractionSignal:
        """
        Read text and images concurrently and apply the fallback policy.

        A text-branch failure (Timeout, MalformedDocument) always propagates.
        Image-branch failures are absorbed when there is enough text. Without
        enough text, MissingCapability is raised as-is and any other image
        failure is raised as Unprocessable.
        """
        text_abundant = asyncio.Event()

        async def text_branch() -> str:
            text = await self.pdf_service.extract_text(document)
            if len(text) >= self.abundant_text_chars:
                text_abundant.set()
            return text

        async def image_branch() -> list[RasterImage]:
            images = await self.pdf_service.extract_embedded_images(document)
            if images:
                return images
            return await self._rasterize_unless_text_abundant(document, text_abundant)

        text_result, image_result = await asyncio.gather(
            text_branch(), image_branch(), return_exceptions=True
        )
        for outcome in (text_result, image_result):
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                raise outcome

        text_error = text_result if isinstance(text_result, Exception) else None
        image_error = image_result if isinstance(image_result, Exception) else None
        text = "" if text_error else text_result
        images = [] if image_error else image_result

        # The text layer is mandatory: its failure aborts regardless of images
        if text_error:
            logger.error("Text extraction failed for %s: %s", document.file_name, text_error)
            raise text_error

        if image_error:
            if len(text) >= self.min_text_chars:
                logger.warning(
                    "Image extraction failed for %s, continuing with text: %s",
                    document.file_name,
                    image_error,
                )
            elif isinstance(image_error, MissingCapability):
                raise image_error
            else:
                raise Unprocessable(
                    f"Image extraction failed with insufficient text: {image_error}"
                ) from image_error

        signal = ExtractionSignal(text=text, images=images, max_images=self.max_images)
        logger.info(
            "Signal for %s: %d text chars, %d image(s)",
            document.file_name,
            len(signal.text),
            len(signal.images),
        )
        return signal

    async def _rasterize_unless_text_abundant(
        self, document: DocumentBuffer, text_abundant: asyncio.Event
    ) -> list[RasterImage]:
        if text_abundant.is_set():
            logger.info("Text is abundant, skipping rasterization of %s", document.file_name)
            return []

        raster = asyncio.ensure_future(self.rasterization_service.rasterize(document))
        abundant = asyncio.ensure_future(text_abundant.wait())
        done, _ = await asyncio.wait(
            {raster, abundant}, return_when=asyncio.FIRST_COMPLETED
        )
        if raster in done:
            abundant.cancel()
            return raster.result()

        logger.info("Text became abundant, cancelling rasterization of %s", document.file_name)
        raster.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await raster
        return []

    # -------------------------------------------------------------------------
    # Extraction
    # -------------------------------------------------------------------------

    async def run(self, document: DocumentBuffer) -> ExtractionOutcome:
        """Extract resume data from a document without touching the ledger."""
        signal = await self.gather_signal(document)
        decision = select_mode(
            len(signal.text),
            len(signal.images),
            min_text_chars=self.min_text_chars,
            abundant_text_chars=self.abundant_text_chars,
        )
        model = self.ai_service.model_for(decision.tier)
        logger.info(
            "Extracting %s with mode=%s tier=%s model=%s",
            document.file_name,
            decision.mode.value,
            decision.tier.value,
            model,
        )

        result = await invoke_extraction(
            self.ai_service,
            decision,
            signal.text,
            signal.images,
            model,
            max_text_chars=self.max_prompt_text_chars,
            max_images=self.max_images,
        )
        result = ensure_not_empty(
            normalize(result),
            decision.mode,
            len(signal.text),
            self.min_text_chars,
        )
        return ExtractionOutcome(
            result=result,
            decision=decision,
            model=model,
            text_length=len(signal.text),
            image_count=len(signal.images),
        )

    async def extract_resume(
        self,
        ledger: JobLedger,
        principal_id: uuid.UUID,
        document: DocumentBuffer,
    ) -> ResumeData:
        """
        Run the full pipeline for a principal.

        Credits are checked before any work. Once the job is open, every
        failure is recorded on it before the original error propagates.
        """
        ledger.ensure_credits(principal_id)
        job = ledger.open_job(principal_id, document)
        job_id = job.id

        try:
            outcome = await self.run(document)
            ledger.complete_job(job, outcome.result, outcome.decision, outcome.model)
        except Exception as e:
            logger.error("Job %s failed: %s", job_id, e)
            self._record_failure(ledger, job, e)
            raise

        return outcome.result

    @staticmethod
    def _record_failure(ledger: JobLedger, job: Job, error: Exception) -> None:
        try:
            ledger.fail_job(job, str(error) or type(error).__name__)
        except Exception:
            logger.exception("Could not record job failure")


_pipeline: ExtractionPipeline | None = None


def get_pipeline() -> ExtractionPipeline:
    """Get or create the pipeline singleton wired to the configured services."""
    global _pipeline
    if _pipeline is None:
        settings = get_settings()
        _pipeline = ExtractionPipeline(
            pdf_service=get_pdf_service(),
            rasterization_service=get_rasterization_service(),
            ai_service=get_ai_service(),
            min_text_chars=settings.text_min_chars,
            abundant_text_chars=settings.text_abundant_chars,
            max_prompt_text_chars=settings.max_prompt_text_chars,
            max_images=settings.max_pages,
        )
    return _pipeline
