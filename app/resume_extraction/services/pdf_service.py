"""
PDF processing service using pdfplumber and PyMuPDF.

Handles the local half of content acquisition: the embedded text layer
(pdfplumber) and embedded raster images (PyMuPDF) of an uploaded PDF.
"""

import asyncio
import base64
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path

import pdfplumber
import pymupdf

from ..config import get_settings
from .exceptions import MalformedDocument, Timeout

logger = logging.getLogger(__name__)

PDF_MAGIC = b"%PDF"


@dataclass(frozen=True)
class DocumentBuffer:
    """An uploaded document held in memory for the duration of one request."""

    data: bytes
    file_name: str
    size: int
    media_type: str = "application/pdf"

    @classmethod
    def from_bytes(
        cls, data: bytes, file_name: str, media_type: str | None = None
    ) -> "DocumentBuffer":
        return cls(
            data=data,
            file_name=file_name,
            size=len(data),
            media_type=media_type or "application/pdf",
        )


@dataclass(frozen=True)
class RasterImage:
    """A single page image ready to be sent to the inference service."""

    data: bytes
    mime_type: str
    page_index: int

    @property
    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"


def sniff_image_mime(data: bytes) -> str:
    """Detect the image format by magic bytes, defaulting to JPEG."""
    if data[:2] == b"\x89\x50":
        return "image/png"
    return "image/jpeg"


def base64_length(num_bytes: int) -> int:
    """Length of the base64 encoding of `num_bytes` bytes."""
    return 4 * ((num_bytes + 2) // 3)


def check_pdf_header(data: bytes) -> None:
    """
    Validate that the buffer looks like a PDF.

    Raises:
        MalformedDocument: If the buffer does not start with the PDF header.
    """
    if data[:4] != PDF_MAGIC:
        raise MalformedDocument(
            "Invalid PDF file: does not start with PDF header",
            user_message="Invalid PDF file. Please upload a valid PDF document.",
        )


class PDFService:
    """
    Service for PDF processing operations.

    Text comes from pdfplumber, images and page counts from PyMuPDF. The
    parsers are blocking so every public coroutine hands them to a worker
    thread.
    """

    def __init__(
        self,
        text_timeout_seconds: float = 30.0,
        max_pages: int = 3,
        min_image_bytes: int = 1000,
        max_image_base64_chars: int = 4_000_000,
    ):
        """
        Initialize the PDF service.

        Args:
            text_timeout_seconds: Wall-clock budget for text extraction.
            max_pages: Number of leading pages scanned for images.
            min_image_bytes: Images at or below this size are ignored (icons, rules).
            max_image_base64_chars: Images whose base64 payload exceeds this are skipped.
        """
        self.text_timeout_seconds = text_timeout_seconds
        self.max_pages = max_pages
        self.min_image_bytes = min_image_bytes
        self.max_image_base64_chars = max_image_base64_chars

    async def extract_text(self, document: DocumentBuffer) -> str:
        """
        Extract the embedded text layer of a PDF.

        The parser reads from a temporary file that is removed on every exit
        path, including timeout.

        Returns:
            Trimmed text, possibly empty.

        Raises:
            Timeout: If parsing exceeds the configured budget.
            MalformedDocument: If the parser cannot read the container.
        """
        with tempfile.TemporaryDirectory(
            prefix="resume-", ignore_cleanup_errors=True
        ) as tmp_dir:
            pdf_path = Path(tmp_dir) / "upload.pdf"
            pdf_path.write_bytes(document.data)

            try:
                text = await asyncio.wait_for(
                    asyncio.to_thread(self._read_text, pdf_path),
                    timeout=self.text_timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                logger.error(
                    "Text extraction timed out after %.1fs for %s",
                    self.text_timeout_seconds,
                    document.file_name,
                )
                raise Timeout(
                    f"Text extraction exceeded {self.text_timeout_seconds}s"
                ) from e
            except Exception as e:
                logger.error("Text extraction failed for %s: %s", document.file_name, e)
                raise MalformedDocument(f"Could not parse PDF text: {e}") from e

        logger.info("Extracted %d text chars from %s", len(text), document.file_name)
        return text

    @staticmethod
    def _read_text(pdf_path: Path) -> str:
        with pdfplumber.open(pdf_path) as pdf:
            pages = [page.extract_text() or "" for page in pdf.pages]
        return "\n".join(pages).strip()

    async def extract_embedded_images(self, document: DocumentBuffer) -> list[RasterImage]:
        """
        Pull at most one suitable embedded image from each leading page.

        Returns:
            Images ordered by page index, at most `max_pages` entries.

        Raises:
            MalformedDocument: If the PDF cannot be opened or has no pages.
        """
        return await asyncio.to_thread(self._collect_images, document)

    def _collect_images(self, document: DocumentBuffer) -> list[RasterImage]:
        doc = self._open(document)
        try:
            if doc.page_count == 0:
                raise MalformedDocument("PDF has no pages")

            images: list[RasterImage] = []
            for page_index in range(min(doc.page_count, self.max_pages)):
                try:
                    image = self._first_usable_image(doc, page_index)
                except Exception as e:
                    logger.warning(
                        "Skipping page %d of %s: %s",
                        page_index + 1,
                        document.file_name,
                        e,
                    )
                    continue
                if image is not None:
                    images.append(image)
        finally:
            doc.close()

        logger.info(
            "Found %d embedded image(s) in %s", len(images), document.file_name
        )
        return images

    def _first_usable_image(
        self, doc: "pymupdf.Document", page_index: int
    ) -> RasterImage | None:
        page = doc[page_index]
        for entry in page.get_images(full=True):
            xref = entry[0]
            extracted = doc.extract_image(xref)
            if not extracted:
                continue
            data = extracted["image"]
            if len(data) <= self.min_image_bytes:
                continue
            if base64_length(len(data)) > self.max_image_base64_chars:
                logger.warning(
                    "Image xref %d on page %d too large, skipping",
                    xref,
                    page_index + 1,
                )
                continue
            return RasterImage(
                data=data,
                mime_type=sniff_image_mime(data),
                page_index=page_index,
            )
        return None

    async def get_page_count(self, document: DocumentBuffer) -> int:
        """
        Get the total number of pages in a PDF.

        Raises:
            MalformedDocument: If the PDF cannot be opened.
        """

        def _count() -> int:
            doc = self._open(document)
            try:
                return doc.page_count
            finally:
                doc.close()

        return await asyncio.to_thread(_count)

    @staticmethod
    def _open(document: DocumentBuffer) -> "pymupdf.Document":
        try:
            return pymupdf.open(stream=document.data, filetype="pdf")
        except Exception as e:
            logger.error("Could not open %s: %s", document.file_name, e)
            raise MalformedDocument(f"Invalid or corrupted PDF file: {e}") from e


# Singleton instance for convenience
_pdf_service: PDFService | None = None


def get_pdf_service() -> PDFService:
    """Get or create the PDF service singleton."""
    global _pdf_service
    if _pdf_service is None:
        settings = get_settings()
        _pdf_service = PDFService(
            text_timeout_seconds=settings.text_timeout_seconds,
            max_pages=settings.max_pages,
            min_image_bytes=settings.min_image_bytes,
            max_image_base64_chars=settings.max_image_base64_chars,
        )
    return _pdf_service
