"""
Remote page rasterization for image-based PDFs.

Scanned resumes often carry no embedded image objects a local parser can
pull out. For those, the pages are rendered to PNG by a PDF.co-compatible
HTTP API: the document is uploaded as base64, converted, and the resulting
page images are downloaded concurrently.
"""

import asyncio
import base64
import logging
from typing import Any

import httpx

from ..config import get_settings
from .exceptions import MissingCapability, RasterizationError
from .pdf_service import (
    DocumentBuffer,
    PDFService,
    RasterImage,
    base64_length,
    get_pdf_service,
    sniff_image_mime,
)

logger = logging.getLogger(__name__)

_ERROR_BODY_LIMIT = 300


def page_range(page_count: int, max_pages: int = 3) -> str:
    """
    0-indexed inclusive page range covering the leading pages.

    >>> page_range(1)
    '0'
    >>> page_range(5)
    '0-2'
    """
    pages = max(1, min(page_count, max_pages))
    return "0" if pages == 1 else f"0-{pages - 1}"


class RasterizationService:
    """Client for the PDF.co upload + convert-to-PNG endpoints."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.pdf.co/v1",
        timeout_seconds: float = 30.0,
        max_pages: int = 3,
        max_image_base64_chars: int = 4_000_000,
        pdf_service: PDFService | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_pages = max_pages
        self.max_image_base64_chars = max_image_base64_chars
        self.pdf_service = pdf_service or get_pdf_service()
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    async def rasterize(self, document: DocumentBuffer) -> list[RasterImage]:
        """
        Render the leading pages of a document to images.

        Raises:
            MissingCapability: If no API key is configured (no network I/O happens).
            RasterizationError: If the API fails or no page image survives download.
        """
        if not self.enabled:
            raise MissingCapability(
                "No embedded images found in PDF and no PDF conversion API configured"
            )

        page_count = await self.pdf_service.get_page_count(document)
        pages = page_range(page_count, self.max_pages)
        logger.info(
            "Rasterizing %s via API (pages=%s of %d)",
            document.file_name,
            pages,
            page_count,
        )

        async with httpx.AsyncClient(
            timeout=self.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                file_url = await self._upload(client, document)
                converted = await self._convert(client, file_url, pages)

                if converted.get("urls"):
                    urls = converted["urls"][: self.max_pages]
                    downloads = await asyncio.gather(
                        *(self._download(client, url, i) for i, url in enumerate(urls))
                    )
                    images = [image for image in downloads if image is not None]
                elif converted.get("body"):
                    images = self._inline_body(converted["body"])
                else:
                    raise RasterizationError(
                        "PDF conversion API returned no image data"
                    )
            except httpx.HTTPError as e:
                logger.error("Rasterization request failed: %s", e)
                raise RasterizationError(
                    f"Failed to convert PDF to image via API: {e}"
                ) from e

        if not images:
            raise RasterizationError("Failed to convert PDF pages to images")

        logger.info("Rasterized %d page image(s) for %s", len(images), document.file_name)
        return images

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key or "", "Content-Type": "application/json"}

    async def _post(
        self, client: httpx.AsyncClient, path: str, payload: dict[str, Any], step: str
    ) -> dict[str, Any]:
        response = await client.post(
            f"{self.base_url}{path}", json=payload, headers=self._headers()
        )
        if response.status_code >= 400:
            body = response.text[:_ERROR_BODY_LIMIT]
            logger.error("PDF %s API error %d: %s", step, response.status_code, body)
            raise RasterizationError(
                f"PDF {step} API failed: {response.status_code} {body}"
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RasterizationError(f"PDF {step} API returned invalid JSON") from e
        if not isinstance(data, dict):
            raise RasterizationError(f"PDF {step} API returned unexpected payload")
        if data.get("error"):
            raise RasterizationError(
                f"PDF {step} API reported an error: {data.get('message', '')}"
            )
        return data

    async def _upload(self, client: httpx.AsyncClient, document: DocumentBuffer) -> str:
        data = await self._post(
            client,
            "/file/upload/base64",
            {
                "file": base64.b64encode(document.data).decode("ascii"),
                "fileName": document.file_name or "temp.pdf",
            },
            step="upload",
        )
        if not data.get("url"):
            raise RasterizationError("PDF upload API did not return a URL")
        return data["url"]

    async def _convert(
        self, client: httpx.AsyncClient, file_url: str, pages: str
    ) -> dict[str, Any]:
        return await self._post(
            client,
            "/pdf/convert/to/png",
            {"url": file_url, "pages": pages, "async": False},
            step="conversion",
        )

    async def _download(
        self, client: httpx.AsyncClient, url: str, page_index: int
    ) -> RasterImage | None:
        """Fetch one page image; failures drop the page instead of failing the job."""
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning("Download of page %d failed: %s", page_index + 1, e)
            return None
        if response.status_code >= 400:
            logger.warning(
                "Download of page %d returned %d", page_index + 1, response.status_code
            )
            return None

        data = response.content
        if not data:
            return None
        if base64_length(len(data)) > self.max_image_base64_chars:
            logger.warning("Page %d image too large, skipping", page_index + 1)
            return None
        return RasterImage(data=data, mime_type=sniff_image_mime(data), page_index=page_index)

    def _inline_body(self, body: str) -> list[RasterImage]:
        if len(body) > self.max_image_base64_chars:
            logger.warning("Inline page image too large, skipping")
            return []
        try:
            data = base64.b64decode(body, validate=True)
        except ValueError:
            logger.warning("Inline page image is not valid base64")
            return []
        return [RasterImage(data=data, mime_type=sniff_image_mime(data), page_index=0)]


_rasterization_service: RasterizationService | None = None


def get_rasterization_service() -> RasterizationService:
    """Get or create the rasterization service singleton."""
    global _rasterization_service
    if _rasterization_service is None:
        settings = get_settings()
        _rasterization_service = RasterizationService(
            api_key=settings.pdfco_api_key,
            base_url=settings.pdfco_base_url,
            timeout_seconds=settings.rasterization_timeout_seconds,
            max_pages=settings.max_pages,
            max_image_base64_chars=settings.max_image_base64_chars,
        )
    return _rasterization_service
