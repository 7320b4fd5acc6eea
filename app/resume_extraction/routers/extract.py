"""
Router for the resume extraction endpoint.

Handles:
- PDF upload validation
- Running the extraction pipeline for the calling principal
"""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, File, UploadFile

from ..models import ErrorResponse, ResumeData
from ..services.exceptions import InvalidRequest
from ..services.job_ledger import JobLedger
from ..services.pdf_service import DocumentBuffer, check_pdf_header
from ..services.pipeline import ExtractionPipeline, get_pipeline
from .deps import get_ledger, get_principal_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extract"])

_ERROR_RESPONSES = {
    code: {"model": ErrorResponse}
    for code in (400, 401, 402, 404, 422, 500, 502, 503, 504)
}


@router.post("/extract", response_model=ResumeData, responses=_ERROR_RESPONSES)
async def extract_resume(
    principal_id: Annotated[uuid.UUID, Depends(get_principal_id)],
    ledger: Annotated[JobLedger, Depends(get_ledger)],
    pipeline: Annotated[ExtractionPipeline, Depends(get_pipeline)],
    file: Annotated[UploadFile | None, File(description="Resume PDF")] = None,
) -> ResumeData:
    """
    Extract structured resume data from an uploaded PDF.

    Costs one job's worth of credits, debited only when extraction succeeds.
    The balance is checked before the upload is inspected.
    """
    ledger.ensure_credits(principal_id)

    if file is None or not file.filename:
        raise InvalidRequest("No filename provided")

    try:
        if not file.filename.lower().endswith(".pdf"):
            raise InvalidRequest("Only PDF files are accepted")
        file_bytes = await file.read()
    finally:
        await file.close()

    if not file_bytes:
        raise InvalidRequest("Empty file provided")
    check_pdf_header(file_bytes)

    document = DocumentBuffer.from_bytes(file_bytes, file.filename, file.content_type)
    logger.info(
        "Processing resume %s (%d bytes) for principal %s",
        document.file_name,
        document.size,
        principal_id,
    )
    return await pipeline.extract_resume(ledger, principal_id, document)
