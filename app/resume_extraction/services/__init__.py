"""
Services package for the resume extraction application.

Contains:
- pdf_service: text layer and embedded image extraction
- rasterization_service: remote page-to-image conversion for scanned PDFs
- ai: OpenAI integration, mode selection and extraction prompts
- normalizer: post-processing of extracted resume data
- job_ledger: job lifecycle, audit trail and credit debits
- pipeline: orchestration of all of the above
"""

from .pdf_service import PDFService
from .ai import AIService

__all__ = ["PDFService", "AIService"]
