"""
Services package for the resume extraction application.

Contains:
- pdf_service: Text extraction and first-page rendering
- ai: OpenAI integration for resume field extraction
- pipeline: Text-first extraction with OCR fallback
- credits: Credit balance checks and updates
- billing: Stripe webhooks and sessions
"""

from .ai import AIService
from .billing import BillingService
from .credits import CreditLedger
from .pdf_service import PDFService
from .pipeline import ResumeExtractionPipeline

__all__ = [
    "AIService",
    "BillingService",
    "CreditLedger",
    "PDFService",
    "ResumeExtractionPipeline",
]
