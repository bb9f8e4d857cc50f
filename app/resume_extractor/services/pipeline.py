"""
Resume extraction pipeline.

One upload flows through: text extraction, an optional first-page render
when the text layer is too thin, the LLM call and normalization. Each step
runs only after the previous one has decided it is needed, so the steps
are strictly sequential.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import Request

from ..models import ExtractionStatus, create_empty_resume_template
from .ai import AIService, build_image_messages, build_text_messages, normalize_resume_data
from .ai.prompts import DEFAULT_MAX_PROMPT_CHARS
from .pdf_service import ImageTooLargeError, PDFConversionError, PDFService

logger = logging.getLogger(__name__)


@dataclass
class ExtractionRequest:
    """Per-upload state, discarded once the response is built."""

    file_bytes: bytes
    text: str = ""
    is_image_based: bool = False
    model: str | None = None


@dataclass
class PipelineResult:
    resume_data: dict[str, Any]
    status: ExtractionStatus
    model: str
    is_image_based: bool
    text_length: int
    warnings: list[str] = field(default_factory=list)

    @property
    def is_degenerate(self) -> bool:
        return self.status == ExtractionStatus.DEGENERATE


class ResumeExtractionPipeline:
    """
    Text-first extraction with a single OCR fallback.

    Args:
        pdf_service: Text extraction and first-page rendering.
        ai_service: LLM client and model selection.
        min_text_length: Text shorter than this sends the upload down the
            image path.
        max_prompt_chars: Budget of resume text embedded in the prompt.
    """

    def __init__(
        self,
        pdf_service: PDFService,
        ai_service: AIService,
        min_text_length: int = 50,
        max_prompt_chars: int = DEFAULT_MAX_PROMPT_CHARS,
    ):
        self.pdf_service = pdf_service
        self.ai_service = ai_service
        self.min_text_length = min_text_length
        self.max_prompt_chars = max_prompt_chars

    @classmethod
    def from_settings(
        cls, settings, pdf_service: PDFService, ai_service: AIService
    ) -> "ResumeExtractionPipeline":
        return cls(
            pdf_service=pdf_service,
            ai_service=ai_service,
            min_text_length=settings.min_text_length,
            max_prompt_chars=settings.max_prompt_chars,
        )

    def needs_ocr(self, text: str) -> bool:
        return len(text) < self.min_text_length

    async def _render_first_page(self, file_bytes: bytes) -> str:
        try:
            return await asyncio.to_thread(self.pdf_service.render_first_page, file_bytes)
        except ImageTooLargeError:
            raise
        except PDFConversionError as e:
            raise PDFConversionError(
                f"PDF appears to be image-based but could not be rendered: {e}"
            ) from e

    async def run(self, file_bytes: bytes) -> PipelineResult:
        """
        Extract normalized ResumeData from raw PDF bytes.

        Raises:
            ImageTooLargeError: The rendered page exceeds the size ceiling.
            PDFConversionError: The image path was needed but rendering failed.
            AIServiceError: The LLM call failed.
        """
        request = ExtractionRequest(file_bytes=file_bytes)
        request.text = await self.pdf_service.extract_text(file_bytes)
        template = create_empty_resume_template()

        if self.needs_ocr(request.text):
            logger.info(
                "Only %d characters of text (threshold %d), using first-page OCR",
                len(request.text),
                self.min_text_length,
            )
            request.is_image_based = True
            image_url = await self._render_first_page(file_bytes)
            messages = build_image_messages(image_url, template)
        else:
            messages = build_text_messages(request.text, template, self.max_prompt_chars)

        request.model = self.ai_service.select_model(request.is_image_based)
        outcome = await self.ai_service.extract_resume(messages, request.model)

        warnings = list(outcome.warnings)
        if len(request.text) > self.max_prompt_chars and not request.is_image_based:
            warnings.append(
                f"Resume text was truncated to {self.max_prompt_chars} characters"
            )

        return PipelineResult(
            resume_data=normalize_resume_data(outcome.data),
            status=outcome.status,
            model=outcome.model,
            is_image_based=request.is_image_based,
            text_length=len(request.text),
            warnings=warnings,
        )


def get_pipeline(request: Request) -> ResumeExtractionPipeline:
    """Return the pipeline created during application startup."""
    return request.app.state.pipeline
