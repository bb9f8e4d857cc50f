"""
AI service package for resume extraction.

This package provides:
- prompts: Message construction for text and scanned resumes
- extraction: The chat completion call and best-effort JSON parsing
- normalization: Canonical ResumeData field ordering

The AIService class owns the OpenAI client and model selection.
"""

import logging
from typing import Any

from fastapi import Request

from ...models import ExtractionStatus
from .exceptions import AIServiceError
from .extraction import ExtractionOutcome, extract_resume, parse_extraction_content
from .normalization import CANONICAL_FIELD_ORDER, COLLECTION_FIELDS, normalize_resume_data
from .prompts import build_image_messages, build_text_messages, truncate_resume_text

logger = logging.getLogger(__name__)

__all__ = [
    "AIService",
    "AIServiceError",
    "CANONICAL_FIELD_ORDER",
    "COLLECTION_FIELDS",
    "ExtractionOutcome",
    "build_image_messages",
    "build_text_messages",
    "extract_resume",
    "get_ai_service",
    "normalize_resume_data",
    "parse_extraction_content",
    "truncate_resume_text",
]


class AIService:
    """
    Service for LLM-powered resume extraction.

    Uses a lighter model for text input and a vision-capable model for
    rendered page images.
    """

    def __init__(
        self,
        api_key: str | None = None,
        text_model: str = "gpt-4o-mini",
        vision_model: str = "gpt-4o",
        use_mock: bool = False,
    ):
        """
        Initialize the AI service.

        Args:
            api_key: OpenAI API key. Without one the service runs in mock mode.
            text_model: Model used for text-based resumes.
            vision_model: Model used for image-based resumes (must support vision).
            use_mock: If True, return mock data instead of calling OpenAI.
        """
        self.api_key = api_key
        self.text_model = text_model
        self.vision_model = vision_model
        self.use_mock = use_mock or not self.api_key
        self._client = None

        if self.use_mock:
            logger.warning(
                "AI Service running in MOCK MODE. Set OPENAI_API_KEY in .env for real extraction."
            )

    @classmethod
    def from_settings(cls, settings) -> "AIService":
        return cls(
            api_key=settings.openai_api_key,
            text_model=settings.text_model,
            vision_model=settings.vision_model,
        )

    @property
    def client(self):
        """Lazy-load the OpenAI client."""
        if self._client is None:
            if not self.api_key:
                raise AIServiceError(
                    "OpenAI API key not provided. Set OPENAI_API_KEY environment variable."
                )
            try:
                from openai import OpenAI

                self._client = OpenAI(api_key=self.api_key)
            except ImportError as e:
                raise AIServiceError(
                    "openai library not installed. Run: pip install openai"
                ) from e
        return self._client

    def select_model(self, is_image_based: bool) -> str:
        """Pick the vision model for images, the text model otherwise."""
        return self.vision_model if is_image_based else self.text_model

    async def extract_resume(
        self,
        messages: list[dict[str, Any]],
        model: str,
    ) -> ExtractionOutcome:
        """
        Extract resume fields from a prepared message list.

        Delegates to the extraction module.

        Args:
            messages: Prompt messages for the completion.
            model: Model name (see ``select_model``).

        Returns:
            ExtractionOutcome, degenerate when the reply was unusable.
        """
        if self.use_mock:
            logger.info("Extracting resume (MOCK MODE) with %s", model)
            return self._get_mock_extraction(model)

        return await extract_resume(messages, client=self.client, model=model)

    def _get_mock_extraction(self, model: str) -> ExtractionOutcome:
        """Return a mock resume for development."""
        return ExtractionOutcome(
            status=ExtractionStatus.SUCCESS,
            model=model,
            data={
                "profile": {
                    "name": "Mock",
                    "surname": "Candidate",
                    "email": "mock@example.com",
                    "headline": "Software Engineer",
                },
                "workExperiences": [
                    {
                        "jobTitle": "Software Engineer",
                        "companyName": "Mock Corp",
                        "employmentType": "FULL_TIME",
                        "locationType": "REMOTE",
                        "startMonth": 1,
                        "startYear": 2020,
                        "endMonth": None,
                        "endYear": None,
                        "current": True,
                    }
                ],
                "skills": [{"name": "Python"}],
            },
            warnings=[
                "DEVELOPMENT MODE: Using mock data. Set OPENAI_API_KEY for real extraction."
            ],
        )


# =============================================================================
# Dependency
# =============================================================================


def get_ai_service(request: Request) -> AIService:
    """Return the AIService created during application startup."""
    return request.app.state.ai_service
