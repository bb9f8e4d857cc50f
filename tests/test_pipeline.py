"""Tests for the text-first extraction pipeline."""

import pytest
from conftest import FakeAIService, FakePDFService

from app.resume_extractor.models import ExtractionStatus
from app.resume_extractor.services.ai import CANONICAL_FIELD_ORDER, COLLECTION_FIELDS, AIServiceError
from app.resume_extractor.services.pdf_service import (
    ImageTooLargeError,
    PDFConversionError,
    PDFService,
)
from app.resume_extractor.services.pipeline import ResumeExtractionPipeline


def _pipeline(pdf_service, ai_service, **kwargs) -> ResumeExtractionPipeline:
    return ResumeExtractionPipeline(pdf_service=pdf_service, ai_service=ai_service, **kwargs)


class TestTextPath:
    """Tests for resumes with a usable text layer."""

    @pytest.mark.asyncio
    async def test_text_resume_uses_text_model(self):
        """Test a text resume goes to the text model without rendering."""
        pdf_service = FakePDFService()
        ai_service = FakeAIService()

        result = await _pipeline(pdf_service, ai_service).run(b"%PDF-1.4")

        assert pdf_service.render_calls == 0
        assert len(ai_service.calls) == 1
        assert ai_service.calls[0]["model"] == ai_service.text_model
        assert isinstance(ai_service.calls[0]["messages"][1]["content"], str)
        assert result.is_image_based is False
        assert result.resume_data["profile"]["name"] == "Jane Doe"
        assert isinstance(result.resume_data["workExperiences"], list)
        assert tuple(result.resume_data.keys()) == CANONICAL_FIELD_ORDER

    @pytest.mark.asyncio
    async def test_threshold_boundary(self):
        """Test text exactly at the threshold stays on the text path."""
        pdf_service = FakePDFService(text="x" * 50)
        ai_service = FakeAIService()

        result = await _pipeline(pdf_service, ai_service, min_text_length=50).run(b"%PDF")

        assert pdf_service.render_calls == 0
        assert result.is_image_based is False

    @pytest.mark.asyncio
    async def test_long_text_truncation_warning(self):
        """Test over-budget text is truncated with a warning."""
        pdf_service = FakePDFService(text="y" * 200)
        ai_service = FakeAIService()

        result = await _pipeline(pdf_service, ai_service, max_prompt_chars=100).run(b"%PDF")

        prompt = ai_service.calls[0]["messages"][1]["content"]
        assert "y" * 100 in prompt
        assert "y" * 101 not in prompt
        assert any("truncated" in w for w in result.warnings)


class TestOCRFallback:
    """Tests for the first-page image path."""

    @pytest.mark.asyncio
    async def test_short_text_renders_once(self):
        """Test text below the threshold renders exactly once and uses the vision model."""
        pdf_service = FakePDFService(text="x" * 49)
        ai_service = FakeAIService()

        result = await _pipeline(pdf_service, ai_service, min_text_length=50).run(b"%PDF")

        assert pdf_service.render_calls == 1
        assert len(ai_service.calls) == 1
        assert ai_service.calls[0]["model"] == ai_service.vision_model
        assert result.is_image_based is True

    @pytest.mark.asyncio
    async def test_scanned_resume_normalized(self):
        """Test an image-only resume still yields the nine canonical fields."""
        pdf_service = FakePDFService(text="")
        ai_service = FakeAIService(content='{"skills": [{"name": "Welding"}]}')

        result = await _pipeline(pdf_service, ai_service).run(b"%PDF")

        content = ai_service.calls[0]["messages"][1]["content"]
        assert content[1]["image_url"]["url"] == pdf_service.image_url
        assert tuple(result.resume_data.keys()) == CANONICAL_FIELD_ORDER
        assert result.resume_data["skills"] == [{"name": "Welding"}]

    @pytest.mark.asyncio
    async def test_image_too_large_skips_llm(self):
        """Test an over-ceiling image is fatal and no LLM call is made."""
        pdf_service = FakePDFService(text="", render_error=ImageTooLargeError(5_000_000, 4_000_000))
        ai_service = FakeAIService()

        with pytest.raises(ImageTooLargeError):
            await _pipeline(pdf_service, ai_service).run(b"%PDF")

        assert pdf_service.render_calls == 1
        assert ai_service.calls == []

    @pytest.mark.asyncio
    async def test_render_failure_skips_llm(self):
        """Test a render fault is wrapped and no LLM call is made."""
        pdf_service = FakePDFService(text="", render_error=PDFConversionError("poppler missing"))
        ai_service = FakeAIService()

        with pytest.raises(PDFConversionError) as exc_info:
            await _pipeline(pdf_service, ai_service).run(b"%PDF")

        assert "image-based" in str(exc_info.value)
        assert "poppler missing" in str(exc_info.value)
        assert ai_service.calls == []


class TestExtractionOutcome:
    """Tests for degenerate and failed model replies."""

    @pytest.mark.asyncio
    async def test_unparsable_reply_is_degenerate(self):
        """Test unparsable output yields an empty, fully normalized resume."""
        ai_service = FakeAIService(content="not json at all")

        result = await _pipeline(FakePDFService(), ai_service).run(b"%PDF")

        assert result.status == ExtractionStatus.DEGENERATE
        assert result.is_degenerate
        assert result.resume_data["profile"] is None
        for field in COLLECTION_FIELDS:
            assert result.resume_data[field] == []
        assert result.warnings

    @pytest.mark.asyncio
    async def test_api_error_propagates(self):
        """Test an LLM call failure is not swallowed."""
        ai_service = FakeAIService(error=AIServiceError("upstream down"))

        with pytest.raises(AIServiceError):
            await _pipeline(FakePDFService(), ai_service).run(b"%PDF")


class TestRealTextLayer:
    """Tests running the pipeline over a real PDF text layer."""

    @pytest.mark.asyncio
    async def test_text_pdf_stays_on_text_path(self, text_pdf_bytes: bytes):
        """Test a text PDF read by pypdf goes to the text model with its content."""
        ai_service = FakeAIService()

        result = await _pipeline(PDFService(), ai_service).run(text_pdf_bytes)

        assert result.is_image_based is False
        assert result.text_length >= 50
        assert ai_service.calls[0]["model"] == ai_service.text_model
        assert "Jane Doe" in ai_service.calls[0]["messages"][1]["content"]
        assert result.resume_data["profile"]["name"] == "Jane Doe"
