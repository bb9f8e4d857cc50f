"""
Router for stateless resume extraction.

No authentication, persistence or credits: the PDF goes through the
pipeline and the normalized data is returned directly.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status

from ..models import ExtractResponse
from ..services.ai import AIServiceError
from ..services.pdf_service import PDFConversionError
from ..services.pipeline import ResumeExtractionPipeline, get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["extract"])


@router.get("/extract")
async def describe_extract() -> dict:
    """Describe how to call the extraction endpoint."""
    return {
        "message": "PDF resume extraction API",
        "usage": "POST a PDF file as multipart form data with field name 'file'",
    }


@router.post("/extract", response_model=ExtractResponse)
async def extract_resume(
    file: Annotated[UploadFile | None, File(description="PDF resume to extract")] = None,
    pipeline: ResumeExtractionPipeline = Depends(get_pipeline),
) -> ExtractResponse:
    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    try:
        file_bytes = await file.read()
    finally:
        await file.close()

    if not file_bytes:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Empty file provided",
        )

    logger.info("Stateless extraction of %s (%d bytes)", file.filename, len(file_bytes))

    try:
        result = await pipeline.run(file_bytes)
    except (PDFConversionError, AIServiceError) as e:
        logger.error("Stateless extraction failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    return ExtractResponse(
        resume_data=result.resume_data,
        is_image_based=result.is_image_based,
        model=result.model,
        warnings=result.warnings,
    )
