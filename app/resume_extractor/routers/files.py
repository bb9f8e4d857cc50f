"""
Router for resume file endpoints.

Handles:
- PDF upload with credit-metered extraction
- File listing, detail and deletion
- Credit balance
"""

import asyncio
import hashlib
import logging
import uuid
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import (
    CreditsResponse,
    DeleteResponse,
    FileDetailResponse,
    FileListResponse,
    FileSummary,
    UploadResponse,
)
from ..models_db import (
    FileStatus,
    HistoryAction,
    HistoryStatus,
    ResumeFile,
    ResumeHistory,
    ResumeRecord,
    User,
)
from ..services.ai import normalize_resume_data
from ..services.credits import CreditLedger, InsufficientCreditsError, get_credit_ledger
from ..services.pdf_service import PDFConversionError, PDFService, get_pdf_service
from ..services.pipeline import ResumeExtractionPipeline, get_pipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])


def _file_summary(resume_file: ResumeFile) -> FileSummary:
    return FileSummary(
        id=str(resume_file.id),
        file_name=resume_file.file_name,
        file_size=resume_file.file_size,
        status=resume_file.status.value,
        uploaded_at=resume_file.uploaded_at.isoformat(),
        is_image_based=resume_file.is_image_based,
        has_resume_data=resume_file.record is not None,
    )


def _get_user_file(db: Session, user: User, file_id: uuid.UUID) -> ResumeFile:
    resume_file = (
        db.query(ResumeFile)
        .filter(ResumeFile.id == file_id)
        .filter(ResumeFile.user_id == user.id)
        .first()
    )
    if not resume_file:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File {file_id} not found",
        )
    return resume_file


def _record_failure(db: Session, resume_file: ResumeFile, message: str) -> None:
    """Mark the file failed and append a failed history entry."""
    db.rollback()
    resume_file.status = FileStatus.FAILED
    resume_file.error_message = message
    resume_file.processed_at = datetime.now(timezone.utc)
    db.add(
        ResumeHistory(
            user_id=resume_file.user_id,
            file_id=resume_file.id,
            action=HistoryAction.EXTRACT,
            status=HistoryStatus.FAILED,
            message=message,
        )
    )
    db.commit()


@router.post("/upload", response_model=UploadResponse)
async def upload_resume(
    file: Annotated[UploadFile | None, File(description="PDF resume to extract")] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    ledger: CreditLedger = Depends(get_credit_ledger),
    pdf_service: PDFService = Depends(get_pdf_service),
    pipeline: ResumeExtractionPipeline = Depends(get_pipeline),
) -> UploadResponse:
    """
    Upload a PDF resume and extract its fields.

    Credits are checked before the file is touched; a rejected upload
    leaves no file record behind.
    """
    try:
        ledger.ensure_sufficient(user)
    except InsufficientCreditsError as e:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail=e.to_detail(),
        )

    if file is None or not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file provided",
        )

    try:
        if not file.filename.lower().endswith(".pdf"):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only PDF files are accepted",
            )

        file_bytes = await file.read()
        if not file_bytes:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Empty file provided",
            )
    finally:
        await file.close()

    logger.info("Processing resume %s (%d bytes) for user %s", file.filename, len(file_bytes), user.id)

    resume_file = ResumeFile(
        user_id=user.id,
        file_name=file.filename,
        file_size=len(file_bytes),
        file_type=file.content_type or "application/pdf",
        file_hash=hashlib.sha256(file_bytes).hexdigest(),
        status=FileStatus.PROCESSING,
    )
    db.add(resume_file)
    db.flush()
    db.add(
        ResumeHistory(
            user_id=user.id,
            file_id=resume_file.id,
            action=HistoryAction.UPLOAD,
            status=HistoryStatus.SUCCESS,
            message=f"Uploaded {file.filename}",
        )
    )
    db.commit()

    try:
        result = await pipeline.run(file_bytes)
    except PDFConversionError as e:
        logger.error("PDF processing failed for file %s: %s", resume_file.id, e)
        _record_failure(db, resume_file, str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )
    except Exception as e:
        logger.exception("Extraction failed for file %s", resume_file.id)
        _record_failure(db, resume_file, str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    try:
        page_count = await asyncio.to_thread(pdf_service.get_page_count, file_bytes)
    except PDFConversionError:
        page_count = None

    if result.is_degenerate:
        message = "Resume extracted with no usable content (degenerate model response)"
    else:
        message = "Resume data extracted successfully"

    resume_file.status = FileStatus.COMPLETED
    resume_file.is_image_based = result.is_image_based
    resume_file.page_count = page_count
    resume_file.processed_at = datetime.now(timezone.utc)
    db.add(
        ResumeRecord(
            user_id=user.id,
            file_id=resume_file.id,
            data=result.resume_data,
            model=result.model,
            extraction_status=result.status,
        )
    )
    db.add(
        ResumeHistory(
            user_id=user.id,
            file_id=resume_file.id,
            action=HistoryAction.EXTRACT,
            status=HistoryStatus.SUCCESS,
            message=message,
            credits_used=ledger.credits_per_file,
        )
    )
    ledger.consume(db, user)
    db.commit()
    db.refresh(resume_file)

    logger.info(
        "Completed file %s (image_based=%s, status=%s)",
        resume_file.id,
        result.is_image_based,
        result.status.value,
    )

    return UploadResponse(
        success=True,
        file=_file_summary(resume_file),
        resume_data=result.resume_data,
        warnings=result.warnings,
    )


@router.get("", response_model=FileListResponse)
async def list_files(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    limit: int = 50,
    offset: int = 0,
) -> FileListResponse:
    """List the user's uploaded resumes, newest first."""
    query = db.query(ResumeFile).filter(ResumeFile.user_id == user.id)
    files = (
        query.order_by(ResumeFile.uploaded_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return FileListResponse(
        files=[_file_summary(f) for f in files],
        total=query.count(),
    )


@router.get("/credits", response_model=CreditsResponse)
async def get_credits(
    user: User = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_credit_ledger),
) -> CreditsResponse:
    return CreditsResponse(
        credits=user.credits,
        plan_type=user.plan_type,
        credits_per_file=ledger.credits_per_file,
        has_subscription=user.subscription_id is not None,
    )


@router.get("/{file_id}", response_model=FileDetailResponse)
async def get_file(
    file_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> FileDetailResponse:
    """
    Get a file with its extracted resume data.

    Stored data is normalized again on read so older records come back in
    canonical order.
    """
    resume_file = _get_user_file(db, user, file_id)
    resume_data = None
    if resume_file.record is not None:
        resume_data = normalize_resume_data(resume_file.record.data)

    return FileDetailResponse(
        success=True,
        file=_file_summary(resume_file),
        resume_data=resume_data,
        error_message=resume_file.error_message,
    )


@router.delete("/{file_id}", response_model=DeleteResponse)
async def delete_file(
    file_id: uuid.UUID,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DeleteResponse:
    """Delete a file along with its resume data and history."""
    resume_file = _get_user_file(db, user, file_id)
    db.delete(resume_file)
    db.commit()
    logger.info("Deleted file %s for user %s", file_id, user.id)
    return DeleteResponse(success=True, message="File deleted successfully")
