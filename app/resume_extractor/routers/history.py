"""
Router for the upload/extraction history of the current user.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_current_user
from ..database import get_db
from ..models import HistoryEntry, HistoryResponse
from ..models_db import ResumeHistory, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="", tags=["history"])


@router.get("/history", response_model=HistoryResponse)
async def get_history(
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    limit: int = 50,
    offset: int = 0,
) -> HistoryResponse:
    """
    Get the user's history entries.

    Args:
        user: Authenticated user.
        db: Database session.
        limit: Maximum number of entries to return.
        offset: Number of entries to skip.

    Returns:
        Entries ordered newest first, with the total count.
    """
    query = db.query(ResumeHistory).filter(ResumeHistory.user_id == user.id)
    entries = (
        query.order_by(ResumeHistory.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )

    return HistoryResponse(
        entries=[
            HistoryEntry(
                id=str(entry.id),
                file_id=str(entry.file_id) if entry.file_id else None,
                action=entry.action.value,
                status=entry.status.value,
                message=entry.message,
                credits_used=entry.credits_used,
                created_at=entry.created_at.isoformat(),
            )
            for entry in entries
        ],
        total=query.count(),
    )
