"""
History record API routes.

Provides endpoints for reviewing execution history and replaying a past
execution. History records are created by the executor.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ERROR_RESPONSES, ResourceNotFoundError
from ..models.history import History
from ..schemas.history import HistoryResponse, HistoryListResponse
from ..schemas.request import RequestDescriptor


router = APIRouter(prefix="/api/history", tags=["history"], responses=ERROR_RESPONSES)


def _get_or_404(db: Session, history_id: int) -> History:
    db_history = db.query(History).filter(History.id == history_id).first()
    if db_history is None:
        raise ResourceNotFoundError("History record", history_id)
    return db_history


@router.get("", response_model=HistoryListResponse)
def list_history(
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db)
):
    """
    Get history records ordered by execution time (newest first).

    Args:
        skip: Number of records to skip (for pagination)
        limit: Maximum number of records to return
        db: Database session

    Returns:
        HistoryListResponse with items and total count
    """
    total = db.query(History).count()
    items = (
        db.query(History)
        .order_by(History.executed_at.desc(), History.id.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return HistoryListResponse(items=items, total=total)


@router.get("/{history_id}", response_model=HistoryResponse)
def get_history(history_id: int, db: Session = Depends(get_db)):
    """
    Get a single history record by ID.

    Raises:
        ResourceNotFoundError: 404 if history record not found
    """
    return _get_or_404(db, history_id)


@router.get("/{history_id}/replay", response_model=RequestDescriptor)
def replay_history(history_id: int, db: Session = Depends(get_db)):
    """
    Rebuild the request descriptor of a past execution.

    The returned descriptor can be posted to ``/api/execute`` as-is.

    Raises:
        ResourceNotFoundError: 404 if history record not found
    """
    db_history = _get_or_404(db, history_id)
    return RequestDescriptor.model_validate(db_history.request_data)
