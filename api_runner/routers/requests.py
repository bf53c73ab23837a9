"""
Saved request API routes.

Provides create, fetch and duplicate operations on the request store.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..exceptions import ERROR_RESPONSES, ResourceNotFoundError
from ..schemas.request import SavedRequestCreate, SavedRequestResponse
from ..services.request_store import SqlRequestStore, to_response


router = APIRouter(prefix="/api/requests", tags=["requests"], responses=ERROR_RESPONSES)


@router.post("", response_model=SavedRequestResponse, status_code=status.HTTP_201_CREATED)
def create_request(request_data: SavedRequestCreate, db: Session = Depends(get_db)):
    """
    Save a new HTTP request definition.

    Args:
        request_data: Request definition
        db: Database session

    Returns:
        The saved request with assigned ID and timestamps
    """
    store = SqlRequestStore(db)
    request_id = store.create(request_data)
    return to_response(store.get(request_id))


@router.get("/{request_id}", response_model=SavedRequestResponse)
def get_request(request_id: int, db: Session = Depends(get_db)):
    """
    Get a single saved request by ID.

    Raises:
        ResourceNotFoundError: 404 if request not found
    """
    saved = SqlRequestStore(db).get(request_id)
    if saved is None:
        raise ResourceNotFoundError("Request", request_id)
    return to_response(saved)


@router.post(
    "/{request_id}/duplicate",
    response_model=SavedRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
def duplicate_request(request_id: int, db: Session = Depends(get_db)):
    """
    Duplicate a saved request, headers, params and body included.

    Raises:
        ResourceNotFoundError: 404 if request not found
    """
    store = SqlRequestStore(db)
    copy_id = store.duplicate(request_id)
    if copy_id is None:
        raise ResourceNotFoundError("Request", request_id)
    return to_response(store.get(copy_id))
