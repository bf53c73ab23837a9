"""
Request execution API routes.

Provides endpoints for executing HTTP requests, both saved and ad-hoc.
Both resolve to a request descriptor and go through the same executor,
which records one history entry per execution.
"""

from typing import Union

import httpx
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database import get_db
from ..exceptions import ERROR_RESPONSES, ResourceNotFoundError, ValidationError
from ..schemas.execute import ExecuteOptions, ExecuteResponse, ExecuteErrorResponse
from ..schemas.request import RequestDescriptor
from ..services.history_service import SqlHistorySink
from ..services.http_executor import execute_request
from ..services.request_store import SqlRequestStore


router = APIRouter(prefix="/api/execute", tags=["execute"], responses=ERROR_RESPONSES)

# HTTP status returned to our caller for each kind of execution failure
ERROR_STATUS_CODES = {
    "timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "invalid_url": status.HTTP_400_BAD_REQUEST,
    "invalid_json": status.HTTP_400_BAD_REQUEST,
    "cancelled": 499,
    "unknown": status.HTTP_500_INTERNAL_SERVER_ERROR,
}

EXECUTE_RESPONSES = {
    200: {"model": ExecuteResponse, "description": "A response was received (any status)"},
    502: {"model": ExecuteErrorResponse, "description": "Network error"},
    504: {"model": ExecuteErrorResponse, "description": "Request timeout"},
}


def get_transport() -> httpx.AsyncBaseTransport | None:
    """Dependency returning the transport used for outbound requests (overridden in tests)."""
    return None


def render_result(result: ExecuteResponse | ExecuteErrorResponse):
    """Return successes as-is and failures with a status matching their error type."""
    if isinstance(result, ExecuteErrorResponse):
        return JSONResponse(
            status_code=ERROR_STATUS_CODES.get(result.error_type, status.HTTP_502_BAD_GATEWAY),
            content=result.model_dump(mode="json"),
        )
    return result


@router.post(
    "/{request_id}",
    response_model=Union[ExecuteResponse, ExecuteErrorResponse],
    responses=EXECUTE_RESPONSES,
)
async def execute_saved_request(
    request_id: int,
    options: ExecuteOptions | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_transport),
):
    """
    Execute a saved HTTP request by ID.

    The saved request is resolved to a descriptor through the request
    store and executed exactly like an ad-hoc request.

    Raises:
        ResourceNotFoundError: 404 if request not found
        ValidationError: 422 if the stored definition is no longer valid
    """
    try:
        descriptor = SqlRequestStore(db).resolve(request_id)
    except PydanticValidationError as exc:
        raise ValidationError(f"Saved request {request_id} is invalid: {exc}") from exc
    if descriptor is None:
        raise ResourceNotFoundError("Request", request_id)

    result = await execute_request(
        descriptor,
        history=SqlHistorySink(db),
        settings=settings,
        transport=transport,
        request_id=request_id,
        verify_tls=options.verify_tls if options else None,
    )
    return render_result(result)


@router.post(
    "",
    response_model=Union[ExecuteResponse, ExecuteErrorResponse],
    responses=EXECUTE_RESPONSES,
)
async def execute_adhoc_request(
    descriptor: RequestDescriptor,
    verify_tls: bool | None = None,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    transport: httpx.AsyncBaseTransport | None = Depends(get_transport),
):
    """
    Execute an unsaved HTTP request descriptor.

    A remote 4xx/5xx is a successful execution; only failures to obtain a
    response are returned with an error status.
    """
    result = await execute_request(
        descriptor,
        history=SqlHistorySink(db),
        settings=settings,
        transport=transport,
        verify_tls=verify_tls,
    )
    return render_result(result)
