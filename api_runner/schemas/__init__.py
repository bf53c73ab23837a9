"""
Pydantic schemas package.

Exports all schemas for API request/response validation.
"""

from .request import (
    HttpMethod,
    BodyType,
    KeyValuePair,
    RequestBody,
    RequestDescriptor,
    SavedRequestCreate,
    SavedRequestResponse,
)

from .history import (
    HistoryRecord,
    HistoryResponse,
    HistoryListResponse,
)

from .execute import (
    ErrorType,
    ExecuteOptions,
    ExecuteResponse,
    ExecuteErrorResponse,
    ExecutionResult,
)

__all__ = [
    # Request schemas
    "HttpMethod",
    "BodyType",
    "KeyValuePair",
    "RequestBody",
    "RequestDescriptor",
    "SavedRequestCreate",
    "SavedRequestResponse",
    # History schemas
    "HistoryRecord",
    "HistoryResponse",
    "HistoryListResponse",
    # Execute schemas
    "ErrorType",
    "ExecuteOptions",
    "ExecuteResponse",
    "ExecuteErrorResponse",
    "ExecutionResult",
]
