"""
Pydantic schemas for request execution history.
"""

from datetime import datetime, timezone
from functools import partial
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


utc_now = partial(datetime.now, timezone.utc)

class HistoryRecord(BaseModel):
    """One execution attempt, as handed to the history sink."""
    request_id: int | None = None
    method: str
    url: str
    request_data: dict[str, Any]
    response_data: dict[str, Any]
    elapsed_ms: int
    status_code: int | None = None
    executed_at: datetime = Field(default_factory=utc_now)


class HistoryResponse(BaseModel):
    """Schema for history record response with all fields."""
    id: int
    request_id: int | None
    method: str
    url: str
    request_data: dict[str, Any]
    response_data: dict[str, Any]
    elapsed_ms: int
    status_code: int | None
    executed_at: datetime

    model_config = ConfigDict(from_attributes=True)


class HistoryListResponse(BaseModel):
    """Schema for paginated history list response."""
    items: list[HistoryResponse]
    total: int
