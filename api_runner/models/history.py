"""
History model for storing execution records.

Every execution attempt, successful or not, creates one history entry
holding the full request descriptor, the execution result and timing.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, JSON, Integer, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base, utc_now


class History(Base):
    """
    SQLAlchemy model for request execution history.

    Attributes:
        id: Unique identifier for the history entry
        request_id: Optional reference to the saved request that was executed
        method: HTTP method used
        url: Target URL as given in the descriptor
        request_data: The full request descriptor
        response_data: The full execution result (success or classified error)
        elapsed_ms: Wall-clock execution time in milliseconds
        status_code: HTTP status received, or None when no response was obtained
        executed_at: Timestamp when the request was executed
    """
    __tablename__ = "history"

    id: Mapped[int] = mapped_column(primary_key=True)
    request_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("requests.id", ondelete="SET NULL"),
        nullable=True
    )
    method: Mapped[str] = mapped_column(String(10))
    url: Mapped[str] = mapped_column(Text)
    request_data: Mapped[dict] = mapped_column(JSON, default=dict)
    response_data: Mapped[dict] = mapped_column(JSON, default=dict)
    elapsed_ms: Mapped[int] = mapped_column(Integer)
    status_code: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    executed_at: Mapped[datetime] = mapped_column(default=utc_now)
