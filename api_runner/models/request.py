"""
Saved request model backing the Request Store.

A saved request holds everything needed to rebuild a request descriptor:
method, URL, ordered header and query parameter entries (with their
active flags) and an optional typed body.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, Text, JSON
from sqlalchemy.orm import Mapped, mapped_column

from ..database import Base, utc_now


class SavedRequest(Base):
    """
    SQLAlchemy model for saved HTTP request definitions.

    Attributes:
        id: Unique identifier for the request
        name: Human-readable name for the request
        method: HTTP method (GET, POST, PUT, PATCH, DELETE, HEAD, OPTIONS)
        url: Target URL
        headers: Ordered list of {key, value, is_active} entries
        params: Ordered list of {key, value, is_active} query parameter entries
        body_type: Declared body type, or None when the request has no body
        body_content: Body content
        created_at: Timestamp when the request was created
        updated_at: Timestamp when the request was last updated
    """
    __tablename__ = "requests"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    method: Mapped[str] = mapped_column(String(10))
    url: Mapped[str] = mapped_column(Text)
    headers: Mapped[list] = mapped_column(JSON, default=list)
    params: Mapped[list] = mapped_column(JSON, default=list)
    body_type: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    body_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(default=utc_now, onupdate=utc_now)
