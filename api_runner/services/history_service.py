"""
History sink for request execution records.

The executor hands one ``HistoryRecord`` to a sink per execution. The
SQLAlchemy-backed sink stores it as a ``History`` row.
"""

import logging
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.history import History
from ..schemas.history import HistoryRecord

logger = logging.getLogger(__name__)


class HistorySink(Protocol):
    """Receives a record of every execution attempt."""

    def record(self, record: HistoryRecord) -> None:
        ...


def save_history(db: Session, record: HistoryRecord) -> History:
    """
    Save an execution record to the history table.

    Args:
        db: Database session
        record: The execution record

    Returns:
        The created history row
    """
    history = History(
        request_id=record.request_id,
        method=record.method,
        url=record.url,
        request_data=record.request_data,
        response_data=record.response_data,
        elapsed_ms=record.elapsed_ms,
        status_code=record.status_code,
        executed_at=record.executed_at,
    )
    db.add(history)
    db.commit()
    db.refresh(history)
    return history


class SqlHistorySink:
    """History sink writing to the database through a session."""

    def __init__(self, db: Session):
        self.db = db

    def record(self, record: HistoryRecord) -> None:
        try:
            history = save_history(self.db, record)
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.debug("Recorded history %s for %s %s", history.id, record.method, record.url)


class MemoryHistorySink:
    """History sink keeping records in a list, for callers without a database."""

    def __init__(self):
        self.records: list[HistoryRecord] = []

    def record(self, record: HistoryRecord) -> None:
        self.records.append(record)
