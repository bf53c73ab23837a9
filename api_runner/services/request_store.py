"""
Request store: saved request definitions.

Resolves a saved request ID into a request descriptor so that saved
requests run through the same executor path as ad-hoc ones.
"""

from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import DatabaseError
from ..models.request import SavedRequest
from ..schemas.request import (
    KeyValuePair,
    RequestBody,
    RequestDescriptor,
    SavedRequestCreate,
    SavedRequestResponse,
)


class RequestStore(Protocol):
    """Supplies and stores request definitions."""

    def resolve(self, request_id: int) -> RequestDescriptor | None:
        ...

    def create(self, data: SavedRequestCreate) -> int:
        ...

    def duplicate(self, request_id: int) -> int | None:
        ...


def _pairs(entries: list | None) -> list[KeyValuePair]:
    return [KeyValuePair.model_validate(entry) for entry in entries or []]


def _body(saved: SavedRequest) -> RequestBody | None:
    if saved.body_type is None and saved.body_content is None:
        return None
    return RequestBody(type=saved.body_type, content=saved.body_content)


def to_descriptor(saved: SavedRequest) -> RequestDescriptor:
    """Build a descriptor from a saved request, keeping inactive entries."""
    return RequestDescriptor(
        method=saved.method,
        url=saved.url,
        headers=_pairs(saved.headers),
        params=_pairs(saved.params),
        body=_body(saved),
    )


def to_response(saved: SavedRequest) -> SavedRequestResponse:
    return SavedRequestResponse(
        id=saved.id,
        name=saved.name,
        method=saved.method,
        url=saved.url,
        headers=_pairs(saved.headers),
        params=_pairs(saved.params),
        body=_body(saved),
        created_at=saved.created_at,
        updated_at=saved.updated_at,
    )


class SqlRequestStore:
    """Request store backed by the ``requests`` table."""

    def __init__(self, db: Session):
        self.db = db

    def _insert(self, saved: SavedRequest) -> int:
        try:
            self.db.add(saved)
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise DatabaseError("Could not save request") from exc
        self.db.refresh(saved)
        return saved.id

    def get(self, request_id: int) -> SavedRequest | None:
        return self.db.query(SavedRequest).filter(SavedRequest.id == request_id).first()

    def resolve(self, request_id: int) -> RequestDescriptor | None:
        saved = self.get(request_id)
        if saved is None:
            return None
        return to_descriptor(saved)

    def create(self, data: SavedRequestCreate) -> int:
        """Save a request definition. Header and param entries without a key are dropped."""
        saved = SavedRequest(
            name=data.name,
            method=data.method,
            url=data.url,
            headers=[h.model_dump() for h in data.headers if h.key],
            params=[p.model_dump() for p in data.params if p.key],
            body_type=data.body.type if data.body else None,
            body_content=data.body.content if data.body else None,
        )
        return self._insert(saved)

    def duplicate(self, request_id: int) -> int | None:
        """Copy a saved request, including inactive entries, as "<name> (Copy)"."""
        original = self.get(request_id)
        if original is None:
            return None
        copy = SavedRequest(
            name=f"{original.name} (Copy)",
            method=original.method,
            url=original.url,
            headers=[dict(h) for h in original.headers or []],
            params=[dict(p) for p in original.params or []],
            body_type=original.body_type,
            body_content=original.body_content,
        )
        return self._insert(copy)
