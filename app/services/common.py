"""Common helper functions for the service layer."""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, TypeVar

from fastapi import HTTPException

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


def new_id(prefix: str) -> str:
    """Return a short random identifier such as ``r-3f2a9c0d1b2e``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def get_or_404(db: Session, model: type[T], id: str, detail: str | None = None) -> T:
    """Get entity by ID or raise 404.

    Args:
        db: Database session
        model: SQLAlchemy model class
        id: Entity ID
        detail: Custom error message (defaults to "{ModelName} not found")

    Raises:
        HTTPException: 404 if entity not found
    """
    entity = db.get(model, str(id))
    if not entity:
        raise HTTPException(
            status_code=404,
            detail=detail or f"{model.__name__} not found"
        )
    return entity


def get_by_id(db: Session, model: type[T], value) -> T | None:
    """Get entity by ID, returning None if not found or value is None."""
    if value is None:
        return None
    return db.get(model, str(value))
