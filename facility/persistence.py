"""Pass-through write helpers with uniqueness-conflict reporting."""
from typing import Any, Iterable, Optional, Tuple, Type

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import Base


def ensure_unique(
    db: Session,
    model: Type[Base],
    checks: Iterable[Tuple[str, Any, str]],
    exclude_id: Optional[int] = None,
) -> None:
    """Raise 409 naming the first violated column.

    ``checks`` holds ``(column, value, message)`` triples; ``None`` values
    are skipped so partial updates can reuse the same list.
    """

    for column, value, message in checks:
        if value is None:
            continue
        query = db.query(model).filter(getattr(model, column) == value)
        if exclude_id is not None:
            query = query.filter(model.id != exclude_id)
        if query.first() is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message)


def commit_or_conflict(db: Session, message: str = "Record conflicts with an existing one") -> None:
    """Commit, turning a constraint race into the same 409 the pre-checks produce."""

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=message) from exc


def get_or_404(db: Session, model: Type[Base], record_id: int, label: str) -> Any:
    record = db.get(model, record_id)
    if record is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return record
