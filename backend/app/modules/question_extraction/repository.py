from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import Question


class QuestionRepository:
    _db: Session

    def __init__(self, db: Session) -> None:
        self._db = db

    def bulk_insert(self, rows: Sequence[dict[str, Any]]) -> list[Question]:
        """Insert all rows in one transaction."""
        questions = [Question(**row) for row in rows]
        self._db.add_all(questions)
        self._db.commit()
        return questions

    def rollback(self) -> None:
        self._db.rollback()

    def count(self) -> int:
        return int(self._db.scalar(select(func.count()).select_from(Question)) or 0)

    def list(
        self, *, limit: int, offset: int, verified: bool | None = None
    ) -> Sequence[Question]:
        stmt = select(Question)
        if verified is not None:
            stmt = stmt.where(Question.is_verified == verified)
        return self._db.scalars(
            stmt.order_by(Question.created_at.desc(), Question.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
