from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import AiUsageLog


class AiUsageRepository:
    _db: Session

    def __init__(self, db: Session) -> None:
        self._db = db

    def create(
        self,
        *,
        model: str,
        input_tokens: int,
        output_tokens: int,
        cost: float,
        operation_type: str,
        details: dict[str, Any] | None,
    ) -> AiUsageLog:
        log = AiUsageLog(
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            operation_type=operation_type,
            details=details,
        )
        self._db.add(log)
        self._db.commit()
        self._db.refresh(log)
        return log

    def rollback(self) -> None:
        self._db.rollback()

    def totals(self, *, since: datetime | None = None) -> tuple[float, int, int]:
        """Return (cost, input_tokens, output_tokens) summed over matching rows."""
        stmt = select(
            func.coalesce(func.sum(AiUsageLog.cost), 0.0),
            func.coalesce(func.sum(AiUsageLog.input_tokens), 0),
            func.coalesce(func.sum(AiUsageLog.output_tokens), 0),
        )
        if since is not None:
            stmt = stmt.where(AiUsageLog.created_at >= since)
        cost, input_tokens, output_tokens = self._db.execute(stmt).one()
        return float(cost), int(input_tokens), int(output_tokens)

    def list_recent(self, *, limit: int, offset: int) -> Sequence[AiUsageLog]:
        return self._db.scalars(
            select(AiUsageLog)
            .order_by(AiUsageLog.created_at.desc(), AiUsageLog.id.desc())
            .offset(offset)
            .limit(limit)
        ).all()
