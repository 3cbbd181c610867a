from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import get_db

from .models import AiUsageLog
from .repository import AiUsageRepository
from .schemas import UsageStats

logger = logging.getLogger(__name__)

# USD per 1M tokens.
MODEL_PRICING: dict[str, dict[str, float]] = {
    "gemini-2.0-flash-lite": {"input": 0.075, "output": 0.30},
    "gemini-2.0-flash-lite-preview-02-05": {"input": 0.075, "output": 0.30},
    "gemini-2.0-flash-exp": {"input": 0.075, "output": 0.30},
    "gemini-2.5-flash": {"input": 0.075, "output": 0.30},
    "gemini-1.5-flash": {"input": 0.075, "output": 0.30},
    "gemini-1.5-flash-8b": {"input": 0.0375, "output": 0.15},
    "gemini-1.5-pro": {"input": 3.50, "output": 10.50},
    "default": {"input": 0.10, "output": 0.40},
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    pricing = MODEL_PRICING.get(model) or MODEL_PRICING["default"]
    input_cost = (input_tokens / 1_000_000) * pricing["input"]
    output_cost = (output_tokens / 1_000_000) * pricing["output"]
    return input_cost + output_cost


class AiUsageService:
    def __init__(self, repo: AiUsageRepository) -> None:
        self.repo = repo

    def log_usage(
        self,
        *,
        model: str,
        input_tokens: int,
        output_tokens: int,
        operation_type: str,
        details: dict[str, Any] | None = None,
    ) -> AiUsageLog | None:
        """Record one inference call. Failures are logged, never raised."""
        cost = calculate_cost(model, input_tokens, output_tokens)
        try:
            return self.repo.create(
                model=model,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                cost=cost,
                operation_type=operation_type,
                details=details or {},
            )
        except SQLAlchemyError:
            logger.exception("Failed to log AI usage for model %s", model)
            self.repo.rollback()
            return None

    def get_usage_stats(self, *, now: datetime | None = None) -> UsageStats:
        now = now or datetime.now(UTC)
        start_of_day = now.replace(hour=0, minute=0, second=0, microsecond=0)
        start_of_month = start_of_day.replace(day=1)

        total_cost, input_tokens, output_tokens = self.repo.totals()
        today_cost, _, _ = self.repo.totals(since=start_of_day)
        month_cost, _, _ = self.repo.totals(since=start_of_month)

        return UsageStats(
            total_cost=total_cost,
            today_cost=today_cost,
            month_cost=month_cost,
            total_tokens=input_tokens + output_tokens,
            total_input_tokens=input_tokens,
            total_output_tokens=output_tokens,
        )

    def get_usage_logs(self, *, limit: int = 50, offset: int = 0) -> list[AiUsageLog]:
        return list(self.repo.list_recent(limit=limit, offset=offset))


def get_ai_usage_service(db: Session = Depends(get_db)) -> AiUsageService:
    return AiUsageService(AiUsageRepository(db))
