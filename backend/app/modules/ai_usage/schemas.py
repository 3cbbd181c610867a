from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class UsageLogRead(BaseModel):
    id: int
    created_at: datetime
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    operation_type: str
    details: dict[str, Any] | None = None

    model_config = ConfigDict(from_attributes=True)


class UsageStats(BaseModel):
    total_cost: float = 0.0
    today_cost: float = 0.0
    month_cost: float = 0.0
    total_tokens: int = 0
    total_input_tokens: int = 0
    total_output_tokens: int = 0
