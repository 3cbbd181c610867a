from fastapi import APIRouter, Depends, Query

from .schemas import UsageLogRead, UsageStats
from .service import AiUsageService, get_ai_usage_service

router = APIRouter(prefix="/ai-usage", tags=["ai_usage"])


@router.get("/stats", response_model=UsageStats)
def get_usage_stats(service: AiUsageService = Depends(get_ai_usage_service)):
    return service.get_usage_stats()


@router.get("/logs", response_model=list[UsageLogRead])
def list_usage_logs(
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    service: AiUsageService = Depends(get_ai_usage_service),
):
    return service.get_usage_logs(limit=limit, offset=offset)
