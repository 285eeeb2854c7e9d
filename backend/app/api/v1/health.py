"""
健康检查路由
"""

from fastapi import APIRouter, Depends

from app.api.v1.schemas import StandardResponse
from app.core.config import settings
from app.core.container import get_market_scheduler
from app.services.market import MarketScheduler

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get(
    "", response_model=StandardResponse, summary="健康检查", description="检查API服务及行情调度状态"
)
async def health_check(scheduler: MarketScheduler = Depends(get_market_scheduler)):
    """
    健康检查端点

    返回服务版本、运行环境以及行情调度任务的下次执行时间。
    用于监控系统和负载均衡器检查服务可用性。
    """
    return StandardResponse(
        success=True,
        message="API服务运行正常",
        data={
            "status": "healthy",
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "scheduler": scheduler.status(),
        },
    )
