"""
预测提交路由
"""

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dependencies import get_current_user, get_db_session
from app.api.v1.schemas import PredictionCreateRequest, StandardResponse
from app.core.container import get_quote_client
from app.models.user_models import User
from app.services.market import AlphaVantageClient
from app.services.prediction_service import PredictionService

router = APIRouter(prefix="/predictions", tags=["预测"])


async def get_prediction_service(
    db: AsyncSession = Depends(get_db_session),
    quote_client: AlphaVantageClient = Depends(get_quote_client),
) -> PredictionService:
    return PredictionService(db, quote_client)


@router.post("", response_model=StandardResponse, status_code=201, summary="提交预测")
async def create_prediction(
    request: PredictionCreateRequest,
    user: User = Depends(get_current_user),
    service: PredictionService = Depends(get_prediction_service),
):
    """
    提交一条价格预测

    目标时间必须是某个交易日的开盘（9:30）或收盘（16:00）时刻且在未来；
    也可以只给出 target_session，由服务端取下一个交易日的对应时刻。
    """
    prediction = await service.submit_prediction(
        user_id=user.id,
        symbol=request.symbol,
        predicted_price=request.predicted_price,
        target_time=request.target_time,
        target_session=request.target_session,
    )
    logger.info(
        f"用户 {user.id} 提交预测: {prediction.symbol} @ {prediction.predicted_price} "
        f"目标时间 {prediction.target_time.isoformat()}"
    )
    return StandardResponse(success=True, message="Prediction created", data=prediction.to_dict())


@router.get("", response_model=StandardResponse, summary="我的预测")
async def list_predictions(
    user: User = Depends(get_current_user),
    service: PredictionService = Depends(get_prediction_service),
):
    predictions = await service.list_predictions(user.id)
    return StandardResponse(
        success=True,
        message="OK",
        data=[prediction.to_dict() for prediction in predictions],
    )
