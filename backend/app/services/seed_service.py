"""
演示数据初始化
"""

from datetime import datetime
from typing import Callable, Dict

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.core.database import AsyncSessionLocal, utc_now
from app.repositories.prediction_repository import PredictionRepository
from app.repositories.user_repository import UserRepository
from app.services.auth_service import hash_password
from app.services.market.market_calendar import MarketCalendar, MarketSession, market_calendar

DEMO_PASSWORD = "password123"
DEMO_USERS = ("testuser1", "testuser2")
# 每个演示用户的预测: 股票代码 -> (testuser1 价格, testuser2 价格)
DEMO_PREDICTIONS = {
    "AAPL": (180.50, 182.25),
    "GOOGL": (142.75, 141.00),
    "MSFT": (378.25, 380.50),
    "AMZN": (175.00, 173.25),
}


async def seed_db(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    calendar: MarketCalendar = market_calendar,
    clock: Callable[[], datetime] = utc_now,
) -> Dict[str, int]:
    """创建演示用户及其下一交易日收盘的待结算预测，已存在的用户跳过"""
    now = clock()
    target_time = calendar.next_session_datetime(MarketSession.CLOSE, now)
    created = {"users": 0, "predictions": 0}

    async with session_factory() as session:
        users = UserRepository(session)
        predictions = PredictionRepository(session)

        for index, username in enumerate(DEMO_USERS):
            if await users.get_by_username(username):
                logger.info(f"演示用户已存在，跳过: {username}")
                continue
            user = await users.create_user(username, hash_password(DEMO_PASSWORD))
            created["users"] += 1

            for symbol, prices in DEMO_PREDICTIONS.items():
                await predictions.create_prediction(
                    user_id=user.id,
                    symbol=symbol,
                    predicted_price=prices[index],
                    target_time=target_time,
                    prediction_time=now,
                )
                created["predictions"] += 1

    logger.info(f"演示数据初始化完成: 用户 {created['users']} 个, 预测 {created['predictions']} 条")
    return created
