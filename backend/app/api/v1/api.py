"""
API v1 路由聚合器

将所有API路由聚合到一个路由器中
"""

from fastapi import APIRouter

from app.api.v1 import auth, health, leaderboard, predictions, stocks

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(predictions.router)
api_router.include_router(leaderboard.router)
api_router.include_router(stocks.router)
api_router.include_router(health.router)
