"""
排行榜路由
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.dependencies import get_db_session
from app.api.v1.schemas import StandardResponse
from app.core.database import utc_now
from app.models.market_models import TimeFrame
from app.repositories.ranking_repository import RankingRepository
from app.services.market import market_calendar

router = APIRouter(prefix="/leaderboard", tags=["排行榜"])


@router.get("/{time_frame}", response_model=StandardResponse, summary="排行榜")
async def get_leaderboard(time_frame: str, db: AsyncSession = Depends(get_db_session)):
    """按平均准确率降序返回指定时间窗口的排行榜"""
    try:
        frame = TimeFrame(time_frame)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid time frame")

    since = market_calendar.start_of_window(frame, utc_now())
    rows = await RankingRepository(db).get_leaderboard(frame, since)

    entries = []
    for position, (ranking, username) in enumerate(rows, start=1):
        entry = ranking.to_dict()
        entry["rank"] = position
        entry["username"] = username
        entries.append(entry)

    return StandardResponse(success=True, message="OK", data=entries)
