"""
定时任务调度服务
每个交易日开盘（09:30）和收盘（16:00）各执行一次行情计算周期
"""

from typing import Any, Dict, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.core.logging import market_logger as logger
from app.services.market.market_calculator import MarketCalculator
from app.services.market.market_calendar import MarketCalendar, MarketSession, market_calendar

JOB_NAMES = {
    MarketSession.OPEN: "开盘行情计算",
    MarketSession.CLOSE: "收盘行情计算",
}


class MarketScheduler:
    """行情计算调度服务"""

    def __init__(
        self,
        calculator: MarketCalculator,
        calendar: MarketCalendar = market_calendar,
        misfire_grace_seconds: Optional[int] = None,
    ):
        self.calculator = calculator
        self.calendar = calendar
        self.misfire_grace_seconds = (
            settings.SCHEDULER_MISFIRE_GRACE_SECONDS
            if misfire_grace_seconds is None
            else misfire_grace_seconds
        )
        self.scheduler = AsyncIOScheduler(timezone=calendar.tz)
        self._jobs_added = False

    @staticmethod
    def job_id(session: MarketSession) -> str:
        return f"market_cycle_{session.value}"

    def build_trigger(self, session: MarketSession) -> CronTrigger:
        at = self.calendar.session_time(session)
        return CronTrigger(
            day_of_week="mon-fri",
            hour=at.hour,
            minute=at.minute,
            timezone=self.calendar.tz,
        )

    async def run_session(self, session: MarketSession) -> None:
        """调度入口：异常只记录不抛出，避免影响后续调度"""
        try:
            await self.calculator.run_market_cycle(session)
        except Exception as e:
            logger.error(f"{JOB_NAMES[session]}执行失败: {e}")

    def _add_jobs(self) -> None:
        for session in MarketSession:
            self.scheduler.add_job(
                self.run_session,
                trigger=self.build_trigger(session),
                args=[session],
                id=self.job_id(session),
                name=JOB_NAMES[session],
                replace_existing=True,
                coalesce=True,
                max_instances=1,
                misfire_grace_time=self.misfire_grace_seconds,
            )
        self._jobs_added = True

    def start(self) -> None:
        """启动调度服务（需在事件循环中调用）"""
        if self.scheduler.running:
            logger.warning("行情调度服务已在运行")
            return
        if not self._jobs_added:
            self._add_jobs()
        self.scheduler.start()

        logger.info("行情调度服务启动成功，已添加以下定时任务:")
        for session in MarketSession:
            at = self.calendar.session_time(session)
            logger.info(f"  - 交易日 {at.strftime('%H:%M')} ({self.calendar.tz.key}): {JOB_NAMES[session]}")

    def shutdown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("行情调度服务已停止")

    def status(self) -> Dict[str, Any]:
        """运行状态及各任务下次执行时间"""
        jobs = {}
        for session in MarketSession:
            job = self.scheduler.get_job(self.job_id(session))
            next_run = getattr(job, "next_run_time", None) if job else None
            jobs[session.value] = next_run.isoformat() if next_run else None
        return {"running": bool(self.scheduler.running), "next_runs": jobs}
