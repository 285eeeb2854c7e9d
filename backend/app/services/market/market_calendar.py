"""
交易日历

开盘（09:30）与收盘（16:00）两个固定时刻、下一个交易日的推算、
预测目标时间校验，以及排行榜时间窗口的起点计算。
周一至周五视为交易日，不处理交易所节假日。
"""

from datetime import date, datetime, time, timedelta, timezone
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta

from app.core.config import settings
from app.core.error_handler import ValidationError
from app.models.market_models import TimeFrame

INVALID_TARGET_MESSAGE = "Time must be either 9:30 AM or 4:00 PM EST"
PAST_TARGET_MESSAGE = "Target time must be in the future"


class MarketSession(str, Enum):
    """每日两个结算时刻"""

    OPEN = "open"
    CLOSE = "close"


class MarketCalendar:
    """交易日历"""

    def __init__(
        self,
        timezone_name: Optional[str] = None,
        open_time: Optional[time] = None,
        close_time: Optional[time] = None,
    ):
        self.tz = ZoneInfo(timezone_name or settings.MARKET_TIMEZONE)
        self.open_time = open_time or settings.market_open
        self.close_time = close_time or settings.market_close

    def to_local(self, moment: datetime) -> datetime:
        """转换为交易所本地时间；naive 时间按交易所本地时间解释"""
        if moment.tzinfo is None:
            return moment.replace(tzinfo=self.tz)
        return moment.astimezone(self.tz)

    @staticmethod
    def is_trading_day(day: date) -> bool:
        return day.weekday() < 5

    def session_time(self, session: MarketSession) -> time:
        return self.open_time if session == MarketSession.OPEN else self.close_time

    def next_trading_day(self, now: datetime) -> date:
        """
        下一个可预测的交易日

        收盘后从明天开始算，再跳过周末。
        """
        local_now = self.to_local(now)
        day = local_now.date()
        if local_now.time() >= self.close_time:
            day += timedelta(days=1)
        while not self.is_trading_day(day):
            day += timedelta(days=1)
        return day

    def target_datetime(self, day: date, session: MarketSession) -> datetime:
        """指定交易日的开盘/收盘时刻（带时区）"""
        return datetime.combine(day, self.session_time(session), tzinfo=self.tz)

    def next_session_datetime(self, session: MarketSession, now: datetime) -> datetime:
        """
        距离 now 最近的、尚未到达的开盘/收盘时刻

        例如交易日 10:00 选择开盘，得到下一个交易日的 09:30。
        """
        day = self.next_trading_day(now)
        target = self.target_datetime(day, session)
        while target <= now:
            day += timedelta(days=1)
            while not self.is_trading_day(day):
                day += timedelta(days=1)
            target = self.target_datetime(day, session)
        return target

    def session_of(self, moment: datetime) -> Optional[MarketSession]:
        """判断时间是否恰好落在某个交易日的开盘/收盘时刻"""
        local = self.to_local(moment)
        if not self.is_trading_day(local.date()):
            return None
        wall_clock = local.time().replace(tzinfo=None)
        if wall_clock == self.open_time:
            return MarketSession.OPEN
        if wall_clock == self.close_time:
            return MarketSession.CLOSE
        return None

    def validate_target_time(self, target: datetime, now: datetime) -> datetime:
        """校验预测目标时间，返回UTC时间"""
        if self.session_of(target) is None:
            raise ValidationError(INVALID_TARGET_MESSAGE)
        target_local = self.to_local(target)
        if target_local <= now:
            raise ValidationError(PAST_TARGET_MESSAGE)
        return target_local.astimezone(timezone.utc)

    def start_of_window(self, time_frame: TimeFrame, now: datetime) -> datetime:
        """排行榜时间窗口起点"""
        time_frame = TimeFrame(time_frame)
        if time_frame == TimeFrame.DAILY:
            local_now = self.to_local(now)
            return datetime.combine(local_now.date(), time.min, tzinfo=self.tz)
        if time_frame == TimeFrame.WEEKLY:
            return now - timedelta(days=7)
        if time_frame == TimeFrame.MONTHLY:
            return now - relativedelta(months=1)
        return now - relativedelta(years=1)


market_calendar = MarketCalendar()
