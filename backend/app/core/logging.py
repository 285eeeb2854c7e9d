"""
日志配置

控制台 + 按天滚动的文件日志；行情计算相关日志（bind(market=True)）额外写入 market.log
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from app.core.config import settings

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logging(log_dir: Optional[Path] = None, enable_files: bool = True) -> None:
    """设置日志配置"""
    logger.remove()

    logger.add(
        sys.stdout,
        level=settings.LOG_LEVEL,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
               "<level>{message}</level>",
        colorize=True,
    )

    if not enable_files:
        return

    log_path = Path(log_dir) if log_dir else Path(settings.DATA_ROOT_PATH) / "logs"
    log_path.mkdir(parents=True, exist_ok=True)

    logger.add(
        log_path / "app.log",
        level="INFO",
        format=FILE_FORMAT,
        rotation="1 day",
        retention="30 days",
        compression="zip",
    )

    logger.add(
        log_path / "error.log",
        level="ERROR",
        format=FILE_FORMAT,
        rotation="1 day",
        retention="30 days",
        compression="zip",
    )

    # 定时计算任务日志
    logger.add(
        log_path / "market.log",
        level="INFO",
        format=FILE_FORMAT,
        rotation="1 week",
        retention="90 days",
        compression="zip",
        filter=lambda record: record["extra"].get("market", False),
    )


market_logger = logger.bind(market=True)
