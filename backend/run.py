"""
开发服务器启动脚本
"""

import uvicorn
from pathlib import Path

from app.core.config import settings

if __name__ == "__main__":
    # 启用reload时只监控app目录
    reload_dirs = None
    if settings.DEBUG:
        backend_dir = Path(__file__).parent
        reload_dirs = [str(backend_dir / "app")]

    # 定时任务运行在进程内，只能单 worker 启动，否则每个 worker 都会执行一次计算周期
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        reload_dirs=reload_dirs,
        workers=1,
        log_level=settings.LOG_LEVEL.lower(),
    )
