#!/usr/bin/env python3
"""
数据库管理脚本

用法:
  cd backend && python3 scripts/manage_db.py init    # 创建所有表
  cd backend && python3 scripts/manage_db.py drop    # 删除所有表
  cd backend && python3 scripts/manage_db.py seed    # 写入演示用户与预测
  cd backend && python3 scripts/manage_db.py reset   # drop + init + seed
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from loguru import logger  # noqa: E402

from app.core.database import async_engine, drop_db, init_db  # noqa: E402
from app.core.logging import setup_logging  # noqa: E402
from app.services.seed_service import seed_db  # noqa: E402


async def run(command: str) -> None:
    try:
        if command in ("drop", "reset"):
            await drop_db()
        if command in ("init", "reset", "seed"):
            await init_db()
        if command in ("seed", "reset"):
            await seed_db()
    finally:
        await async_engine.dispose()


def main() -> int:
    parser = argparse.ArgumentParser(description="数据库管理")
    parser.add_argument("command", choices=["init", "drop", "seed", "reset"], help="要执行的操作")
    parser.add_argument(
        "--yes", action="store_true", help="执行 drop/reset 时跳过确认"
    )
    args = parser.parse_args()

    setup_logging(enable_files=False)

    if args.command in ("drop", "reset") and not args.yes:
        answer = input("将删除所有数据表，确认继续? [y/N] ").strip().lower()
        if answer != "y":
            print("已取消")
            return 1

    asyncio.run(run(args.command))
    logger.info(f"数据库操作完成: {args.command}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
