"""CLI 入口模块 -- python -m skilllance.core <command>

支持的命令：
  init-db        创建数据库与表结构
  purge-expired  删除 expires_at 已过的请求（TTL 清理）
"""

import asyncio
import sys
from datetime import UTC, datetime

from .config import get_db_path

_COMMANDS = {
    "init-db": "创建数据库与表结构",
    "purge-expired": "删除 expires_at 已过的请求（TTL 清理）",
}


def _usage() -> None:
    print("用法: python -m skilllance.core <command>")
    print("命令:")
    for name, desc in _COMMANDS.items():
        print(f"  {name:<14} {desc}")


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        _usage()
        sys.exit(1)

    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "purge-expired":
        asyncio.run(purge_expired())
    else:
        print(f"未知命令: {command}")
        _usage()
        sys.exit(1)


async def init_database() -> None:
    """建表（幂等）"""
    from .store import create_store_group, verify_wal_mode

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        wal = await verify_wal_mode(store_group.conn)
        print(f"初始化完成，WAL 模式: {'已启用' if wal else '未启用'}")
    finally:
        await store_group.conn.close()


async def purge_expired() -> int:
    """执行一次 TTL 清理"""
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path)
    try:
        removed = await store_group.request_store.purge_expired(datetime.now(UTC))
        print(f"清理完成，删除 {removed} 条过期请求")
        return removed
    finally:
        await store_group.conn.close()


if __name__ == "__main__":
    main()
