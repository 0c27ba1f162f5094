"""SkillLance Core Store -- SQLite 持久化实现

提供工厂函数创建共享数据库连接的 Store 实例组。
"""

from pathlib import Path

import aiosqlite

from .protocols import RequestStore
from .request_store import SqliteRequestStore, to_db_ts
from .sqlite_init import init_db, verify_wal_mode


class StoreGroup:
    """Store 实例组 -- 共享同一个数据库连接"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self.conn = conn
        self.request_store = SqliteRequestStore(conn)


async def create_store_group(db_path: str) -> StoreGroup:
    """创建 Store 实例组

    连接使用 autocommit 模式（isolation_level=None），
    每条条件 UPDATE 独立生效，共享连接上的协程之间不会互相回滚。

    Args:
        db_path: SQLite 数据库文件路径（":memory:" 用于测试）

    Returns:
        StoreGroup 实例
    """
    if db_path != ":memory:":
        # 确保数据库目录存在
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path, isolation_level=None)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(conn=conn)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "RequestStore",
    "SqliteRequestStore",
    "init_db",
    "verify_wal_mode",
    "to_db_ts",
]
