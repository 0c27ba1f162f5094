"""SQLite 数据库初始化

PRAGMA 配置 + requests 表 DDL + 索引创建。
响应以 JSON 数组内嵌在 requests.responses 列中，不单独建表。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# requests 表 DDL
_REQUESTS_DDL = """
CREATE TABLE IF NOT EXISTS requests (
    request_id              TEXT PRIMARY KEY,
    requester_anonymous_id  TEXT NOT NULL,
    requester_avatar        TEXT,
    title                   TEXT NOT NULL,
    description             TEXT NOT NULL,
    skills_needed           TEXT NOT NULL DEFAULT '[]',
    urgency_level           TEXT NOT NULL DEFAULT 'medium',
    estimated_time          INTEGER NOT NULL,
    is_remote               INTEGER NOT NULL DEFAULT 1,
    college_hint            TEXT,
    tags                    TEXT NOT NULL DEFAULT '[]',
    status                  TEXT NOT NULL DEFAULT 'open',
    responses               TEXT NOT NULL DEFAULT '[]',
    response_count          INTEGER NOT NULL DEFAULT 0,
    accepted_response_id    TEXT,
    views                   INTEGER NOT NULL DEFAULT 0,
    rating                  INTEGER,
    feedback                TEXT,
    created_at              TEXT NOT NULL,
    expires_at              TEXT NOT NULL,
    last_activity_at        TEXT NOT NULL,
    completed_at            TEXT,
    cancelled_at            TEXT,
    created_from            TEXT NOT NULL DEFAULT 'web',
    client_fingerprint      TEXT,
    user_agent              TEXT,

    CHECK (response_count = json_array_length(responses))
);
"""

_REQUESTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_requests_status_created ON requests(status, created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_requests_requester ON requests(requester_anonymous_id);",
    # TTL 清理与读路径过期判定
    "CREATE INDEX IF NOT EXISTS idx_requests_expires_at ON requests(expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_requests_urgency ON requests(urgency_level, created_at DESC);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_REQUESTS_DDL)

    # 创建索引
    for idx_sql in _REQUESTS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
