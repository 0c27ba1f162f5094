"""RequestStore SQLite 实现

HelpRequest 聚合存储为 requests 表的一行，响应内嵌为 JSON 数组。
所有写操作都是单条条件 UPDATE（compare-and-swap）：前提条件写在 WHERE 中，
rowcount == 0 表示前提不成立，由服务层决定返回哪种错误。
连接以 autocommit 模式打开，每条语句即一个原子事务。
"""

import json
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from ..models.enums import (
    URGENCY_RANK,
    RequestStatus,
    SortOption,
    UrgencyLevel,
)
from ..models.insight import (
    DailyEngagement,
    SearchFilters,
    SkillTrend,
    StatusOverview,
    UserStats,
)
from ..models.request import HelpRequest, HelpResponse


def to_db_ts(value: datetime) -> str:
    """统一的时间戳存储格式（UTC、固定微秒精度，保证字典序即时间序）"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat(timespec="microseconds")


def _from_db_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


def _like_pattern(text: str) -> str:
    """构造子串匹配模式（转义 LIKE 通配符）"""
    escaped = text.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


_URGENCY_RANK_SQL = (
    "CASE urgency_level "
    + " ".join(f"WHEN '{level.value}' THEN {rank}" for level, rank in URGENCY_RANK.items())
    + " ELSE 0 END"
)

# 每种排序都以 created_at、request_id 作为稳定次序，构成全序
_SORT_SQL: dict[SortOption, str] = {
    SortOption.NEWEST: "created_at DESC, request_id DESC",
    SortOption.OLDEST: "created_at ASC, request_id ASC",
    SortOption.URGENCY: f"{_URGENCY_RANK_SQL} DESC, created_at DESC, request_id DESC",
    SortOption.TIME: "estimated_time ASC, created_at DESC, request_id DESC",
    SortOption.RESPONSES: "response_count DESC, created_at DESC, request_id DESC",
}


def _json_list(values: list[str]) -> str:
    return json.dumps(values, ensure_ascii=False)


# 可修改的内容字段 -> 列值编码
_CONTENT_COLUMNS: dict[str, Callable[[Any], Any]] = {
    "title": str,
    "description": str,
    "skills_needed": _json_list,
    "urgency_level": lambda v: UrgencyLevel(v).value,
    "estimated_time": int,
    "is_remote": int,
    "college_hint": lambda v: v,
    "tags": _json_list,
}

_EFFECTIVE_STATUS_SQL = (
    "CASE WHEN status IN ('open', 'in_progress') AND expires_at <= ? "
    "THEN 'expired' ELSE status END"
)


class SqliteRequestStore:
    """RequestStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    # ------------------------------------------------------------------
    # 写操作
    # ------------------------------------------------------------------

    async def insert_request(self, request: HelpRequest) -> None:
        """插入新请求记录"""
        await self._conn.execute(
            """
            INSERT INTO requests (request_id, requester_anonymous_id, requester_avatar,
                                  title, description,
                                  skills_needed, urgency_level, estimated_time, is_remote,
                                  college_hint, tags, status, responses, response_count,
                                  accepted_response_id, views, created_at, expires_at,
                                  last_activity_at, created_from, client_fingerprint,
                                  user_agent)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                request.request_id,
                request.requester_anonymous_id,
                (
                    request.requester_avatar.model_dump_json()
                    if request.requester_avatar
                    else None
                ),
                request.title,
                request.description,
                json.dumps(request.skills_needed, ensure_ascii=False),
                request.urgency_level.value,
                request.estimated_time,
                int(request.is_remote),
                request.college_hint,
                json.dumps(request.tags, ensure_ascii=False),
                request.status.value,
                json.dumps(
                    [r.model_dump(mode="json") for r in request.responses],
                    ensure_ascii=False,
                ),
                len(request.responses),
                request.accepted_response_id,
                request.views,
                to_db_ts(request.created_at),
                to_db_ts(request.expires_at),
                to_db_ts(request.last_activity_at),
                request.created_from.value,
                request.client_fingerprint,
                request.user_agent,
            ),
        )
        await self._conn.commit()

    async def append_response(
        self,
        request_id: str,
        response: HelpResponse,
        now: datetime,
    ) -> bool:
        """原子追加响应

        前提：请求 open、未过期、响应者不是创建者、该响应者此前没有响应。
        response_count 由 JSON 数组长度推导，保持与 responses 一致。

        Args:
            request_id: 请求 ID
            response: 待追加的响应
            now: 当前时间

        Returns:
            True 表示追加成功，False 表示前提不成立
        """
        now_ts = to_db_ts(now)
        cursor = await self._conn.execute(
            """
            UPDATE requests
            SET responses = json_insert(responses, '$[#]', json(:response)),
                response_count = json_array_length(responses) + 1,
                last_activity_at = :now
            WHERE request_id = :request_id
              AND status = 'open'
              AND expires_at > :now
              AND requester_anonymous_id != :responder
              AND NOT EXISTS (
                  SELECT 1 FROM json_each(requests.responses) AS r
                  WHERE json_extract(r.value, '$.responder_anonymous_id') = :responder
              )
            """,
            {
                "response": response.model_dump_json(),
                "now": now_ts,
                "request_id": request_id,
                "responder": response.responder_anonymous_id,
            },
        )
        await self._conn.commit()
        return cursor.rowcount == 1

    async def accept_response(
        self,
        request_id: str,
        response_index: int,
        response_id: str,
        now: datetime,
    ) -> bool:
        """CAS 采纳响应：open -> in_progress，同时写入 accepted_response_id

        前提：status == open、accepted_response_id 为空、未过期、
        response_index 处确为 response_id 且为 pending。
        并发调用中只有一个能匹配到行。
        """
        now_ts = to_db_ts(now)
        base = f"$[{int(response_index)}]"
        cursor = await self._conn.execute(
            """
            UPDATE requests
            SET status = 'in_progress',
                accepted_response_id = :response_id,
                responses = json_set(responses,
                                     :status_path, 'accepted',
                                     :accepted_path, :now),
                last_activity_at = :now
            WHERE request_id = :request_id
              AND status = 'open'
              AND accepted_response_id IS NULL
              AND expires_at > :now
              AND json_extract(responses, :id_path) = :response_id
              AND json_extract(responses, :status_path) = 'pending'
            """,
            {
                "response_id": response_id,
                "status_path": f"{base}.status",
                "accepted_path": f"{base}.accepted_at",
                "id_path": f"{base}.response_id",
                "now": now_ts,
                "request_id": request_id,
            },
        )
        await self._conn.commit()
        return cursor.rowcount == 1

    async def complete_request(
        self,
        request_id: str,
        rating: int,
        feedback: str | None,
        now: datetime,
    ) -> bool:
        """CAS 完成请求：in_progress -> completed"""
        now_ts = to_db_ts(now)
        cursor = await self._conn.execute(
            """
            UPDATE requests
            SET status = 'completed', completed_at = ?, rating = ?, feedback = ?,
                last_activity_at = ?
            WHERE request_id = ? AND status = 'in_progress' AND expires_at > ?
            """,
            (now_ts, rating, feedback, now_ts, request_id, now_ts),
        )
        await self._conn.commit()
        return cursor.rowcount == 1

    async def cancel_request(
        self,
        request_id: str,
        expected_status: RequestStatus,
        now: datetime,
    ) -> bool:
        """CAS 取消请求：expected_status -> cancelled"""
        now_ts = to_db_ts(now)
        cursor = await self._conn.execute(
            """
            UPDATE requests
            SET status = 'cancelled', cancelled_at = ?, last_activity_at = ?
            WHERE request_id = ? AND status = ? AND expires_at > ?
            """,
            (now_ts, now_ts, request_id, expected_status.value, now_ts),
        )
        await self._conn.commit()
        return cursor.rowcount == 1

    async def update_content(
        self,
        request_id: str,
        requester_anonymous_id: str,
        changes: dict[str, Any],
        now: datetime,
    ) -> bool:
        """CAS 修改请求内容：仅 open、未过期、且记录创建者与给定 pseudonym 一致

        Args:
            request_id: 请求 ID
            requester_anonymous_id: 调用方 pseudonym（作为写入前提）
            changes: 字段名 -> 新值，只允许内容字段
            now: 当前时间

        Returns:
            True 表示修改成功，False 表示前提不成立
        """
        unknown = set(changes) - set(_CONTENT_COLUMNS)
        if unknown:
            raise ValueError(f"not editable: {sorted(unknown)}")

        assignments = [f"{name} = ?" for name in changes]
        params: list[Any] = [_CONTENT_COLUMNS[name](value) for name, value in changes.items()]
        now_ts = to_db_ts(now)
        cursor = await self._conn.execute(
            f"""
            UPDATE requests
            SET {", ".join([*assignments, "last_activity_at = ?"])}
            WHERE request_id = ?
              AND requester_anonymous_id = ?
              AND status = 'open'
              AND expires_at > ?
            """,
            [*params, now_ts, request_id, requester_anonymous_id, now_ts],
        )
        await self._conn.commit()
        return cursor.rowcount == 1

    async def increment_views(self, request_id: str, now: datetime) -> None:
        """浏览计数 +1（非关键副作用，不更新 last_activity_at）"""
        await self._conn.execute(
            "UPDATE requests SET views = views + 1 WHERE request_id = ? AND expires_at > ?",
            (request_id, to_db_ts(now)),
        )
        await self._conn.commit()

    async def purge_expired(self, now: datetime) -> int:
        """删除 expires_at 已过的记录（TTL 清理入口），返回删除条数"""
        cursor = await self._conn.execute(
            "DELETE FROM requests WHERE expires_at <= ?",
            (to_db_ts(now),),
        )
        await self._conn.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    async def get_request(self, request_id: str) -> HelpRequest | None:
        """根据 request_id 查询请求（不做过期过滤，由调用方判定）"""
        cursor = await self._conn.execute(
            "SELECT * FROM requests WHERE request_id = ?",
            (request_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_request(row)

    async def list_by_requester(self, anonymous_id: str) -> list[HelpRequest]:
        """查询某匿名用户创建的所有请求，按 created_at 倒序"""
        cursor = await self._conn.execute(
            """
            SELECT * FROM requests
            WHERE requester_anonymous_id = ?
            ORDER BY created_at DESC, request_id DESC
            """,
            (anonymous_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_request(row) for row in rows]

    async def search_open(
        self,
        filters: SearchFilters,
        sort: SortOption,
        page: int,
        limit: int,
        now: datetime,
    ) -> tuple[list[HelpRequest], int]:
        """搜索开放请求

        Returns:
            (当前页请求列表, 总命中数)
        """
        where, params = self._build_search_where(filters, now)
        where_sql = " AND ".join(where)

        cursor = await self._conn.execute(
            f"SELECT COUNT(*) FROM requests WHERE {where_sql}",
            params,
        )
        row = await cursor.fetchone()
        total = row[0] if row else 0

        cursor = await self._conn.execute(
            f"""
            SELECT * FROM requests
            WHERE {where_sql}
            ORDER BY {_SORT_SQL[sort]}
            LIMIT ? OFFSET ?
            """,
            [*params, limit, (page - 1) * limit],
        )
        rows = await cursor.fetchall()
        return [self._row_to_request(r) for r in rows], total

    async def trending_skills(
        self,
        since: datetime,
        now: datetime,
        limit: int,
    ) -> list[SkillTrend]:
        """窗口内开放请求的技能频次，按 count 降序、skill 升序"""
        cursor = await self._conn.execute(
            """
            SELECT s.value AS skill,
                   COUNT(*) AS cnt,
                   AVG(r.estimated_time) AS avg_time
            FROM requests AS r, json_each(r.skills_needed) AS s
            WHERE r.status = 'open'
              AND r.created_at >= ?
              AND r.expires_at > ?
            GROUP BY s.value
            ORDER BY cnt DESC, skill ASC
            LIMIT ?
            """,
            (to_db_ts(since), to_db_ts(now), limit),
        )
        rows = await cursor.fetchall()
        return [
            SkillTrend(skill=row[0], count=row[1], avg_estimated_time=row[2])
            for row in rows
        ]

    async def user_stats(self, anonymous_id: str) -> UserStats:
        """两个独立计数：创建的请求数、给出响应的请求数"""
        cursor = await self._conn.execute(
            "SELECT COUNT(*) FROM requests WHERE requester_anonymous_id = ?",
            (anonymous_id,),
        )
        created = (await cursor.fetchone())[0]

        cursor = await self._conn.execute(
            """
            SELECT COUNT(*) FROM requests
            WHERE EXISTS (
                SELECT 1 FROM json_each(requests.responses) AS r
                WHERE json_extract(r.value, '$.responder_anonymous_id') = ?
            )
            """,
            (anonymous_id,),
        )
        given = (await cursor.fetchone())[0]
        return UserStats(requests_created=created, responses_given=given)

    async def engagement_by_day(self, since: datetime) -> list[DailyEngagement]:
        """按 UTC 日聚合：创建数、响应总数、平均预计耗时"""
        cursor = await self._conn.execute(
            """
            SELECT substr(created_at, 1, 10) AS day,
                   COUNT(*),
                   SUM(response_count),
                   AVG(estimated_time)
            FROM requests
            WHERE created_at >= ?
            GROUP BY day
            ORDER BY day ASC
            """,
            (to_db_ts(since),),
        )
        rows = await cursor.fetchall()
        return [
            DailyEngagement(
                day=row[0],
                requests_created=row[1],
                total_responses=row[2] or 0,
                avg_estimated_time=row[3],
            )
            for row in rows
        ]

    async def status_overview(self, now: datetime) -> StatusOverview:
        """按有效状态计数（过期但未清理的活跃请求计为 expired）"""
        cursor = await self._conn.execute(
            f"""
            SELECT {_EFFECTIVE_STATUS_SQL} AS effective, COUNT(*)
            FROM requests
            GROUP BY effective
            """,
            (to_db_ts(now),),
        )
        by_status = {row[0]: row[1] for row in await cursor.fetchall()}

        cursor = await self._conn.execute(
            "SELECT COUNT(*), AVG(estimated_time), AVG(response_count) FROM requests"
        )
        total, avg_time, avg_responses = await cursor.fetchone()
        return StatusOverview(
            total_requests=total,
            by_status=by_status,
            avg_estimated_time=avg_time,
            avg_response_count=avg_responses,
        )

    # ------------------------------------------------------------------
    # 内部工具
    # ------------------------------------------------------------------

    @staticmethod
    def _build_search_where(
        filters: SearchFilters,
        now: datetime,
    ) -> tuple[list[str], list]:
        """构造搜索 WHERE 子句，始终限定 open 且未过期"""
        where = ["status = 'open'", "expires_at > ?"]
        params: list = [to_db_ts(now)]

        if filters.query:
            pattern = _like_pattern(filters.query)
            where.append(
                "("
                "LOWER(title) LIKE ? ESCAPE '\\' "
                "OR LOWER(description) LIKE ? ESCAPE '\\' "
                "OR EXISTS (SELECT 1 FROM json_each(requests.tags) AS t "
                "WHERE LOWER(t.value) LIKE ? ESCAPE '\\')"
                ")"
            )
            params.extend([pattern, pattern, pattern])

        if filters.skills:
            marks = ", ".join("?" for _ in filters.skills)
            where.append(
                "EXISTS (SELECT 1 FROM json_each(requests.skills_needed) AS s "
                f"WHERE s.value IN ({marks}))"
            )
            params.extend(filters.skills)

        if filters.urgency:
            marks = ", ".join("?" for _ in filters.urgency)
            where.append(f"urgency_level IN ({marks})")
            params.extend(u.value for u in filters.urgency)

        if filters.is_remote is not None:
            where.append("is_remote = ?")
            params.append(int(filters.is_remote))

        if filters.max_estimated_time is not None:
            where.append("estimated_time <= ?")
            params.append(filters.max_estimated_time)

        if filters.tags:
            marks = ", ".join("?" for _ in filters.tags)
            where.append(
                "EXISTS (SELECT 1 FROM json_each(requests.tags) AS t "
                f"WHERE t.value IN ({marks}))"
            )
            params.extend(t.lower() for t in filters.tags)

        if filters.college_hint:
            where.append("LOWER(college_hint) LIKE ? ESCAPE '\\'")
            params.append(_like_pattern(filters.college_hint))

        return where, params

    @staticmethod
    def _row_to_request(row: aiosqlite.Row) -> HelpRequest:
        """将数据库行转换为 HelpRequest 模型"""
        responses = [HelpResponse(**r) for r in json.loads(row["responses"])]
        return HelpRequest(
            request_id=row["request_id"],
            requester_anonymous_id=row["requester_anonymous_id"],
            requester_avatar=(
                json.loads(row["requester_avatar"]) if row["requester_avatar"] else None
            ),
            title=row["title"],
            description=row["description"],
            skills_needed=json.loads(row["skills_needed"]),
            urgency_level=row["urgency_level"],
            estimated_time=row["estimated_time"],
            is_remote=bool(row["is_remote"]),
            college_hint=row["college_hint"],
            tags=json.loads(row["tags"]),
            status=row["status"],
            responses=responses,
            response_count=row["response_count"],
            accepted_response_id=row["accepted_response_id"],
            views=row["views"],
            rating=row["rating"],
            feedback=row["feedback"],
            created_at=datetime.fromisoformat(row["created_at"]),
            expires_at=datetime.fromisoformat(row["expires_at"]),
            last_activity_at=datetime.fromisoformat(row["last_activity_at"]),
            completed_at=_from_db_ts(row["completed_at"]),
            cancelled_at=_from_db_ts(row["cancelled_at"]),
            created_from=row["created_from"],
            client_fingerprint=row["client_fingerprint"],
            user_agent=row["user_agent"],
        )

