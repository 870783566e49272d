"""会话与任务活跃度追踪。

两个追踪器都只返回 TrackingOutcome，不向调用方抛出异常；
由管线在调用处记录 debug 日志后丢弃失败结果，主请求不受影响。
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from vc_api.core.security import utc_now
from vc_api.models.auth import UserSession
from vc_api.models.enums import CLOSED_TASK_STATUS_SLUGS
from vc_api.models.task import Status, Task, TaskUser
from vc_api.pipeline.context import RequestContext, RequestView, normalize_path
from vc_api.services.sessions import touch_session_activity

logger = logging.getLogger(__name__)

# 规范参数名在前；id 仅为兼容旧路由保留。
TASK_ROUTE_PARAMS = ("task_id", "id")
TASK_PATH_SEGMENT = "tasks"


@dataclass(frozen=True)
class TrackingOutcome:
    """一次追踪的结果。"""

    recorded: bool
    reason: str | None = None
    error: str | None = None

    @classmethod
    def done(cls) -> "TrackingOutcome":
        return cls(recorded=True)

    @classmethod
    def skipped(cls, reason: str) -> "TrackingOutcome":
        return cls(recorded=False, reason=reason)

    @classmethod
    def failed(cls, error: Exception) -> "TrackingOutcome":
        return cls(recorded=False, reason="error", error=str(error) or type(error).__name__)

    @property
    def ok(self) -> bool:
        return self.error is None


def _rollback_quietly(db: Session) -> None:
    try:
        db.rollback()
    except Exception as exc:  # noqa: BLE001
        logger.debug("activity tracking rollback failed error=%s", exc)


def resolve_task_id(route_param: Callable[[str], str | None]) -> int | None:
    """按 TASK_ROUTE_PARAMS 顺序取第一个存在的路由参数，并解析为任务 ID。"""
    for name in TASK_ROUTE_PARAMS:
        raw = route_param(name)
        if raw is None or raw == "":
            continue
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None
    return None


def is_task_route(path: str) -> bool:
    return TASK_PATH_SEGMENT in normalize_path(path).split("/")


def is_assigned(db: Session, *, task_id: int, user_id: int) -> bool:
    stmt = select(TaskUser.task_id).where(TaskUser.task_id == task_id).where(TaskUser.user_id == user_id)
    return db.execute(stmt).first() is not None


def task_status_slug(db: Session, task_id: int) -> str | None:
    stmt = select(Status.slug).join(Task, Task.status_id == Status.id).where(Task.id == task_id)
    return db.execute(stmt).scalar_one_or_none()


def update_task_activity(db: Session, *, task_id: int, user_id: int, now: datetime | None = None) -> bool:
    """刷新参与人在任务上的最近活跃时间。

    已完成/已归档的任务不再写入；时间只单调前进。返回是否实际写入。
    """
    if task_status_slug(db, task_id) in CLOSED_TASK_STATUS_SLUGS:
        return False

    now = now or utc_now()
    stmt = (
        update(TaskUser)
        .where(TaskUser.task_id == task_id)
        .where(TaskUser.user_id == user_id)
        .where(or_(TaskUser.last_activity_at.is_(None), TaskUser.last_activity_at < now))
        .values(last_activity_at=now)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount > 0


def track_session_activity(
    db: Session,
    request: RequestView,
    ctx: RequestContext | None,
    now: datetime | None = None,
) -> TrackingOutcome:
    """会话认证的请求：刷新认证阶段确定的存活会话的最近活跃时间。

    只使用 ctx.session_id，API Key 请求即使附带 Bearer 令牌也不会刷新任何会话。
    """
    if ctx is None:
        return TrackingOutcome.skipped("unauthenticated")
    if not ctx.is_session or ctx.session_id is None:
        return TrackingOutcome.skipped("not_session")

    try:
        session = db.get(UserSession, ctx.session_id)
        if session is None or not session.is_live:
            return TrackingOutcome.skipped("no_live_session")
        if not touch_session_activity(db, session.id, now=now):
            return TrackingOutcome.skipped("not_newer")
    except Exception as exc:  # noqa: BLE001 - 追踪失败不得影响主请求
        _rollback_quietly(db)
        return TrackingOutcome.failed(exc)
    return TrackingOutcome.done()


def track_task_activity(
    db: Session,
    request: RequestView,
    ctx: RequestContext | None,
    now: datetime | None = None,
) -> TrackingOutcome:
    """任务路由处理完成后，刷新已分配参与人的任务活跃时间。"""
    if ctx is None:
        return TrackingOutcome.skipped("unauthenticated")

    try:
        task_id = resolve_task_id(request.route_param)
        if task_id is None or not is_task_route(request.path):
            return TrackingOutcome.skipped("not_task_route")
        if not is_assigned(db, task_id=task_id, user_id=ctx.user_id):
            return TrackingOutcome.skipped("not_assigned")
        if not update_task_activity(db, task_id=task_id, user_id=ctx.user_id, now=now):
            return TrackingOutcome.skipped("task_closed_or_not_newer")
    except Exception as exc:  # noqa: BLE001 - 追踪失败不得影响主请求
        _rollback_quietly(db)
        return TrackingOutcome.failed(exc)
    return TrackingOutcome.done()
