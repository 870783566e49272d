"""登录会话存储服务。"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from vc_api.core.config import get_settings
from vc_api.core.security import as_utc, encode_session_token, utc_now
from vc_api.models.auth import UserSession
from vc_api.models.tenant import User

logger = logging.getLogger(__name__)


def start_session(
    db: Session,
    *,
    user: User,
    ip_address: str | None = None,
    user_agent: str | None = None,
    now: datetime | None = None,
) -> tuple[UserSession, str, datetime]:
    """登录时签发令牌并创建会话记录。"""
    settings = get_settings()
    now = now or utc_now()
    expires_at = now + timedelta(days=settings.auth_session_ttl_days)
    token = encode_session_token(user_id=user.id, issued_at=now, expires_at=expires_at)

    session = UserSession(
        user_id=user.id,
        session_token=token,
        login_at=now,
        last_activity_at=now,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(session)
    db.flush()
    return session, token, expires_at


def find_session_by_token(db: Session, token: str) -> UserSession | None:
    return db.execute(select(UserSession).where(UserSession.session_token == token)).scalar_one_or_none()


def end_session(db: Session, session: UserSession, now: datetime | None = None) -> None:
    """关闭会话并记录持续时长；重复关闭不改写首次登出时间。"""
    if session.logout_at is not None:
        return
    now = now or utc_now()
    session.logout_at = now
    login_at = as_utc(session.login_at)
    if login_at is not None:
        session.duration_seconds = max(0, int((now - login_at).total_seconds()))


def touch_session_activity(db: Session, session_id: int, now: datetime | None = None) -> bool:
    """刷新存活会话的最近活跃时间。

    单行条件更新：仅当会话未登出且新时间晚于已记录时间时写入，
    并发请求下最近活跃时间只会单调前进。返回是否实际写入。
    """
    now = now or utc_now()
    stmt = (
        update(UserSession)
        .where(UserSession.id == session_id)
        .where(UserSession.logout_at.is_(None))
        .where(or_(UserSession.last_activity_at.is_(None), UserSession.last_activity_at < now))
        .values(last_activity_at=now)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount > 0


def close_stale_sessions(db: Session, now: datetime | None = None) -> int:
    """关闭长时间无活动的会话，返回关闭数量。"""
    settings = get_settings()
    now = now or utc_now()
    cutoff = now - timedelta(hours=settings.auth_stale_session_hours)
    stale_sessions = (
        db.execute(
            select(UserSession)
            .where(UserSession.logout_at.is_(None))
            .where(UserSession.last_activity_at < cutoff)
        )
        .scalars()
        .all()
    )
    for session in stale_sessions:
        end_session(db, session, now=now)
    db.commit()
    if stale_sessions:
        logger.info("closed stale sessions count=%s cutoff=%s", len(stale_sessions), cutoff.isoformat())
    return len(stale_sessions)
