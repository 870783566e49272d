"""API Key 凭据存储与管理服务。"""

from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from vc_api.core.config import get_settings
from vc_api.core.security import as_utc, generate_api_key, utc_now
from vc_api.exceptions import BadRequest, NotFound
from vc_api.models.auth import ApiKey
from vc_api.models.tenant import User

# 统计“近期使用”的时间窗口。
RECENT_USE_WINDOW = timedelta(days=30)


def mask_key(key: str) -> str:
    """返回脱敏展示用的密钥（前 8 位 + 后 4 位）。"""
    return f"{key[:8]}...{key[-4:]}"


def is_api_key_usable(api_key: ApiKey, now: datetime | None = None) -> bool:
    """启用且未过期才可使用。"""
    if not api_key.is_active:
        return False
    expires_at = as_utc(api_key.expires_at)
    if expires_at is not None and expires_at <= (now or utc_now()):
        return False
    return True


def find_active_api_key(db: Session, key: str) -> ApiKey | None:
    """按密钥原文精确查找启用中的 API Key（不含过期判断）。"""
    stmt = select(ApiKey).where(ApiKey.key == key).where(ApiKey.is_active.is_(True))
    return db.execute(stmt).scalar_one_or_none()


def mark_api_key_used(db: Session, api_key: ApiKey, now: datetime | None = None) -> None:
    """刷新最近使用时间并立即提交，不受后续鉴权结果影响。"""
    api_key.last_used_at = now or utc_now()
    db.commit()


def api_key_payload(api_key: ApiKey, *, reveal_key: bool = False) -> dict[str, Any]:
    """导出接口展示字段；完整密钥只在创建/重置时返回。"""
    data: dict[str, Any] = {
        "id": api_key.id,
        "name": api_key.name,
        "description": api_key.description,
        "permissions": api_key.permissions,
        "last_used_at": api_key.last_used_at,
        "expires_at": api_key.expires_at,
        "is_active": api_key.is_active,
        "created_at": api_key.created_at,
    }
    if reveal_key:
        data["key"] = api_key.key
    else:
        data["masked_key"] = mask_key(api_key.key)
    return data


def _ensure_future(expires_at: datetime | None, now: datetime) -> datetime | None:
    normalized = as_utc(expires_at)
    if normalized is not None and normalized <= now:
        raise BadRequest("The expires at must be a date after now.")
    return normalized


def _unique_key(db: Session) -> str:
    while True:
        candidate = generate_api_key()
        exists = db.execute(select(ApiKey.id).where(ApiKey.key == candidate)).first()
        if not exists:
            return candidate


def count_api_keys(db: Session, admin_id: int) -> int:
    stmt = select(func.count()).select_from(ApiKey).where(ApiKey.admin_id == admin_id)
    return int(db.execute(stmt).scalar_one())


def create_api_key(
    db: Session,
    *,
    owner: User,
    admin_id: int,
    name: str,
    description: str | None = None,
    permissions: list[str] | None = None,
    expires_at: datetime | None = None,
) -> ApiKey:
    """为租户创建 API Key，超过上限时拒绝。"""
    settings = get_settings()
    now = utc_now()
    if count_api_keys(db, admin_id) >= settings.api_key_max_per_admin:
        raise BadRequest(f"Maximum number of API keys reached ({settings.api_key_max_per_admin})")

    api_key = ApiKey(
        user_id=owner.id,
        admin_id=admin_id,
        name=name,
        description=description,
        key=_unique_key(db),
        permissions=permissions,
        is_active=True,
        expires_at=_ensure_future(expires_at, now),
    )
    db.add(api_key)
    db.commit()
    db.refresh(api_key)
    return api_key


def list_api_keys(db: Session, admin_id: int) -> list[ApiKey]:
    stmt = select(ApiKey).where(ApiKey.admin_id == admin_id).order_by(ApiKey.created_at.desc(), ApiKey.id.desc())
    return list(db.execute(stmt).scalars().all())


def get_api_key(db: Session, admin_id: int, key_id: int) -> ApiKey:
    """按租户范围读取单个 API Key。"""
    stmt = select(ApiKey).where(ApiKey.admin_id == admin_id).where(ApiKey.id == key_id)
    api_key = db.execute(stmt).scalar_one_or_none()
    if api_key is None:
        raise NotFound("API key not found")
    return api_key


def update_api_key(db: Session, api_key: ApiKey, changes: dict[str, Any]) -> ApiKey:
    """按字段更新；expires_at 显式传 None 表示取消过期时间。"""
    for field in ("name", "description", "permissions", "is_active"):
        if field in changes:
            setattr(api_key, field, changes[field])
    if "expires_at" in changes:
        api_key.expires_at = _ensure_future(changes["expires_at"], utc_now())
    db.commit()
    db.refresh(api_key)
    return api_key


def deactivate_api_key(db: Session, api_key: ApiKey) -> ApiKey:
    """停用 API Key；凭据只停用不删除。"""
    api_key.is_active = False
    db.commit()
    db.refresh(api_key)
    return api_key


def regenerate_api_key(db: Session, api_key: ApiKey) -> ApiKey:
    """替换密钥原文，其余属性保持不变。"""
    api_key.key = _unique_key(db)
    db.commit()
    db.refresh(api_key)
    return api_key


def api_key_stats(db: Session, admin_id: int, now: datetime | None = None) -> dict[str, int]:
    """统计租户内 API Key 使用情况。"""
    settings = get_settings()
    now = now or utc_now()
    base = select(func.count()).select_from(ApiKey).where(ApiKey.admin_id == admin_id)

    total = db.execute(base).scalar_one()
    active = db.execute(
        base.where(ApiKey.is_active.is_(True)).where(or_(ApiKey.expires_at.is_(None), ApiKey.expires_at > now))
    ).scalar_one()
    expired = db.execute(base.where(ApiKey.expires_at.is_not(None)).where(ApiKey.expires_at < now)).scalar_one()
    recently_used = db.execute(
        base.where(ApiKey.last_used_at.is_not(None)).where(ApiKey.last_used_at >= now - RECENT_USE_WINDOW)
    ).scalar_one()

    return {
        "total_keys": int(total),
        "active_keys": int(active),
        "expired_keys": int(expired),
        "recently_used": int(recently_used),
        "max_keys": settings.api_key_max_per_admin,
    }
