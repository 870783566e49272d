"""认证相关模型：API Key 与登录会话。"""

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vc_api.models.base import Base, IntPrimaryKeyMixin, TimestampMixin


class ApiKey(Base, IntPrimaryKeyMixin, TimestampMixin):
    """程序化访问凭据。

    说明：
    1. 仅允许停用，不做物理删除。
    2. permissions 为空时按 EMPTY_SCOPES_POLICY 处理。
    """

    __tablename__ = "api_keys"

    # 归属用户 ID（逻辑关联 users.id）。
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # 归属租户 ID（admins.id），按租户统计上限。
    admin_id: Mapped[int | None] = mapped_column(Integer, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # 完整密钥串，精确匹配查找。
    key: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    # 授权范围列表（read/create/update/delete/*）。
    permissions: Mapped[list[str] | None] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # 最近一次成功认证的时间。
    last_used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class UserSession(Base, IntPrimaryKeyMixin, TimestampMixin):
    """登录会话，logout_at 为空即为存活。"""

    __tablename__ = "user_sessions"

    user_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    # 登录时签发的 Bearer 令牌原文。
    session_token: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    login_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    logout_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[int | None] = mapped_column(Integer)
    ip_address: Mapped[str | None] = mapped_column(String(64))
    user_agent: Mapped[str | None] = mapped_column(Text)

    @property
    def is_live(self) -> bool:
        return self.logout_at is None
