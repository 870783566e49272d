"""租户与身份模型。"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, SmallInteger, String
from sqlalchemy.orm import Mapped, mapped_column

from vc_api.models.base import Base, IntPrimaryKeyMixin, TimestampMixin
from vc_api.models.enums import UserStatus


class Admin(Base, IntPrimaryKeyMixin, TimestampMixin):
    """租户所有者记录，会员订阅以该记录为单位计费。"""

    __tablename__ = "admins"

    # 所有者对应的用户 ID（逻辑关联 users.id，不声明数据库外键）。
    user_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    # 公司名称，用于会员拦截日志。
    company_name: Mapped[str | None] = mapped_column(String(255))


class User(Base, IntPrimaryKeyMixin, TimestampMixin):
    """平台用户，既可能是租户所有者，也可能是团队成员。"""

    __tablename__ = "users"

    # 所属租户（admins.id）；所有者与其团队成员取值相同。
    admin_id: Mapped[int | None] = mapped_column(Integer, index=True)
    first_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    # 登录邮箱，统一小写存储。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 口令哈希，不存明文。
    password_hash: Mapped[str | None] = mapped_column(String(256))
    # 1 为启用，0 为停用。
    status: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=UserStatus.ACTIVE)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE
