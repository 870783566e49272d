"""任务与参与人模型（仅保留活跃度追踪所需字段）。"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from vc_api.models.base import Base, IntPrimaryKeyMixin, TimestampMixin


class Status(Base, IntPrimaryKeyMixin, TimestampMixin):
    """任务状态字典。"""

    __tablename__ = "statuses"

    title: Mapped[str] = mapped_column(String(128), nullable=False)
    # 机器可识别标识，例如 completed / archive。
    slug: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)


class Task(Base, IntPrimaryKeyMixin, TimestampMixin):
    """任务实体。"""

    __tablename__ = "tasks"

    admin_id: Mapped[int | None] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    status_id: Mapped[int | None] = mapped_column(Integer, index=True)


class TaskUser(Base):
    """任务参与人关系，附带参与人在该任务上的最近活跃时间。"""

    __tablename__ = "task_user"

    task_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
