"""任务结构。"""

from datetime import datetime

from pydantic import BaseModel, Field

from vc_api.schemas.common import BaseSchema


class TaskStatusUpdateRequest(BaseModel):
    """任务状态变更请求。"""

    status: str = Field(min_length=1, max_length=64, description="目标状态标识，例如 in-progress / completed。")


class TaskData(BaseSchema):
    """任务展示结构。"""

    id: int = Field(description="任务 ID。")
    title: str = Field(description="标题。")
    status: str | None = Field(default=None, description="状态标识。")
    assigned_user_ids: list[int] = Field(description="参与人用户 ID 列表。")
    my_last_activity_at: datetime | None = Field(default=None, description="当前用户在该任务上的最近活跃时间。")
