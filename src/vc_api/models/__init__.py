"""ORM 模型导出集合。"""

from vc_api.models.auth import ApiKey, UserSession
from vc_api.models.task import Status, Task, TaskUser
from vc_api.models.tenant import Admin, User

__all__ = [
    "Admin",
    "ApiKey",
    "Status",
    "Task",
    "TaskUser",
    "User",
    "UserSession",
]
