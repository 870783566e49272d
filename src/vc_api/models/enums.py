"""领域枚举定义。"""

from enum import StrEnum


class UserStatus:
    """用户状态（沿用历史库的整数取值）。"""

    ACTIVE = 1  # 正常可登录。
    INACTIVE = 0  # 已停用，禁止登录。


class ApiKeyScope(StrEnum):
    """API Key 权限范围。"""

    READ = "read"  # 允许 GET。
    CREATE = "create"  # 允许 POST。
    UPDATE = "update"  # 允许 PUT/PATCH。
    DELETE = "delete"  # 允许 DELETE。
    ALL = "*"  # 通配，允许全部已映射方法。


class AuthMethod(StrEnum):
    """请求认证方式。"""

    API_KEY = "api_key"  # 通过 X-API-Key 认证。
    SESSION = "session"  # 通过 Bearer 会话令牌认证。


class TaskStatusSlug(StrEnum):
    """与活跃度追踪相关的任务状态标识。"""

    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"  # 已完成，不再记录活跃度。
    ARCHIVE = "archive"  # 已归档，不再记录活跃度。


# 已关闭任务不再记录参与人活跃时间。
CLOSED_TASK_STATUS_SLUGS = frozenset({TaskStatusSlug.COMPLETED.value, TaskStatusSlug.ARCHIVE.value})
