"""路由模块导出集合。"""

from . import api_keys, auth, health, tasks

__all__ = ["api_keys", "auth", "health", "tasks"]
