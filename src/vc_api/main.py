"""FastAPI 应用入口点。"""

import logging

from fastapi import FastAPI

from vc_api.api.router import api_router
from vc_api.core.config import get_settings
from vc_api.exceptions import register_exception_handlers
from vc_api.middlewares import register_middlewares

settings = get_settings()


def setup_logging() -> None:
    """初始化日志输出格式与级别。"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "VendorConnect 接口。\n\n"
            "认证方式：`X-API-Key`（按授权范围限制 HTTP 方法）或 `Authorization: Bearer <token>`（登录会话）。\n"
            "所有接口统一返回：`{success, message, data}`。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "登录、登出与当前身份。"},
            {"name": "api-keys", "description": "API Key 管理（仅租户所有者）。"},
            {"name": "tasks", "description": "任务查看与状态变更（记录参与人活跃度）。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
