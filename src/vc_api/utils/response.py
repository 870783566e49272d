"""统一响应结构工具。"""

from typing import Any

DEFAULT_ERROR_MESSAGE = "Internal server error"


def success(data: Any, message: str = "Success", **extra: Any) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    payload: dict[str, Any] = {"success": True, "message": message, "data": data}
    payload.update(extra)
    return payload


def error_payload(message: str, **extra: Any) -> dict[str, Any]:
    """构造统一错误响应结构；附加字段平铺在顶层（如 membership_suspended）。"""
    payload: dict[str, Any] = {"success": False, "message": message}
    payload.update(extra)
    return payload
