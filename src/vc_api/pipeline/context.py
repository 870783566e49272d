"""管线共享的请求视图与请求上下文。

管线只依赖这里定义的最小请求接口，不直接依赖具体 Web 框架；
认证结果以不可变的 RequestContext 在各阶段之间传递。
"""

from dataclasses import dataclass, field
from typing import Protocol

from vc_api.models.enums import AuthMethod


class RequestView(Protocol):
    """管线可见的请求能力。"""

    @property
    def method(self) -> str: ...

    @property
    def path(self) -> str: ...

    def header(self, name: str) -> str | None: ...

    def expects_json(self) -> bool: ...

    def route_param(self, name: str) -> str | None: ...

    def url_for_route(self, name: str) -> str | None:
        """解析命名路由，无法解析时返回 None。"""
        ...


def wants_json(accept: str | None) -> bool:
    """首选内容类型为 JSON。"""
    if not accept:
        return False
    first = accept.split(",")[0].split(";")[0].strip().lower()
    return "/json" in first or "+json" in first


def accepts_any_content_type(accept: str | None) -> bool:
    if not accept:
        return True
    first = accept.split(",")[0].split(";")[0].strip()
    return first in {"*/*", "*"}


def expects_json_response(accept: str | None, requested_with: str | None, pjax: str | None) -> bool:
    """客户端是否期望 JSON 响应（Ajax 请求或显式声明接受 JSON）。"""
    is_ajax = (requested_with or "").lower() == "xmlhttprequest"
    if is_ajax and not pjax and accepts_any_content_type(accept):
        return True
    return wants_json(accept)


def normalize_path(path: str) -> str:
    """去掉首尾斜杠，便于与固定路由清单比对。"""
    return path.strip("/")


@dataclass(frozen=True)
class Principal:
    """已认证用户快照。"""

    user_id: int
    email: str
    admin_id: int | None = None


@dataclass(frozen=True)
class ApiKeyGrant:
    """本次请求使用的 API Key 快照，供权限判定与下游读取。"""

    key_id: int
    name: str
    scopes: tuple[str, ...] | None


@dataclass(frozen=True)
class RequestContext:
    """认证完成后在管线各阶段传递的请求上下文。"""

    principal: Principal
    auth_method: AuthMethod
    # API Key 认证时存在。
    api_key: ApiKeyGrant | None = None
    # 会话认证时存在。
    session_id: int | None = None
    session_token: str | None = field(default=None, repr=False)

    @property
    def user_id(self) -> int:
        return self.principal.user_id

    @property
    def is_api_key(self) -> bool:
        return self.auth_method == AuthMethod.API_KEY

    @property
    def is_session(self) -> bool:
        return self.auth_method == AuthMethod.SESSION
