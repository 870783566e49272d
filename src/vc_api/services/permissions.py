"""API Key 方法级权限判定。

会话认证的请求不经过这里，只有通过 X-API-Key 认证的请求才按授权范围校验。
"""

from collections.abc import Iterable
from enum import StrEnum

from vc_api.exceptions import Forbidden
from vc_api.models.enums import ApiKeyScope

PERMISSION_DENIED_MESSAGE = "API key does not have permission for this HTTP method"


class ScopePolicy(StrEnum):
    """授权范围为空时的处理策略。"""

    ALLOW_ALL = "allow_all"  # 未限制即全部放行。
    DENY_ALL = "deny_all"  # 未授权即全部拒绝。


# 历史行为：未配置授权范围的 API Key 拥有全部方法权限。
EMPTY_SCOPES_POLICY = ScopePolicy.ALLOW_ALL

# HTTP 方法到所需授权范围的固定映射。
METHOD_CAPABILITIES: dict[str, ApiKeyScope] = {
    "GET": ApiKeyScope.READ,
    "POST": ApiKeyScope.CREATE,
    "PUT": ApiKeyScope.UPDATE,
    "PATCH": ApiKeyScope.UPDATE,
    "DELETE": ApiKeyScope.DELETE,
}


def required_capability(method: str) -> ApiKeyScope | None:
    """返回方法对应的授权范围，未映射的方法返回 None。"""
    return METHOD_CAPABILITIES.get(method.upper())


def is_method_allowed(
    method: str,
    scopes: Iterable[str] | None,
    *,
    empty_policy: ScopePolicy = EMPTY_SCOPES_POLICY,
) -> bool:
    """判断授权范围是否覆盖该 HTTP 方法。"""
    granted = set(scopes or ())
    if not granted:
        return empty_policy == ScopePolicy.ALLOW_ALL

    capability = required_capability(method)
    if capability is None:
        return False
    return capability.value in granted or ApiKeyScope.ALL.value in granted


def ensure_method_allowed(
    method: str,
    scopes: Iterable[str] | None,
    *,
    empty_policy: ScopePolicy = EMPTY_SCOPES_POLICY,
) -> None:
    """不满足授权范围时抛出 403。"""
    if not is_method_allowed(method, scopes, empty_policy=empty_policy):
        raise Forbidden(PERMISSION_DENIED_MESSAGE)
