"""请求上下文依赖。

职责:
1. 将 Starlette 请求适配为管线使用的 RequestView。
2. 组装请求管线（认证 → 权限 → 会员门禁 → 会话活跃度）。
3. 任务路由在处理完成后执行任务活跃度追踪。
4. 提供路由层常用的用户与租户所有者依赖。
"""

from collections.abc import Generator
from dataclasses import dataclass
from functools import lru_cache

from fastapi import Depends, Request
from sqlalchemy import select
from sqlalchemy.orm import Session
from starlette.routing import NoMatchFound

from vc_api.core.config import get_settings
from vc_api.db.session import get_db
from vc_api.exceptions import Forbidden, Unauthorized
from vc_api.models.tenant import Admin, User
from vc_api.pipeline.context import RequestContext, expects_json_response
from vc_api.pipeline.pipeline import RequestPipeline
from vc_api.services.membership import (
    MembershipChecker,
    MembershipClient,
    MembershipGate,
    MembershipGateConfig,
)


class StarletteRequestView:
    """RequestView 的 Starlette 实现。"""

    def __init__(self, request: Request) -> None:
        self._request = request

    @property
    def method(self) -> str:
        return self._request.method.upper()

    @property
    def path(self) -> str:
        return self._request.url.path

    def header(self, name: str) -> str | None:
        return self._request.headers.get(name)

    def expects_json(self) -> bool:
        headers = self._request.headers
        return expects_json_response(headers.get("accept"), headers.get("x-requested-with"), headers.get("x-pjax"))

    def route_param(self, name: str) -> str | None:
        value = self._request.path_params.get(name)
        return None if value is None else str(value)

    def url_for_route(self, name: str) -> str | None:
        try:
            return str(self._request.url_for(name))
        except NoMatchFound:
            return None


@lru_cache
def _default_membership_client() -> MembershipClient:
    return MembershipClient.from_settings(get_settings())


def get_membership_checker() -> MembershipChecker:
    """外部会员服务客户端，测试中可替换。"""
    return _default_membership_client()


def get_membership_gate_config() -> MembershipGateConfig:
    return MembershipGateConfig.from_settings(get_settings())


def get_membership_gate(
    db: Session = Depends(get_db),
    config: MembershipGateConfig = Depends(get_membership_gate_config),
    checker: MembershipChecker = Depends(get_membership_checker),
) -> MembershipGate:
    return MembershipGate(config, checker, db)


def get_pipeline(
    db: Session = Depends(get_db),
    gate: MembershipGate = Depends(get_membership_gate),
) -> RequestPipeline:
    return RequestPipeline(db=db, settings=get_settings(), membership_gate=gate)


def get_request_context(
    request: Request,
    pipeline: RequestPipeline = Depends(get_pipeline),
) -> RequestContext:
    """执行路由处理前的全部管线阶段。"""
    ctx = pipeline.enter(StarletteRequestView(request))
    request.state.request_context = ctx
    return ctx


def track_task_activity(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    pipeline: RequestPipeline = Depends(get_pipeline),
) -> Generator[RequestContext, None, None]:
    """包裹任务路由：路由处理结束后（包括抛出异常时）记录任务活跃度。"""
    try:
        yield ctx
    finally:
        pipeline.leave(StarletteRequestView(request), ctx)


def get_current_user(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
) -> User:
    """返回当前请求用户实体。"""
    user = db.get(User, ctx.user_id)
    if user is None:
        raise Unauthorized()
    return user


@dataclass
class TenantOwner:
    """当前租户所有者及其 Admin 记录。"""

    user: User
    admin: Admin
    ctx: RequestContext


def require_tenant_owner(action: str):
    """限定仅租户所有者（管理员）可访问。"""

    def _dep(
        ctx: RequestContext = Depends(get_request_context),
        user: User = Depends(get_current_user),
        db: Session = Depends(get_db),
    ) -> TenantOwner:
        admin = db.execute(select(Admin).where(Admin.user_id == user.id)).scalar_one_or_none()
        if admin is None:
            raise Forbidden(f"Only administrators can {action}")
        return TenantOwner(user=user, admin=admin, ctx=ctx)

    return _dep
