"""请求管线编排。

固定顺序：
1. 身份识别（失败 401 / 重定向登录页）
2. API Key 方法权限（仅 API Key 认证，失败 403）
3. 会员门禁（仅会话认证的租户所有者，失败 403 + membership_suspended）
4. 会话活跃度（路由处理前，尽力而为）
5. 路由处理
6. 任务活跃度（路由处理后，尽力而为）
"""

import logging

from sqlalchemy.orm import Session

from vc_api.core.config import Settings
from vc_api.pipeline.authenticator import RequestAuthenticator
from vc_api.pipeline.context import RequestContext, RequestView
from vc_api.services.activity import TrackingOutcome, track_session_activity, track_task_activity
from vc_api.services.membership import MembershipGate
from vc_api.services.permissions import EMPTY_SCOPES_POLICY, ScopePolicy, ensure_method_allowed

logger = logging.getLogger(__name__)


class RequestPipeline:
    """将认证、授权、会员门禁与活跃度追踪串成单次请求的处理链。"""

    def __init__(
        self,
        *,
        db: Session,
        settings: Settings,
        membership_gate: MembershipGate,
        authenticator: RequestAuthenticator | None = None,
        empty_scope_policy: ScopePolicy = EMPTY_SCOPES_POLICY,
    ) -> None:
        self.db = db
        self.settings = settings
        self.membership_gate = membership_gate
        self.authenticator = authenticator or RequestAuthenticator(db, settings)
        self.empty_scope_policy = empty_scope_policy

    def enter(self, request: RequestView) -> RequestContext:
        """路由处理前的阶段，返回请求上下文；认证/授权失败直接抛出。"""
        ctx = self.authenticator.authenticate(request)

        if ctx.is_api_key and ctx.api_key is not None:
            ensure_method_allowed(request.method, ctx.api_key.scopes, empty_policy=self.empty_scope_policy)

        self.membership_gate.check(request, ctx)

        self._report("session", track_session_activity(self.db, request, ctx), request, ctx)
        return ctx

    def leave(self, request: RequestView, ctx: RequestContext | None) -> TrackingOutcome:
        """路由处理后的阶段，无论路由成功与否都执行。"""
        return self._report("task", track_task_activity(self.db, request, ctx), request, ctx)

    @staticmethod
    def _report(
        kind: str,
        outcome: TrackingOutcome,
        request: RequestView,
        ctx: RequestContext | None,
    ) -> TrackingOutcome:
        if not outcome.ok:
            logger.debug(
                "%s activity tracking failed user_id=%s path=%s error=%s",
                kind,
                ctx.user_id if ctx else None,
                request.path,
                outcome.error,
            )
        return outcome
