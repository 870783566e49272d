"""外部会员校验与租户所有者会员门禁。

会员按租户计费：只校验租户所有者（存在 Admin 记录的用户），
团队成员始终放行，沿用所有者的订阅状态。
"""

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol

import requests
from sqlalchemy import select
from sqlalchemy.orm import Session

from vc_api.core.config import Settings
from vc_api.exceptions import Forbidden
from vc_api.models.tenant import Admin
from vc_api.pipeline.context import RequestContext, RequestView, normalize_path

logger = logging.getLogger(__name__)

MEMBERSHIP_SUSPENDED_MESSAGE = (
    "Your Mastermind membership is not active. VendorConnect is only available to active members."
)

# 无论其他条件如何都不做会员校验的路由。
MEMBERSHIP_EXEMPT_PATHS = frozenset(
    {
        "api/v1/auth/login",
        "api/v1/company/register",
        "api/v1/auth/forgot-password",
    }
)


class MembershipStatus(StrEnum):
    """外部会员服务的查询结论。"""

    ACTIVE = "active"
    INACTIVE = "inactive"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"  # 服务不可用或返回不明确，按放行处理。


@dataclass(frozen=True)
class MembershipLookup:
    status: MembershipStatus
    payload: dict[str, Any] | None = None

    @property
    def allows_access(self) -> bool:
        """只有明确的未激活/不存在才拦截。"""
        return self.status not in (MembershipStatus.INACTIVE, MembershipStatus.NOT_FOUND)


def interpret_membership_payload(data: dict[str, Any]) -> MembershipStatus:
    """解析会员服务返回体。"""
    if data.get("is_member") is False:
        return MembershipStatus.NOT_FOUND
    if data.get("is_active") is False:
        return MembershipStatus.INACTIVE
    if data.get("is_active") is True:
        return MembershipStatus.ACTIVE
    return MembershipStatus.UNKNOWN


class MembershipClient:
    """外部会员服务客户端（按邮箱查询）。"""

    def __init__(
        self,
        *,
        api_key: str | None,
        api_url: str,
        timeout: float = 5.0,
        http: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.http = http or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "MembershipClient":
        return cls(
            api_key=settings.membership_api_key,
            api_url=settings.membership_api_url,
            timeout=settings.membership_timeout_seconds,
        )

    def _get(self, email: str) -> requests.Response:
        return self.http.get(
            self.api_url,
            params={"email": email},
            headers={"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"},
            timeout=self.timeout,
        )

    def lookup(self, email: str) -> MembershipLookup:
        """查询会员状态；服务异常或结论不明确时放行。"""
        if not self.api_key:
            logger.warning("membership api key not configured, allowing access email=%s", email)
            return MembershipLookup(MembershipStatus.UNKNOWN)

        try:
            response = self._get(email)
        except requests.RequestException as exc:
            logger.warning("membership validation error, allowing access email=%s error=%s", email, exc)
            return MembershipLookup(MembershipStatus.UNKNOWN)

        if not response.ok:
            logger.warning(
                "membership request failed, allowing access email=%s status=%s body=%s",
                email,
                response.status_code,
                response.text[:500],
            )
            return MembershipLookup(MembershipStatus.UNKNOWN)

        try:
            data = response.json()
        except ValueError:
            logger.warning("membership response is not json, allowing access email=%s", email)
            return MembershipLookup(MembershipStatus.UNKNOWN)
        if not isinstance(data, dict):
            logger.warning("membership response has unexpected shape, allowing access email=%s", email)
            return MembershipLookup(MembershipStatus.UNKNOWN)

        status = interpret_membership_payload(data)
        logger.info(
            "membership validation email=%s is_member=%s is_active=%s status=%s",
            email,
            data.get("is_member"),
            data.get("is_active"),
            data.get("status"),
        )
        if status == MembershipStatus.UNKNOWN:
            logger.warning("membership returned unclear status, allowing access email=%s", email)
        return MembershipLookup(status, data)

    def is_active_member(self, email: str) -> bool:
        return self.lookup(email).allows_access

    def get_member_details(self, email: str) -> dict[str, Any] | None:
        """返回会员完整信息，查询失败返回 None。"""
        if not self.api_key:
            return None
        try:
            response = self._get(email)
        except requests.RequestException as exc:
            logger.error("failed to fetch member details email=%s error=%s", email, exc)
            return None
        if not response.ok:
            return None
        try:
            data = response.json()
        except ValueError:
            return None
        return data if isinstance(data, dict) else None


class MembershipChecker(Protocol):
    def is_active_member(self, email: str) -> bool: ...


@dataclass(frozen=True)
class MembershipGateConfig:
    """会员门禁配置，启动时一次性构造后注入。"""

    demo_mode: bool
    api_key: str | None
    exempt_paths: frozenset[str] = MEMBERSHIP_EXEMPT_PATHS

    @classmethod
    def from_settings(cls, settings: Settings) -> "MembershipGateConfig":
        return cls(demo_mode=settings.is_demo, api_key=settings.membership_api_key)

    @property
    def enabled(self) -> bool:
        return not self.demo_mode and bool(self.api_key)


class MembershipGate:
    """拦截会员已失效的租户所有者。"""

    def __init__(self, config: MembershipGateConfig, checker: MembershipChecker, db: Session) -> None:
        self.config = config
        self.checker = checker
        self.db = db

    def find_tenant_owner(self, user_id: int) -> Admin | None:
        return self.db.execute(select(Admin).where(Admin.user_id == user_id)).scalar_one_or_none()

    def check(self, request: RequestView, ctx: RequestContext | None) -> None:
        """会员失效时抛出带 membership_suspended 标记的 403。"""
        if not self.config.enabled:
            return
        if normalize_path(request.path) in self.config.exempt_paths:
            return
        # 只校验会话登录用户，API Key 调用不在门禁范围内。
        if ctx is None or not ctx.is_session:
            return

        admin = self.find_tenant_owner(ctx.user_id)
        if admin is None:
            return

        if self.checker.is_active_member(ctx.principal.email):
            return

        logger.warning(
            "inactive membership blocked tenant owner user_id=%s email=%s admin_id=%s company=%s",
            ctx.user_id,
            ctx.principal.email,
            admin.id,
            admin.company_name,
        )
        raise Forbidden(MEMBERSHIP_SUSPENDED_MESSAGE, membership_suspended=True)
