"""请求身份识别：X-API-Key 优先，否则走 Bearer 会话认证。"""

from datetime import datetime

from sqlalchemy.orm import Session

from vc_api.core.config import Settings
from vc_api.core.security import (
    API_KEY_HEADER,
    InvalidSessionToken,
    decode_session_token,
    extract_bearer_token,
    utc_now,
)
from vc_api.exceptions import LoginRedirect, Unauthorized
from vc_api.models.auth import ApiKey, UserSession
from vc_api.models.enums import AuthMethod
from vc_api.models.tenant import User
from vc_api.pipeline.context import ApiKeyGrant, Principal, RequestContext, RequestView
from vc_api.services.api_keys import find_active_api_key, is_api_key_usable, mark_api_key_used
from vc_api.services.sessions import find_session_by_token

INVALID_API_KEY_MESSAGE = "Invalid or inactive API key"
EXPIRED_API_KEY_MESSAGE = "API key has expired or is inactive"
UNAUTHENTICATED_MESSAGE = "Unauthenticated."


def _principal(user: User) -> Principal:
    return Principal(user_id=user.id, email=user.email, admin_id=user.admin_id)


def _grant(api_key: ApiKey) -> ApiKeyGrant:
    scopes = tuple(api_key.permissions) if api_key.permissions else None
    return ApiKeyGrant(
        key_id=api_key.id,
        name=api_key.name,
        scopes=scopes,
    )


class RequestAuthenticator:
    """在任何路由逻辑之前确定调用方身份。"""

    def __init__(self, db: Session, settings: Settings) -> None:
        self.db = db
        self.settings = settings

    def authenticate(self, request: RequestView, now: datetime | None = None) -> RequestContext:
        """返回请求上下文；认证失败抛出 Unauthorized 或 LoginRedirect。"""
        now = now or utc_now()
        raw_key = request.header(API_KEY_HEADER)
        if raw_key:
            return self._authenticate_api_key(raw_key, now)
        return self._authenticate_session(request, now)

    def _authenticate_api_key(self, raw_key: str, now: datetime) -> RequestContext:
        api_key = find_active_api_key(self.db, raw_key)
        if api_key is None:
            raise Unauthorized(INVALID_API_KEY_MESSAGE)
        if not is_api_key_usable(api_key, now):
            raise Unauthorized(EXPIRED_API_KEY_MESSAGE)

        owner = self.db.get(User, api_key.user_id)
        if owner is None:
            raise Unauthorized(INVALID_API_KEY_MESSAGE)

        # 使用时间在权限判定之前写入，即使后续被拒绝也保留本次使用记录。
        mark_api_key_used(self.db, api_key, now)
        return RequestContext(
            principal=_principal(owner),
            auth_method=AuthMethod.API_KEY,
            api_key=_grant(api_key),
        )

    def _resolve_session(self, token: str | None) -> tuple[User, UserSession] | None:
        if not token:
            return None
        try:
            claims = decode_session_token(token)
        except InvalidSessionToken:
            return None

        session = find_session_by_token(self.db, token)
        if session is None or not session.is_live or session.user_id != claims.user_id:
            return None

        user = self.db.get(User, session.user_id)
        if user is None or not user.is_active:
            return None
        return user, session

    def _authenticate_session(self, request: RequestView, now: datetime) -> RequestContext:
        token = extract_bearer_token(request.header("Authorization"))
        resolved = self._resolve_session(token)
        if resolved is None:
            raise self.unauthenticated(request)

        user, session = resolved
        return RequestContext(
            principal=_principal(user),
            auth_method=AuthMethod.SESSION,
            session_id=session.id,
            session_token=token,
        )

    def unauthenticated(self, request: RequestView) -> Exception:
        """JSON 客户端返回 401；网页请求重定向到登录页。"""
        if request.expects_json():
            return Unauthorized(UNAUTHENTICATED_MESSAGE)
        location = request.url_for_route(self.settings.auth_login_route_name)
        return LoginRedirect(location or self.settings.auth_login_fallback_path)
