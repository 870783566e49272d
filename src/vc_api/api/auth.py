"""登录、登出与当前身份接口。"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from vc_api.core.security import utc_now
from vc_api.db.session import get_db
from vc_api.dependencies import get_current_user, get_request_context
from vc_api.exceptions import BadRequest, Forbidden, Unauthorized
from vc_api.models.auth import UserSession
from vc_api.models.tenant import Admin, User
from vc_api.pipeline.context import RequestContext
from vc_api.schemas.auth import AuthLoginRequest, AuthLogoutData, AuthMeData, AuthTokenData
from vc_api.schemas.common import ErrorResponse, SuccessResponse
from vc_api.services.local_auth import normalize_email, verify_password
from vc_api.services.sessions import end_session, start_session
from vc_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

INVALID_CREDENTIALS_MESSAGE = "Invalid credentials!"
INACTIVE_ACCOUNT_MESSAGE = "Your account is currently inactive. Please contact admin for assistance."


def _user_profile(user: User) -> dict:
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
        "status": user.status,
        "last_login_at": user.last_login_at,
    }


def _client_meta(request: Request) -> tuple[str | None, str | None]:
    ip_address = request.client.host if request.client else None
    return ip_address, request.headers.get("user-agent")


@router.post(
    "/login",
    summary="邮箱密码登录",
    description="校验邮箱与密码，创建登录会话并返回 Bearer 令牌。该接口不经过认证管线。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthTokenData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """本地账号登录。"""
    email = normalize_email(payload.email)
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if user is None or not verify_password(payload.password, user.password_hash):
        raise Unauthorized(INVALID_CREDENTIALS_MESSAGE)
    if not user.is_active:
        raise Forbidden(INACTIVE_ACCOUNT_MESSAGE)

    now = utc_now()
    ip_address, user_agent = _client_meta(request)
    session, token, expires_at = start_session(db, user=user, ip_address=ip_address, user_agent=user_agent, now=now)
    user.last_login_at = now
    db.commit()
    logger.info("user logged in user_id=%s session_id=%s", user.id, session.id)

    return success(
        {
            "user": _user_profile(user),
            "token": token,
            "token_type": "Bearer",
            "expires_at": expires_at,
        },
        message="Logged in successfully",
    )


@router.post(
    "/logout",
    summary="退出登录",
    description="关闭当前 Bearer 令牌对应的会话并记录会话时长。API Key 请求没有会话可关闭。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLogoutData],
    responses={401: {"model": ErrorResponse}},
)
def logout(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    logged_out = False
    if ctx.session_id is not None:
        session = db.get(UserSession, ctx.session_id)
        if session is not None:
            end_session(db, session)
            db.commit()
            logged_out = True
    return success({"logged_out": logged_out}, message="Logged out successfully")


@router.get(
    "/me",
    summary="当前身份",
    description="返回当前用户资料、认证方式以及 API Key 授权范围。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthMeData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def me(
    ctx: RequestContext = Depends(get_request_context),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    admin = db.execute(select(Admin).where(Admin.user_id == user.id)).scalar_one_or_none()
    scopes = None
    if ctx.api_key is not None and ctx.api_key.scopes is not None:
        scopes = list(ctx.api_key.scopes)
    return success(
        {
            "user": _user_profile(user),
            "auth_method": ctx.auth_method.value,
            "is_tenant_owner": admin is not None,
            "admin_id": admin.id if admin is not None else user.admin_id,
            "api_key_scopes": scopes,
        },
        message="Retrieved successfully",
    )


@router.post(
    "/refresh",
    summary="刷新会话令牌",
    description="关闭当前会话并签发新的令牌，仅支持 Bearer 会话令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthTokenData],
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}},
)
def refresh(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    if ctx.session_id is None:
        raise BadRequest("Token refresh requires a session token")

    now = utc_now()
    current = db.get(UserSession, ctx.session_id)
    if current is not None:
        end_session(db, current, now=now)
    ip_address, user_agent = _client_meta(request)
    _, token, expires_at = start_session(db, user=user, ip_address=ip_address, user_agent=user_agent, now=now)
    db.commit()

    return success(
        {
            "user": _user_profile(user),
            "token": token,
            "token_type": "Bearer",
            "expires_at": expires_at,
        },
        message="Token refreshed successfully",
    )
