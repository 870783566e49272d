"""认证头解析与会话令牌校验工具。"""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import jwt
from jwt import InvalidTokenError

from vc_api.core.config import get_settings

API_KEY_HEADER = "X-API-Key"
_API_KEY_ALPHABET = string.ascii_letters + string.digits
_API_KEY_RANDOM_LENGTH = 40


class InvalidSessionToken(Exception):
    """会话令牌无法通过签名或有效期校验。"""


@dataclass(frozen=True)
class SessionTokenClaims:
    """会话令牌中与认证相关的声明。"""

    user_id: int
    issued_at: datetime
    expires_at: datetime
    jti: str


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """统一为带时区的 UTC 时间；SQLite 读回的无时区时间按 UTC 处理。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def generate_api_key() -> str:
    """生成带前缀的随机 API Key。"""
    settings = get_settings()
    suffix = "".join(secrets.choice(_API_KEY_ALPHABET) for _ in range(_API_KEY_RANDOM_LENGTH))
    return f"{settings.api_key_prefix}{suffix}"


def extract_bearer_token(authorization: str | None) -> str | None:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        return None
    tokens = re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)
    for candidate in reversed(tokens):
        token = candidate.strip()
        if token:
            return token
    return None


def encode_session_token(*, user_id: int, issued_at: datetime, expires_at: datetime) -> str:
    """签发会话令牌；令牌原文同时作为会话记录的查找键。"""
    settings = get_settings()
    claims: dict[str, Any] = {
        "sub": str(user_id),
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
        # 保证同一秒内多次登录签发的令牌互不相同。
        "jti": secrets.token_hex(16),
    }
    return jwt.encode(claims, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm)


def decode_session_token(token: str) -> SessionTokenClaims:
    """校验签名与有效期并返回声明。"""
    settings = get_settings()
    try:
        claims = jwt.decode(
            token,
            key=settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            options={"require": ["sub", "exp", "iat"]},
        )
    except InvalidTokenError as exc:
        raise InvalidSessionToken(str(exc)) from exc

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise InvalidSessionToken("subject is not a user id") from exc

    return SessionTokenClaims(
        user_id=user_id,
        issued_at=datetime.fromtimestamp(claims["iat"], tz=timezone.utc),
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        jti=str(claims.get("jti") or ""),
    )
