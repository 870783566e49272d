"""登录、登出与当前身份结构。"""

from datetime import datetime

from pydantic import BaseModel, Field

from vc_api.schemas.common import BaseSchema


class AuthLoginRequest(BaseModel):
    """登录请求。"""

    email: str = Field(
        min_length=3,
        max_length=256,
        pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$",
        description="登录邮箱。",
        examples=["owner@example.com"],
    )
    password: str = Field(min_length=6, max_length=128, description="登录密码。")


class AuthUserProfile(BaseSchema):
    """当前登录用户的基础资料。"""

    id: int = Field(description="用户 ID。")
    first_name: str = Field(description="名。")
    last_name: str = Field(description="姓。")
    email: str = Field(description="登录邮箱。")
    status: int = Field(description="用户状态，1 为启用。")
    last_login_at: datetime | None = Field(default=None, description="最近一次登录时间。")


class AuthTokenData(BaseSchema):
    """登录/刷新结果结构。"""

    user: AuthUserProfile = Field(description="当前用户。")
    token: str = Field(description="Bearer 会话令牌。")
    token_type: str = Field(default="Bearer", description="令牌类型。")
    expires_at: datetime = Field(description="令牌过期时间（UTC）。")


class AuthLogoutData(BaseSchema):
    """登出结果结构。"""

    logged_out: bool = Field(description="是否已关闭当前会话。")


class AuthMeData(BaseSchema):
    """当前身份结构。"""

    user: AuthUserProfile = Field(description="当前用户。")
    auth_method: str = Field(description="认证方式：api_key 或 session。")
    is_tenant_owner: bool = Field(description="是否为租户所有者。")
    admin_id: int | None = Field(default=None, description="所属租户 ID。")
    api_key_scopes: list[str] | None = Field(default=None, description="API Key 认证时的授权范围。")
