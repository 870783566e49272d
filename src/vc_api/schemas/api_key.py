"""API Key 管理结构。"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from vc_api.models.enums import ApiKeyScope
from vc_api.schemas.common import BaseSchema


class ApiKeyCreateRequest(BaseModel):
    """创建 API Key 请求。"""

    name: str = Field(min_length=1, max_length=255, description="名称。")
    description: str | None = Field(default=None, max_length=1000, description="说明。")
    permissions: list[ApiKeyScope] | None = Field(default=None, description="授权范围，为空表示不限制。")
    expires_at: datetime | None = Field(default=None, description="过期时间，必须晚于当前时间。")


class ApiKeyUpdateRequest(BaseModel):
    """更新 API Key 请求，仅提交需要修改的字段。"""

    name: str | None = Field(default=None, min_length=1, max_length=255, description="名称。")
    description: str | None = Field(default=None, max_length=1000, description="说明。")
    permissions: list[ApiKeyScope] | None = Field(default=None, description="授权范围。")
    expires_at: datetime | None = Field(default=None, description="过期时间，传 null 取消过期。")
    is_active: bool | None = Field(default=None, description="是否启用。")

    @field_validator("name", "is_active")
    @classmethod
    def reject_explicit_null(cls, value):
        """字段可省略，但不能显式置空。"""
        if value is None:
            raise ValueError("This field may not be null.")
        return value


class ApiKeyData(BaseSchema):
    """API Key 展示结构（脱敏）。"""

    id: int = Field(description="API Key ID。")
    name: str = Field(description="名称。")
    description: str | None = Field(default=None, description="说明。")
    masked_key: str = Field(description="脱敏密钥。")
    permissions: list[str] | None = Field(default=None, description="授权范围。")
    last_used_at: datetime | None = Field(default=None, description="最近使用时间。")
    expires_at: datetime | None = Field(default=None, description="过期时间。")
    is_active: bool = Field(description="是否启用。")
    created_at: datetime | None = Field(default=None, description="创建时间。")


class ApiKeySecretData(BaseSchema):
    """创建/重置后返回的完整密钥结构。"""

    id: int = Field(description="API Key ID。")
    name: str = Field(description="名称。")
    description: str | None = Field(default=None, description="说明。")
    key: str = Field(description="完整密钥，仅此一次返回。")
    permissions: list[str] | None = Field(default=None, description="授权范围。")
    last_used_at: datetime | None = Field(default=None, description="最近使用时间。")
    expires_at: datetime | None = Field(default=None, description="过期时间。")
    is_active: bool = Field(description="是否启用。")
    created_at: datetime | None = Field(default=None, description="创建时间。")


class ApiKeyStatsData(BaseSchema):
    """API Key 使用统计。"""

    total_keys: int = Field(description="总数。")
    active_keys: int = Field(description="启用且未过期的数量。")
    expired_keys: int = Field(description="已过期数量。")
    recently_used: int = Field(description="近 30 天使用过的数量。")
    max_keys: int = Field(description="租户上限。")
