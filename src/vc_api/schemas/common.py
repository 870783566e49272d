"""全局通用结构。

用于定义统一响应包裹结构，便于在线接口文档展示与联调。
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """基础结构，开启对象映射能力。"""

    model_config = ConfigDict(from_attributes=True)


class ErrorResponse(BaseSchema):
    """统一错误响应。"""

    success: bool = Field(default=False, description="固定为 false。")
    message: str = Field(description="人类可读错误信息。")
    membership_suspended: bool | None = Field(default=None, description="会员失效时为 true，前端据此进入停用页。")
    errors: list[dict[str, Any]] | None = Field(default=None, description="参数校验错误明细。")


T = TypeVar("T")


class SuccessResponse(BaseSchema, Generic[T]):
    """统一成功响应。"""

    success: bool = Field(default=True, description="固定为 true。")
    message: str = Field(description="操作结果描述。")
    data: T = Field(description="业务返回数据主体。")
