"""API Key 管理接口（仅租户所有者）。"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from vc_api.db.session import get_db
from vc_api.dependencies import TenantOwner, require_tenant_owner
from vc_api.schemas.api_key import (
    ApiKeyCreateRequest,
    ApiKeyData,
    ApiKeySecretData,
    ApiKeyStatsData,
    ApiKeyUpdateRequest,
)
from vc_api.schemas.common import ErrorResponse, SuccessResponse
from vc_api.services.api_keys import (
    api_key_payload,
    api_key_stats,
    create_api_key,
    deactivate_api_key,
    get_api_key,
    list_api_keys,
    regenerate_api_key,
    update_api_key,
)
from vc_api.utils.response import success

router = APIRouter(prefix="/api-keys", tags=["api-keys"])

_OWNER_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


@router.get(
    "",
    summary="API Key 列表",
    description="返回当前租户下全部 API Key，密钥以脱敏形式展示。",
    response_model=SuccessResponse[list[ApiKeyData]],
    responses=_OWNER_ERRORS,
)
def list_keys(
    owner: TenantOwner = Depends(require_tenant_owner("view API keys")),
    db: Session = Depends(get_db),
):
    keys = list_api_keys(db, owner.admin.id)
    return success([api_key_payload(item) for item in keys], message="API keys retrieved successfully")


@router.post(
    "",
    summary="创建 API Key",
    description="创建新的 API Key，完整密钥仅在本次响应中返回。",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[ApiKeySecretData],
    responses={400: {"model": ErrorResponse}, **_OWNER_ERRORS},
)
def create_key(
    payload: ApiKeyCreateRequest,
    owner: TenantOwner = Depends(require_tenant_owner("create API keys")),
    db: Session = Depends(get_db),
):
    permissions = [scope.value for scope in payload.permissions] if payload.permissions is not None else None
    api_key = create_api_key(
        db,
        owner=owner.user,
        admin_id=owner.admin.id,
        name=payload.name,
        description=payload.description,
        permissions=permissions,
        expires_at=payload.expires_at,
    )
    return success(api_key_payload(api_key, reveal_key=True), message="API key created successfully")


@router.get(
    "/stats",
    summary="API Key 统计",
    description="统计当前租户 API Key 总数、可用数、过期数与近 30 天使用数。",
    response_model=SuccessResponse[ApiKeyStatsData],
    responses=_OWNER_ERRORS,
)
def key_stats(
    owner: TenantOwner = Depends(require_tenant_owner("view API key statistics")),
    db: Session = Depends(get_db),
):
    return success(api_key_stats(db, owner.admin.id), message="API key statistics retrieved successfully")


@router.get(
    "/{key_id}",
    summary="API Key 详情",
    response_model=SuccessResponse[ApiKeyData],
    responses={404: {"model": ErrorResponse}, **_OWNER_ERRORS},
)
def show_key(
    key_id: int,
    owner: TenantOwner = Depends(require_tenant_owner("view API keys")),
    db: Session = Depends(get_db),
):
    api_key = get_api_key(db, owner.admin.id, key_id)
    return success(api_key_payload(api_key), message="API key retrieved successfully")


@router.put(
    "/{key_id}",
    summary="更新 API Key",
    description="更新名称、说明、授权范围、过期时间或启用状态；未提交的字段保持不变。",
    response_model=SuccessResponse[ApiKeyData],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}, **_OWNER_ERRORS},
)
def update_key(
    key_id: int,
    payload: ApiKeyUpdateRequest,
    owner: TenantOwner = Depends(require_tenant_owner("update API keys")),
    db: Session = Depends(get_db),
):
    api_key = get_api_key(db, owner.admin.id, key_id)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("permissions") is not None:
        changes["permissions"] = [scope.value for scope in changes["permissions"]]
    api_key = update_api_key(db, api_key, changes)
    return success(api_key_payload(api_key), message="API key updated successfully")


@router.delete(
    "/{key_id}",
    summary="停用 API Key",
    description="API Key 不做物理删除，删除操作等价于停用。",
    response_model=SuccessResponse[ApiKeyData],
    responses={404: {"model": ErrorResponse}, **_OWNER_ERRORS},
)
def delete_key(
    key_id: int,
    owner: TenantOwner = Depends(require_tenant_owner("delete API keys")),
    db: Session = Depends(get_db),
):
    api_key = deactivate_api_key(db, get_api_key(db, owner.admin.id, key_id))
    return success(api_key_payload(api_key), message="API key deactivated successfully")


@router.post(
    "/{key_id}/regenerate",
    summary="重置 API Key",
    description="生成新的密钥原文替换旧密钥，旧密钥立即失效；新密钥仅返回一次。",
    response_model=SuccessResponse[ApiKeySecretData],
    responses={404: {"model": ErrorResponse}, **_OWNER_ERRORS},
)
def regenerate_key(
    key_id: int,
    owner: TenantOwner = Depends(require_tenant_owner("regenerate API keys")),
    db: Session = Depends(get_db),
):
    api_key = regenerate_api_key(db, get_api_key(db, owner.admin.id, key_id))
    return success(api_key_payload(api_key, reveal_key=True), message="API key regenerated successfully")
