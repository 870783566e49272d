"""健康检查接口。"""

from sqlalchemy import text
from sqlalchemy.orm import Session

from fastapi import APIRouter, Depends, status

from vc_api.db.session import get_db
from vc_api.utils.response import success
from vc_api.schemas.common import ErrorResponse, SuccessResponse

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="用于容器编排系统检测服务进程是否存活。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[dict[str, str]],
    responses={500: {"model": ErrorResponse}},
)
def live():
    """仅表示进程存活，不校验外部依赖，也不经过认证管线。"""
    return success({"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="通过数据库连通性检测服务是否具备对外提供能力。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[dict[str, str]],
    responses={500: {"model": ErrorResponse}},
)
def ready(db: Session = Depends(get_db)):
    db.execute(text("select 1"))
    return success({"status": "ready"})
