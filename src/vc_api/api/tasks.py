"""任务接口。

任务路由统一依赖 track_task_activity：路由处理结束后记录当前用户在该任务上的活跃时间。
"""

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from vc_api.db.session import get_db
from vc_api.dependencies import get_request_context, track_task_activity
from vc_api.exceptions import Forbidden, NotFound
from vc_api.models.task import Status, Task, TaskUser
from vc_api.pipeline.context import RequestContext
from vc_api.schemas.common import ErrorResponse, SuccessResponse
from vc_api.schemas.task import TaskData, TaskStatusUpdateRequest
from vc_api.utils.response import success

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _load_visible_task(db: Session, task_id: int, ctx: RequestContext) -> Task:
    """读取任务并校验可见性：参与人或同租户用户可见。"""
    task = db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    assigned = db.execute(
        select(TaskUser.task_id).where(TaskUser.task_id == task_id).where(TaskUser.user_id == ctx.user_id)
    ).first()
    if assigned is None and (task.admin_id is None or task.admin_id != ctx.principal.admin_id):
        raise Forbidden("You do not have access to this task")
    return task


def _task_payload(db: Session, task: Task, user_id: int) -> dict:
    slug = None
    if task.status_id is not None:
        slug = db.execute(select(Status.slug).where(Status.id == task.status_id)).scalar_one_or_none()
    rows = db.execute(select(TaskUser).where(TaskUser.task_id == task.id).order_by(TaskUser.user_id)).scalars().all()
    mine = next((row for row in rows if row.user_id == user_id), None)
    return {
        "id": task.id,
        "title": task.title,
        "status": slug,
        "assigned_user_ids": [row.user_id for row in rows],
        "my_last_activity_at": mine.last_activity_at if mine else None,
    }


@router.get(
    "",
    summary="我的任务",
    description="返回当前用户参与的任务列表。",
    response_model=SuccessResponse[list[TaskData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_my_tasks(
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    stmt = (
        select(Task)
        .join(TaskUser, TaskUser.task_id == Task.id)
        .where(TaskUser.user_id == ctx.user_id)
        .order_by(Task.id.desc())
    )
    tasks = db.execute(stmt).scalars().all()
    return success([_task_payload(db, task, ctx.user_id) for task in tasks], message="Tasks retrieved successfully")


@router.get(
    "/{task_id}",
    summary="任务详情",
    response_model=SuccessResponse[TaskData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def show_task(
    task_id: int,
    ctx: RequestContext = Depends(track_task_activity),
    db: Session = Depends(get_db),
):
    task = _load_visible_task(db, task_id, ctx)
    return success(_task_payload(db, task, ctx.user_id), message="Task retrieved successfully")


@router.put(
    "/{task_id}/status",
    summary="变更任务状态",
    description="按状态标识（slug）变更任务状态。任务进入 completed/archive 后不再记录活跃时间。",
    response_model=SuccessResponse[TaskData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def update_task_status(
    task_id: int,
    payload: TaskStatusUpdateRequest,
    ctx: RequestContext = Depends(track_task_activity),
    db: Session = Depends(get_db),
):
    task = _load_visible_task(db, task_id, ctx)
    target = db.execute(select(Status).where(Status.slug == payload.status)).scalar_one_or_none()
    if target is None:
        raise NotFound("Status not found")
    task.status_id = target.id
    db.commit()
    db.refresh(task)
    return success(_task_payload(db, task, ctx.user_id), message="Task status updated successfully")
