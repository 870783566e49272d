from datetime import timedelta

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from vc_api.core.security import as_utc, utc_now
from vc_api.models.enums import AuthMethod
from vc_api.models.task import TaskUser
from vc_api.pipeline.context import Principal, RequestContext
from vc_api.services.activity import (
    TASK_ROUTE_PARAMS,
    is_task_route,
    resolve_task_id,
    track_task_activity,
    update_task_activity,
)

from fakes import FakeRequest


def _ctx(user) -> RequestContext:
    return RequestContext(principal=Principal(user_id=user.id, email=user.email), auth_method=AuthMethod.SESSION)


def _activity(db: Session, task_id: int, user_id: int):
    db.expire_all()
    row = db.execute(
        select(TaskUser).where(TaskUser.task_id == task_id).where(TaskUser.user_id == user_id)
    ).scalar_one()
    return as_utc(row.last_activity_at)


def _task_request(task_id, param: str = "task_id", path: str | None = None) -> FakeRequest:
    return FakeRequest(path=path or f"/api/v1/tasks/{task_id}/status", params={param: str(task_id)})


def test_route_params_are_checked_in_order():
    assert TASK_ROUTE_PARAMS == ("task_id", "id")
    assert resolve_task_id({"task_id": "42", "id": "7"}.get) == 42
    assert resolve_task_id({"id": "7"}.get) == 7
    assert resolve_task_id({"task_id": "", "id": "7"}.get) == 7
    assert resolve_task_id({"task_id": "abc", "id": "7"}.get) is None
    assert resolve_task_id({}.get) is None


def test_is_task_route_matches_path_segment():
    assert is_task_route("/api/v1/tasks/42")
    assert is_task_route("/api/v1/projects/3/tasks/42/")
    assert not is_task_route("/api/v1/task-lists/42")
    assert not is_task_route("/api/v1/projects/42")


def test_assigned_user_activity_is_recorded(db_session: Session, seed):
    user = seed.user()
    pending = seed.status("pending")
    task = seed.task(admin_id=None, status=pending, assignees=(user,), task_id=42)
    now = utc_now()

    outcome = track_task_activity(db_session, _task_request(task.id), _ctx(user), now)

    assert outcome.recorded
    assert _activity(db_session, task.id, user.id) == now


def test_legacy_id_param_is_accepted(db_session: Session, seed):
    user = seed.user()
    task = seed.task(admin_id=None, assignees=(user,))

    outcome = track_task_activity(db_session, _task_request(task.id, param="id"), _ctx(user))

    assert outcome.recorded


def test_unassigned_user_is_skipped(db_session: Session, seed):
    assignee = seed.user()
    outsider = seed.user()
    task = seed.task(admin_id=None, assignees=(assignee,))

    outcome = track_task_activity(db_session, _task_request(task.id), _ctx(outsider))

    assert outcome.reason == "not_assigned"
    assert _activity(db_session, task.id, assignee.id) is None


@pytest.mark.parametrize("slug", ["completed", "archive"])
def test_closed_tasks_are_not_recorded(db_session: Session, seed, slug: str):
    user = seed.user()
    closed = seed.status(slug)
    earlier = utc_now() - timedelta(days=2)
    task = seed.task(admin_id=None, status=closed, assignees=(user,), last_activity_at=earlier)

    outcome = track_task_activity(db_session, _task_request(task.id), _ctx(user))

    assert not outcome.recorded
    assert outcome.reason == "task_closed_or_not_newer"
    assert _activity(db_session, task.id, user.id) == earlier


def test_task_activity_only_moves_forward(db_session: Session, seed):
    user = seed.user()
    now = utc_now()
    task = seed.task(admin_id=None, assignees=(user,), last_activity_at=now)

    assert update_task_activity(db_session, task_id=task.id, user_id=user.id, now=now - timedelta(minutes=1)) is False
    assert _activity(db_session, task.id, user.id) == now


def test_non_task_routes_and_anonymous_requests_are_skipped(db_session: Session, seed):
    user = seed.user()
    task = seed.task(admin_id=None, assignees=(user,))

    project_request = FakeRequest(path=f"/api/v1/projects/{task.id}", params={"id": str(task.id)})
    assert track_task_activity(db_session, project_request, _ctx(user)).reason == "not_task_route"
    assert track_task_activity(db_session, FakeRequest(path="/api/v1/tasks"), _ctx(user)).reason == "not_task_route"
    assert track_task_activity(db_session, _task_request(task.id), None).reason == "unauthenticated"
