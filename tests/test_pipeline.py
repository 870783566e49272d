import logging
from datetime import timedelta

import pytest
from sqlalchemy.orm import Session

from vc_api.core.config import get_settings
from vc_api.core.security import utc_now
from vc_api.exceptions import Forbidden, Unauthorized
from vc_api.models.enums import AuthMethod
from vc_api.pipeline.context import Principal, RequestContext
from vc_api.pipeline.pipeline import RequestPipeline
from vc_api.services.membership import MembershipGate, MembershipGateConfig
from vc_api.services.permissions import PERMISSION_DENIED_MESSAGE, ScopePolicy

from fakes import FakeRequest


class CountingChecker:
    def __init__(self, active: bool = True) -> None:
        self.active = active
        self.calls = 0

    def is_active_member(self, email: str) -> bool:
        self.calls += 1
        return self.active


def _pipeline(db: Session, checker: CountingChecker, **kwargs) -> RequestPipeline:
    gate = MembershipGate(MembershipGateConfig(demo_mode=False, api_key="k"), checker, db)
    return RequestPipeline(db=db, settings=get_settings(), membership_gate=gate, **kwargs)


def test_enter_returns_context_for_permitted_api_key(db_session: Session, seed):
    owner, _ = seed.tenant_owner()
    api_key = seed.api_key(owner, permissions=["*"])
    checker = CountingChecker(active=False)

    ctx = _pipeline(db_session, checker).enter(FakeRequest(method="DELETE", headers={"X-API-Key": api_key.key}))

    assert ctx.auth_method == AuthMethod.API_KEY
    assert checker.calls == 0


def test_permission_denial_stops_before_gate(db_session: Session, seed):
    owner, _ = seed.tenant_owner()
    api_key = seed.api_key(owner, permissions=["read"])
    checker = CountingChecker()

    with pytest.raises(Forbidden) as exc_info:
        _pipeline(db_session, checker).enter(FakeRequest(method="PUT", headers={"X-API-Key": api_key.key}))

    assert exc_info.value.message == PERMISSION_DENIED_MESSAGE
    assert checker.calls == 0


def test_empty_scope_policy_is_injectable(db_session: Session, seed):
    owner, _ = seed.tenant_owner()
    api_key = seed.api_key(owner, permissions=[])
    request = FakeRequest(method="GET", headers={"X-API-Key": api_key.key})

    assert _pipeline(db_session, CountingChecker()).enter(request).is_api_key
    with pytest.raises(Forbidden):
        _pipeline(db_session, CountingChecker(), empty_scope_policy=ScopePolicy.DENY_ALL).enter(request)


def test_authentication_failure_short_circuits(db_session: Session):
    checker = CountingChecker()

    with pytest.raises(Unauthorized):
        _pipeline(db_session, checker).enter(FakeRequest(headers={"X-API-Key": "missing"}))
    assert checker.calls == 0


def test_suspended_owner_session_is_not_tracked(db_session: Session, seed):
    owner, _ = seed.tenant_owner()
    session, token = seed.session(owner, now=utc_now() - timedelta(hours=3))
    before = session.last_activity_at

    with pytest.raises(Forbidden):
        _pipeline(db_session, CountingChecker(active=False)).enter(
            FakeRequest(headers={"Authorization": f"Bearer {token}"})
        )

    db_session.expire_all()
    db_session.refresh(session)
    assert session.last_activity_at == before


def test_leave_logs_tracking_failures_at_debug(caplog):
    class BrokenSession:
        def execute(self, *args, **kwargs):
            raise RuntimeError("db down")

        def rollback(self):
            return None

    ctx = RequestContext(principal=Principal(user_id=5, email="u@example.com"), auth_method=AuthMethod.SESSION)
    pipeline = _pipeline(BrokenSession(), CountingChecker())
    request = FakeRequest(path="/api/v1/tasks/42", params={"task_id": "42"})

    with caplog.at_level(logging.DEBUG, logger="vc_api.pipeline.pipeline"):
        outcome = pipeline.leave(request, ctx)

    assert outcome.error == "db down"
    assert "task activity tracking failed user_id=5 path=/api/v1/tasks/42 error=db down" in caplog.text
