from datetime import timedelta

from sqlalchemy.orm import Session

from vc_api.core.security import as_utc, utc_now
from vc_api.models.auth import UserSession
from vc_api.models.enums import AuthMethod
from vc_api.pipeline.context import ApiKeyGrant, Principal, RequestContext
from vc_api.services.activity import track_session_activity
from vc_api.services.sessions import close_stale_sessions, end_session, find_session_by_token, touch_session_activity

from fakes import FakeRequest


def _ctx(user, session_id: int | None = None) -> RequestContext:
    return RequestContext(
        principal=Principal(user_id=user.id, email=user.email),
        auth_method=AuthMethod.SESSION,
        session_id=session_id,
    )


def _bearer(token: str) -> FakeRequest:
    return FakeRequest(headers={"Authorization": f"Bearer {token}"})


def _reload(db: Session, session_id: int) -> UserSession:
    db.expire_all()
    return db.get(UserSession, session_id)


def test_start_session_is_found_by_token(db_session: Session, seed):
    user = seed.user()
    session, token = seed.session(user)

    found = find_session_by_token(db_session, token)
    assert found.id == session.id
    assert found.user_id == user.id
    assert found.is_live


def test_touch_session_activity_only_moves_forward(db_session: Session, seed):
    user = seed.user()
    now = utc_now()
    session, _ = seed.session(user, now=now - timedelta(minutes=10))

    assert touch_session_activity(db_session, session.id, now) is True
    assert as_utc(_reload(db_session, session.id).last_activity_at) == now

    assert touch_session_activity(db_session, session.id, now - timedelta(minutes=5)) is False
    assert as_utc(_reload(db_session, session.id).last_activity_at) == now


def test_touch_session_activity_ignores_logged_out_session(db_session: Session, seed):
    user = seed.user()
    session, _ = seed.session(user)
    end_session(db_session, session)
    db_session.commit()

    assert touch_session_activity(db_session, session.id, utc_now()) is False


def test_end_session_records_duration_once(db_session: Session, seed):
    user = seed.user()
    login_at = utc_now() - timedelta(minutes=30)
    session, _ = seed.session(user, now=login_at)

    end_session(db_session, session, login_at + timedelta(minutes=30))
    db_session.commit()
    end_session(db_session, session, login_at + timedelta(hours=5))
    db_session.commit()

    reloaded = _reload(db_session, session.id)
    assert as_utc(reloaded.logout_at) == login_at + timedelta(minutes=30)
    assert reloaded.duration_seconds == 1800


def test_close_stale_sessions(db_session: Session, seed):
    user = seed.user()
    now = utc_now()
    stale, _ = seed.session(user, now=now - timedelta(hours=30))
    fresh, _ = seed.session(user, now=now - timedelta(hours=1))

    assert close_stale_sessions(db_session, now) == 1
    assert _reload(db_session, stale.id).logout_at is not None
    assert _reload(db_session, fresh.id).logout_at is None


def test_tracker_bumps_live_session(db_session: Session, seed):
    user = seed.user()
    session, token = seed.session(user)
    now = utc_now()

    outcome = track_session_activity(db_session, _bearer(token), _ctx(user, session.id), now)

    assert outcome.recorded
    assert as_utc(_reload(db_session, session.id).last_activity_at) == now


def test_tracker_skips_without_session_context(db_session: Session, seed):
    user = seed.user()
    _, token = seed.session(user)

    assert track_session_activity(db_session, _bearer(token), None).reason == "unauthenticated"
    assert track_session_activity(db_session, _bearer(token), _ctx(user)).reason == "not_session"


def test_api_key_request_never_bumps_bearer_session(db_session: Session, seed):
    owner = seed.user()
    other = seed.user()
    session, token = seed.session(other)
    before = _reload(db_session, session.id).last_activity_at
    ctx = RequestContext(
        principal=Principal(user_id=owner.id, email=owner.email),
        auth_method=AuthMethod.API_KEY,
        api_key=ApiKeyGrant(key_id=1, name="integration", scopes=None),
    )

    outcome = track_session_activity(db_session, _bearer(token), ctx, utc_now())

    assert outcome.reason == "not_session"
    assert _reload(db_session, session.id).last_activity_at == before


def test_tracker_skips_logged_out_session(db_session: Session, seed):
    user = seed.user()
    session, token = seed.session(user)
    end_session(db_session, session)
    db_session.commit()

    outcome = track_session_activity(db_session, _bearer(token), _ctx(user, session.id))

    assert not outcome.recorded
    assert outcome.reason == "no_live_session"
    assert outcome.ok


def test_tracker_reports_failure_instead_of_raising(seed):
    user = seed.user()
    session, token = seed.session(user)

    class ExplodingSession:
        def get(self, *args, **kwargs):
            raise RuntimeError("database unavailable")

        def rollback(self):
            raise RuntimeError("rollback failed too")

    outcome = track_session_activity(ExplodingSession(), _bearer(token), _ctx(user, session.id))

    assert not outcome.recorded
    assert not outcome.ok
    assert outcome.error == "database unavailable"
