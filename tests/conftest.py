import os
from collections.abc import Generator
from datetime import datetime, timedelta

# 在导入应用模块之前固定测试配置。
os.environ.setdefault("VC_AUTH_JWT_SECRET", "unit-test-secret-key-at-least-32-bytes")
os.environ.setdefault("VC_AUTH_PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("VC_APP_ENV", "testing")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import vc_api.models  # noqa: F401
from vc_api.core.config import get_settings
from vc_api.core.security import utc_now
from vc_api.db.session import get_db
from vc_api.dependencies import get_membership_checker, get_membership_gate_config
from vc_api.main import app
from vc_api.models.auth import ApiKey, UserSession
from vc_api.models.base import Base
from vc_api.models.enums import UserStatus
from vc_api.models.task import Status, Task, TaskUser
from vc_api.models.tenant import Admin, User
from vc_api.services.local_auth import hash_password
from vc_api.services.membership import MembershipGateConfig
from vc_api.services.sessions import start_session

from fakes import DEFAULT_PASSWORD


class FakeMembershipChecker:
    """按邮箱返回预设会员状态，并记录查询过的邮箱。"""

    def __init__(self, default: bool = True) -> None:
        self.default = default
        self.members: dict[str, bool] = {}
        self.calls: list[str] = []

    def set(self, email: str, active: bool) -> None:
        self.members[email] = active

    def is_active_member(self, email: str) -> bool:
        self.calls.append(email)
        return self.members.get(email, self.default)


class MembershipState:
    """HTTP 测试中可变的会员门禁配置。"""

    def __init__(self) -> None:
        self.checker = FakeMembershipChecker()
        self.config = MembershipGateConfig(demo_mode=False, api_key="membership-test-key")


class Seeder:
    """测试数据构造器，每个方法都会提交事务。"""

    def __init__(self, db: Session) -> None:
        self.db = db
        self._counter = 0

    def _next(self) -> int:
        self._counter += 1
        return self._counter

    def user(
        self,
        email: str | None = None,
        *,
        password: str = DEFAULT_PASSWORD,
        admin_id: int | None = None,
        status: int = UserStatus.ACTIVE,
    ) -> User:
        user = User(
            email=email or f"user{self._next()}@example.com",
            first_name="Test",
            last_name="User",
            password_hash=hash_password(password),
            admin_id=admin_id,
            status=status,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def tenant_owner(self, email: str | None = None, *, company_name: str = "Acme Supplies") -> tuple[User, Admin]:
        user = self.user(email)
        admin = Admin(user_id=user.id, company_name=company_name)
        self.db.add(admin)
        self.db.flush()
        user.admin_id = admin.id
        self.db.commit()
        return user, admin

    def api_key(
        self,
        user: User,
        *,
        permissions: list[str] | None = None,
        is_active: bool = True,
        expires_at: datetime | None = None,
        key: str | None = None,
    ) -> ApiKey:
        api_key = ApiKey(
            user_id=user.id,
            admin_id=user.admin_id,
            name="integration",
            key=key or f"vck_test_{self._next():036d}",
            permissions=permissions,
            is_active=is_active,
            expires_at=expires_at,
        )
        self.db.add(api_key)
        self.db.commit()
        return api_key

    def session(self, user: User, *, now: datetime | None = None) -> tuple[UserSession, str]:
        session, token, _ = start_session(self.db, user=user, now=now or utc_now() - timedelta(hours=1))
        self.db.commit()
        return session, token

    def status(self, slug: str) -> Status:
        status = Status(title=slug.replace("-", " ").title(), slug=slug)
        self.db.add(status)
        self.db.commit()
        return status

    def task(
        self,
        *,
        admin_id: int | None,
        status: Status | None = None,
        assignees: tuple[User, ...] = (),
        last_activity_at: datetime | None = None,
        task_id: int | None = None,
    ) -> Task:
        task = Task(admin_id=admin_id, title="Quarterly vendor review", status_id=status.id if status else None)
        if task_id is not None:
            task.id = task_id
        self.db.add(task)
        self.db.flush()
        for user in assignees:
            self.db.add(TaskUser(task_id=task.id, user_id=user.id, last_activity_at=last_activity_at))
        self.db.commit()
        return task


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    get_settings.cache_clear()
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
    get_settings.cache_clear()


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def seed(db_session: Session) -> Seeder:
    return Seeder(db_session)


@pytest.fixture
def membership() -> MembershipState:
    return MembershipState()


@pytest.fixture
def client(session_factory: sessionmaker, membership: MembershipState) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides.clear()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_membership_checker] = lambda: membership.checker
    app.dependency_overrides[get_membership_gate_config] = lambda: membership.config
    with TestClient(app, headers={"Accept": "application/json"}) as test_client:
        yield test_client
    app.dependency_overrides.clear()
