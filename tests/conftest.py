"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database. The engine uses a
StaticPool so the API, the services and the background jobs all see the same
connection.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-enough-length-for-aes")

from typing import Callable, List, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import app.core.events  # noqa: F401  slug listeners
from app.core.db import Base, get_db
from app.core.identity import Identity
from app.core.security import create_access_token, hash_password
from app.core.tasks import TaskQueue, get_task_queue
from app.models.group import Group
from app.models.user import User
from app.services import membership
from app.services.home import HomeCaches, get_home_caches

PASSWORD = "correct-horse-battery"
PASSWORD_HASH = hash_password(PASSWORD)


class RecordingTaskQueue(TaskQueue):
    """Keeps jobs instead of running them; ``run_all`` executes them on demand."""

    def __init__(self):
        self.jobs: List[Tuple[str, Callable, tuple, dict]] = []
        self.failures: List[Tuple[str, BaseException]] = []
        self._failure_sink = lambda name, exc: self.failures.append((name, exc))

    def enqueue(self, job_name: str, func: Callable, *args, **kwargs) -> None:
        self.jobs.append((job_name, func, args, kwargs))

    def names(self) -> List[str]:
        return [name for name, _, _, _ in self.jobs]

    def run_all(self, **extra_kwargs) -> None:
        jobs, self.jobs = self.jobs, []
        for name, func, args, kwargs in jobs:
            self._run(name, func, args, {**kwargs, **extra_kwargs})

    def shutdown(self, wait: bool = True) -> None:
        return None


class ManualClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def tasks() -> RecordingTaskQueue:
    return RecordingTaskQueue()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def make_group(db: Session):
    def factory(name: str, **fields) -> Group:
        group = Group(name=name, **fields)
        db.add(group)
        db.commit()
        db.refresh(group)
        return group

    return factory


@pytest.fixture
def make_user(db: Session):
    counter = {"n": 0}

    def factory(role: str = "user", member_of=(), admin_of=(), username: str | None = None, **fields) -> User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        user = User(
            username=username,
            email=fields.pop("email", f"{username}@example.com"),
            password_hash=PASSWORD_HASH,
            role=role,
            **fields,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        if member_of:
            membership.set_user_groups(db, user.id, [g.id for g in member_of])
        for group in admin_of:
            current = {u.id for u in membership.admins_of(db, group.id)}
            membership.set_group_admins(db, group.id, current | {user.id})
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def identity_of(db: Session) -> Callable[[User], Identity]:
    def resolve(user: User) -> Identity:
        return membership.load_identity(db, user)

    return resolve


@pytest.fixture
def client(session_factory, tasks):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    caches = HomeCaches()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_task_queue] = lambda: tasks
    app.dependency_overrides[get_home_caches] = lambda: caches
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers() -> Callable[[User], dict]:
    def headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token({'sub': str(user.id)})}"}

    return headers
