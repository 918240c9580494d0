import os
import pathlib
import sys

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

TEST_DB_PATH = pathlib.Path(__file__).parent / "test_notifications.db"

os.environ["DATABASE_URL"] = f"sqlite:///{TEST_DB_PATH}"
os.environ.setdefault("SECRET_KEY", "test")
os.environ.setdefault("ACCESS_TOKEN_EXPIRE_MINUTES", "15")
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("SENDGRID_SENDER", None)

import pytest

from crm.config import get_settings, reset_settings_cache
from crm.domain.entities import Role, User
from crm.infrastructure import database
from crm.infrastructure.models import RoleModel
from crm.infrastructure.repositories import UserRepository


class RecordingPublisher:
    """Publisher double that records every message instead of pushing it."""

    def __init__(self, *, reached: int = 1, fail_for: set[int] | None = None) -> None:
        self.messages: list[tuple[int, str, dict]] = []
        self._reached = reached
        self._fail_for = fail_for or set()

    def publish(self, recipient_id, payload, *, event_type="notification"):
        if recipient_id in self._fail_for:
            raise RuntimeError("socket exploded")
        self.messages.append((recipient_id, event_type, payload))
        return self._reached

    def recipients(self, event_type: str = "notification") -> list[int]:
        return [user_id for user_id, kind, _ in self.messages if kind == event_type]


@pytest.fixture(autouse=True)
def fresh_database():
    """Give every test empty tables."""

    reset_settings_cache()
    from crm.infrastructure import models  # noqa: F401

    database.Base.metadata.drop_all(bind=database.engine)
    database.Base.metadata.create_all(bind=database.engine)
    yield
    database.engine.dispose()


@pytest.fixture(scope="session", autouse=True)
def remove_database_file():
    yield
    database.engine.dispose()
    if TEST_DB_PATH.exists():
        TEST_DB_PATH.unlink()


@pytest.fixture()
def session():
    db = database.SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture()
def roles(session) -> dict[str, Role]:
    created = {}
    for name, alias in (("Administrator", "admin"), ("Staff", "staff"), ("Viewer", "viewer")):
        model = RoleModel(name=name, alias=alias)
        session.add(model)
        session.commit()
        session.refresh(model)
        created[alias] = Role(id=model.id, name=model.name, alias=model.alias)
    return created


@pytest.fixture()
def make_user(session, roles):
    repository = UserRepository(session)
    counter = {"value": 0}

    def _make(role: str = "staff", *, name: str | None = None, deleted: bool = False) -> User:
        counter["value"] += 1
        index = counter["value"]
        return repository.create(
            User(
                id=None,
                role=roles[role],
                name=name or f"User {index}",
                email=f"user{index}@example.com",
                deleted=deleted,
            )
        )

    return _make


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture()
def make_publisher():
    return RecordingPublisher
