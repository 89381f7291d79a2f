import os

os.environ.setdefault("LOG_DIR", "")

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from partyhub.core.config import AuthSettings, DatabaseSettings, Settings
from partyhub.core.security import SecurityProvider
from partyhub.main import create_app
from partyhub.models import Base, Farm, FarmUser, User

MEMBER_ID = "user-member"
ADMIN_ID = "user-admin"


@pytest.fixture
def engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _foreign_keys(dbapi_connection, _record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


@pytest.fixture
def session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database=DatabaseSettings(url="sqlite://"),
        auth=AuthSettings(secret_key="test-secret"),
    )


@pytest.fixture
def security(settings: Settings) -> SecurityProvider:
    return SecurityProvider(settings.auth)


@pytest.fixture
def tenants(session_factory: sessionmaker) -> None:
    """Two farms, a regular member of both and a system administrator of farm-1."""

    with session_factory() as session:
        session.add_all(
            [
                Farm(id="farm-1", farm_name="Sunrise Microgreens"),
                Farm(id="farm-2", farm_name="Hillside Greens"),
                User(
                    id=MEMBER_ID,
                    first_name="Maya",
                    last_name="Lopez",
                    email="maya@sunrise.test",
                ),
                User(
                    id=ADMIN_ID,
                    first_name="Root",
                    last_name="Operator",
                    email="ops@platform.test",
                    is_system_admin=True,
                    system_role="SYSTEM_ADMIN",
                ),
            ]
        )
        session.flush()
        session.add_all(
            [
                FarmUser(farm_id="farm-1", user_id=MEMBER_ID, role="ADMIN"),
                FarmUser(farm_id="farm-2", user_id=MEMBER_ID, role="TEAM_MEMBER"),
                FarmUser(farm_id="farm-1", user_id=ADMIN_ID, role="ADMIN"),
            ]
        )
        session.commit()


@pytest.fixture
def client(
    tenants: None,
    settings: Settings,
    session_factory: sessionmaker,
    security: SecurityProvider,
) -> Iterator[TestClient]:
    app = create_app(
        settings=settings,
        session_factory=session_factory,
        security_provider=security,
    )
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(security: SecurityProvider) -> Callable[..., dict[str, str]]:
    def _headers(farm_id: str | None = "farm-1", user_id: str = MEMBER_ID) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {security.create_access_token(user_id)}"}
        if farm_id is not None:
            headers["X-Farm-ID"] = farm_id
        return headers

    return _headers
