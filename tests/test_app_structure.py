from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from partyhub.core.config import Settings, get_settings
from partyhub.main import create_app


def test_create_app_registers_party_routers(settings: Settings, session_factory: sessionmaker) -> None:
    app = create_app(settings=settings, session_factory=session_factory)
    assert isinstance(app, FastAPI)
    paths = app.openapi()["paths"]
    for path in (
        "/parties",
        "/parties/{party_id}",
        "/parties/{party_id}/roles",
        "/parties/{party_id}/contacts/{contact_id}",
        "/parties/{party_id}/relationships",
        "/parties/customers",
        "/parties/customers/{party_id}",
        "/parties/users",
        "/parties/users/{party_id}",
    ):
        assert path in paths
    assert app.state.legacy_sync.enabled is True


def test_named_collections_win_over_party_ids(client: TestClient, auth_headers) -> None:
    customers = client.get("/parties/customers", headers=auth_headers())
    users = client.get("/parties/users", headers=auth_headers())
    unknown = client.get("/parties/customers/unknown", headers=auth_headers())

    assert customers.status_code == 200
    assert customers.json()["data"] == []
    assert users.status_code == 200
    assert unknown.status_code == 404


def test_legacy_sync_follows_settings(session_factory: sessionmaker, monkeypatch) -> None:
    monkeypatch.setenv("LEGACY_SYNC_ENABLED", "0")
    app = create_app(settings=Settings.from_env(), session_factory=session_factory)

    assert app.state.legacy_sync.enabled is False


def test_get_settings_uses_default_configuration(monkeypatch) -> None:
    for name in (
        "DB_HOST",
        "DB_PORT",
        "DB_USER",
        "DB_PASSWORD",
        "DB_NAME",
        "DATABASE_URL",
        "SQLALCHEMY_ECHO",
        "TENANT_HEADER",
        "LEGACY_SYNC_ENABLED",
    ):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()

    try:
        settings = get_settings()
    finally:
        get_settings.cache_clear()

    assert settings.database.host == "127.0.0.1"
    assert settings.database.port == 3306
    assert settings.database.user == "partyhub"
    assert settings.database.password == "partyhub"
    assert settings.database.name == "partyhub"
    assert settings.sqlalchemy_echo is False
    assert settings.tenant.header_name == "X-Farm-ID"
    assert settings.legacy.sync_enabled is True
