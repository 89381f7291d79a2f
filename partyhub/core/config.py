"""Application configuration primitives."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

_FALSE_VALUES = {"0", "false", "False", "no", "off"}


def _load_env(dotenv_path: Optional[Path] = None) -> None:
    """Load the .env file once for the process."""

    if getattr(_load_env, "_loaded", False):  # type: ignore[attr-defined]
        return

    load_dotenv(dotenv_path)
    setattr(_load_env, "_loaded", True)  # type: ignore[attr-defined]


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default) not in _FALSE_VALUES


@dataclass(frozen=True)
class DatabaseSettings:
    """Configuration for the relational database."""

    driver: str = "mysql+pymysql"
    user: str = "partyhub"
    password: str = "partyhub"
    host: str = "127.0.0.1"
    port: int = 3306
    name: str = "partyhub"
    url: str | None = None

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        """Instantiate settings using environment overrides when present."""

        defaults = cls()
        return cls(
            driver=os.getenv("DB_DRIVER", defaults.driver),
            user=os.getenv("DB_USER", defaults.user),
            password=os.getenv("DB_PASSWORD", defaults.password),
            host=os.getenv("DB_HOST", defaults.host),
            port=int(os.getenv("DB_PORT", defaults.port)),
            name=os.getenv("DB_NAME", defaults.name),
            url=os.getenv("DATABASE_URL") or None,
        )

    @property
    def sqlalchemy_url(self) -> str:
        """Return a SQLAlchemy compatible URL."""

        if self.url:
            return self.url
        return f"{self.driver}://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"

    @property
    def masked_url(self) -> str:
        """Return the connection URL with the password hidden, for logging."""

        if self.url:
            return self.url.split("@")[-1]
        pwd = "***" if self.password else ""
        return f"{self.driver}://{self.user}:{pwd}@{self.host}:{self.port}/{self.name}"


@dataclass(frozen=True)
class AuthSettings:
    """Bearer token settings."""

    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 120

    @classmethod
    def from_env(cls) -> "AuthSettings":
        defaults = cls()
        return cls(
            secret_key=os.getenv("JWT_SECRET_KEY", defaults.secret_key),
            algorithm=os.getenv("JWT_ALGORITHM", defaults.algorithm),
            access_token_expire_minutes=int(
                os.getenv("JWT_EXPIRE_MINUTES", defaults.access_token_expire_minutes)
            ),
        )


@dataclass(frozen=True)
class TenantSettings:
    """How the calling tenant is resolved from a request.

    There is no default tenant: a request without an explicit tenant id is
    rejected.
    """

    header_name: str = "X-Farm-ID"
    query_param: str = "farmId"
    allow_query_param: bool = True

    @classmethod
    def from_env(cls) -> "TenantSettings":
        defaults = cls()
        return cls(
            header_name=os.getenv("TENANT_HEADER", defaults.header_name),
            query_param=os.getenv("TENANT_QUERY_PARAM", defaults.query_param),
            allow_query_param=_env_flag("TENANT_ALLOW_QUERY_PARAM", "1"),
        )


@dataclass(frozen=True)
class LegacySettings:
    """Mirroring of party writes into the legacy denormalized tables."""

    sync_enabled: bool = True

    @classmethod
    def from_env(cls) -> "LegacySettings":
        return cls(sync_enabled=_env_flag("LEGACY_SYNC_ENABLED", "1"))


@dataclass(frozen=True)
class Settings:
    """Container for application configuration."""

    database: DatabaseSettings
    auth: AuthSettings = AuthSettings()
    tenant: TenantSettings = TenantSettings()
    legacy: LegacySettings = LegacySettings()
    sqlalchemy_echo: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, dotenv_path: Optional[Path] = None) -> "Settings":
        """Build ``Settings`` using environment variables (optionally from ``.env``)."""

        _load_env(dotenv_path)

        return cls(
            database=DatabaseSettings.from_env(),
            auth=AuthSettings.from_env(),
            tenant=TenantSettings.from_env(),
            legacy=LegacySettings.from_env(),
            sqlalchemy_echo=_env_flag("SQLALCHEMY_ECHO", "false"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
        )


@lru_cache()
def get_settings(dotenv_path: Optional[Path] = None) -> Settings:
    """Return a cached settings instance."""

    settings = Settings.from_env(dotenv_path=dotenv_path)

    # Import locally to avoid circular dependencies during module import time.
    from .logger import get_logger

    get_logger(__name__).debug(
        "Settings initialised",
        extra={
            "sqlalchemy_echo": settings.sqlalchemy_echo,
            "database": settings.database.masked_url,
            "tenant_header": settings.tenant.header_name,
            "legacy_sync": settings.legacy.sync_enabled,
        },
    )
    return settings
