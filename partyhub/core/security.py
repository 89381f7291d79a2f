"""JWT helpers for bearer credentials."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache

import jwt
from jwt import ExpiredSignatureError, InvalidTokenError

from partyhub.core.config import AuthSettings, get_settings


class AuthenticationError(Exception):
    """Raised when authentication or token validation fails."""


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Claims carried by a decoded access token."""

    subject: str
    issued_at: int | None = None
    expires_at: int | None = None


class SecurityProvider:
    """Issue and verify JWT access tokens; ``sub`` is the user id."""

    def __init__(self, settings: AuthSettings) -> None:
        self._settings = settings

    @property
    def token_ttl_seconds(self) -> int:
        """Return the access token lifetime in seconds."""

        return int(self._settings.access_token_expire_minutes * 60)

    def create_access_token(self, user_id: str, *, expires_in: timedelta | None = None) -> str:
        """Create a signed JWT for ``user_id``."""

        now = datetime.now(tz=timezone.utc)
        lifetime = expires_in if expires_in is not None else timedelta(seconds=self.token_ttl_seconds)
        payload: dict[str, object] = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + lifetime).timestamp()),
        }
        return jwt.encode(payload, self._settings.secret_key, algorithm=self._settings.algorithm)

    def decode_token(self, token: str) -> TokenClaims:
        """Decode a JWT and return its claims."""

        try:
            payload = jwt.decode(
                token,
                self._settings.secret_key,
                algorithms=[self._settings.algorithm],
            )
        except ExpiredSignatureError as exc:
            raise AuthenticationError("Token expired") from exc
        except InvalidTokenError as exc:
            raise AuthenticationError("Invalid token") from exc

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise AuthenticationError("Token payload missing required claims")
        return TokenClaims(
            subject=subject,
            issued_at=payload.get("iat"),
            expires_at=payload.get("exp"),
        )


@lru_cache(maxsize=1)
def get_security_provider() -> SecurityProvider:
    """Return a cached security provider instance."""

    return SecurityProvider(get_settings().auth)


__all__ = [
    "AuthenticationError",
    "SecurityProvider",
    "TokenClaims",
    "get_security_provider",
]
