"""Response envelope shared by every endpoint."""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, (list, tuple)):
        return [_dump(item) for item in value]
    return value


def success_envelope(data: Any = None, **extra: Any) -> dict[str, Any]:
    """Wrap ``data`` as ``{"success": true, "data": ...}``."""

    payload: dict[str, Any] = {"success": True}
    if data is not None:
        payload["data"] = _dump(data)
    payload.update(extra)
    return payload


def error_envelope(message: str, **extra: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {"success": False, "error": message}
    payload.update(extra)
    return payload
