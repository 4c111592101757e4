"""Helpers shared by the API routers."""

from __future__ import annotations

import json

from fastapi import Request

from safewatch.core.errors import ValidationError


async def read_json_object(request: Request) -> dict:
    """Parse the request body as a JSON object or raise ValidationError."""
    body_bytes = await request.body()
    try:
        body = json.loads(body_bytes)
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("invalid JSON") from None
    if not isinstance(body, dict):
        raise ValidationError("request body must be a JSON object")
    return body


def optional_str(body: dict, key: str) -> str | None:
    value = body.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    return value
