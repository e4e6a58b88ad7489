from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from .settings import get_settings


def _default_error(status_code: int) -> str:
    if status_code == 400:
        return "Bad Request"
    if status_code == 401:
        return "Unauthorized"
    if status_code == 403:
        return "Forbidden"
    if status_code == 404:
        return "Not Found"
    if status_code == 405:
        return "Method not allowed"
    if status_code == 409:
        return "Conflict"
    if status_code >= 500:
        return "Internal server error"
    return "Error"


def _request_id(request: Request) -> str | None:
    rid = getattr(getattr(request, "state", None), "request_id", None)
    if rid:
        return str(rid)
    hdr = request.headers.get("x-request-id")
    return str(hdr) if hdr else None


def ok(data: Any = None, *, message: str | None = None, **extra: Any) -> dict[str, Any]:
    """Success envelope: `{success: true, data, message?, ...extra}`."""
    payload: dict[str, Any] = {"success": True}
    if data is not None:
        payload["data"] = data
    if message:
        payload["message"] = message
    for k, v in extra.items():
        if v is not None:
            payload[k] = v
    return payload


def error_payload(
    *,
    request: Request,
    status_code: int,
    error: str | None = None,
    message: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "error": error or _default_error(int(status_code)),
    }
    if message:
        payload["message"] = str(message)
    if errors:
        payload["errors"] = errors
    if details:
        payload["details"] = details

    rid = _request_id(request)
    if rid:
        payload["requestId"] = rid

    return payload


def error_response(
    *,
    request: Request,
    status_code: int,
    error: str | None = None,
    message: str | None = None,
    errors: list[dict[str, Any]] | None = None,
    details: dict[str, Any] | None = None,
) -> ORJSONResponse:
    settings = get_settings()

    # Never leak internal details in production for server errors.
    safe_message = message
    safe_details = details
    if int(status_code) >= 500 and settings.is_production:
        safe_message = None
        safe_details = None

    return ORJSONResponse(
        status_code=int(status_code),
        content=error_payload(
            request=request,
            status_code=int(status_code),
            error=error,
            message=safe_message,
            errors=errors,
            details=safe_details,
        ),
    )
