"""Envelope shared by every JSON endpoint.

Shoppers' widgets and the merchant dashboard both branch on ``code``
(0 on success, an AppError code otherwise) and quote ``request_id`` when
reporting a problem, so the id matches the X-Request-ID response header
whenever RequestLogMiddleware has run.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request
from pydantic import BaseModel, Field

REQUEST_ID_PREFIX = "req_"


def new_request_id() -> str:
    return f"{REQUEST_ID_PREFIX}{uuid.uuid4().hex[:12]}"


def _utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApiResponse(BaseModel):
    code: int = 0
    message: str = "success"
    data: Any = None
    timestamp: str = Field(default_factory=_utc_iso)
    request_id: str = Field(default_factory=new_request_id)


def _with_request_id(resp: ApiResponse, request: Request | None) -> ApiResponse:
    if request is not None:
        stamped = getattr(request.state, "request_id", None)
        if stamped:
            resp.request_id = stamped
    return resp


def success_response(data: Any = None, request: Request | None = None) -> ApiResponse:
    return _with_request_id(ApiResponse(data=data), request)


def error_response(code: int, message: str, request: Request | None = None) -> ApiResponse:
    return _with_request_id(ApiResponse(code=code, message=message), request)
