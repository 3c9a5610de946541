"""Unified API response envelopes.

Success:
{
    "success": true,
    "data": { ... },
    "pagination": {"total": .., "limit": .., "offset": .., "hasMore": ..},  // list endpoints only
    "timestamp": "...",
    "requestId": "..."
}

Error:
{
    "success": false,
    "error": "Market not found: ...",
    "code": 3001,
    "timestamp": "...",
    "requestId": "..."
}
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every API-facing schema: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Pagination(CamelModel):
    total: int
    limit: int
    offset: int
    has_more: bool

    @classmethod
    def build(cls, total: int, limit: int, offset: int) -> "Pagination":
        return cls(total=total, limit=limit, offset=offset, has_more=offset + limit < total)


def _request_id() -> str:
    return f"req_{uuid.uuid4().hex[:12]}"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class ApiResponse(CamelModel):
    success: bool = True
    data: Any = None
    pagination: Pagination | None = None
    timestamp: str = Field(default_factory=_now_iso)
    request_id: str = Field(default_factory=_request_id)


class ErrorResponse(CamelModel):
    success: bool = False
    error: str
    code: int
    timestamp: str = Field(default_factory=_now_iso)
    request_id: str = Field(default_factory=_request_id)


def success_response(data: Any = None, pagination: Pagination | None = None) -> ApiResponse:
    return ApiResponse(success=True, data=data, pagination=pagination)


def error_response(code: int, message: str) -> ErrorResponse:
    return ErrorResponse(code=code, error=message)
