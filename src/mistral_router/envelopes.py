from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from .contracts import Result, Usage

RESPONSE_PREVIEW_CHARS = 200


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class UsagePayload(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None

    @classmethod
    def from_usage(cls, usage: Usage | None) -> "UsagePayload | None":
        if usage is None:
            return None
        return cls(**usage.as_dict())


class SuccessEnvelope(BaseModel):
    status: Literal["success"] = "success"
    message: str
    test: str
    provider: str
    response: str
    usage: UsagePayload | None = None
    fallback_from: str | None = None
    timestamp: str = Field(default_factory=_now_iso)


class ErrorEnvelope(BaseModel):
    status: Literal["error"] = "error"
    message: str
    error: str
    timestamp: str = Field(default_factory=_now_iso)


class InteractiveResponse(BaseModel):
    success: bool
    result: str | None = None
    provider: str | None = None
    usage: UsagePayload | None = None
    error: str | None = None


def preview(content: str, limit: int = RESPONSE_PREVIEW_CHARS) -> str:
    return content[:limit] + "..."


def error_text(exc: BaseException) -> str:
    return str(exc) or "Unknown error"


def make_success_envelope(*, message: str, test: str, result: Result, truncate: bool = False) -> SuccessEnvelope:
    return SuccessEnvelope(
        message=message,
        test=test,
        provider=result.provider.value,
        response=preview(result.content) if truncate else result.content,
        usage=UsagePayload.from_usage(result.usage),
        fallback_from=result.fallback_from.value if result.fallback_from is not None else None,
    )


def make_interactive_response(result: Result) -> InteractiveResponse:
    return InteractiveResponse(
        success=True,
        result=result.content,
        provider=result.provider.value,
        usage=UsagePayload.from_usage(result.usage),
    )
