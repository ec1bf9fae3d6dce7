from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import InvalidInput


class Provider(str, Enum):
    MISTRAL = "mistral"
    CODESTRAL = "codestral"

    @property
    def other(self) -> "Provider":
        return Provider.CODESTRAL if self is Provider.MISTRAL else Provider.MISTRAL

    @property
    def supports_fim(self) -> bool:
        return self is Provider.CODESTRAL


class ProviderChoice(str, Enum):
    MISTRAL = "mistral"
    CODESTRAL = "codestral"
    AUTO = "auto"


class Endpoint(str, Enum):
    CHAT = "chat"
    FIM = "fim"


class Intent(str, Enum):
    CODE = "code"
    CHAT = "chat"


class RequestConfig(BaseModel):
    """Per-call options. Accepts the camelCase `maxTokens` alias as well."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    model: str | None = None
    temperature: float | None = Field(default=None, strict=True)
    max_tokens: int | None = Field(default=None, alias="maxTokens", strict=True)
    endpoint: Endpoint | None = None
    provider: ProviderChoice | None = None
    suffix: str | None = None

    @field_validator("model")
    @classmethod
    def _validate_model(cls, v: str | None) -> str | None:
        if v is None:
            return None
        if not v.strip():
            raise ValueError("model must be non-empty.")
        return v.strip()

    @field_validator("temperature")
    @classmethod
    def _validate_temperature(cls, v: float | None) -> float | None:
        if v is None:
            return None
        if not (0.0 <= v <= 1.0):
            raise ValueError("temperature must be between 0 and 1.")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _validate_max_tokens(cls, v: int | None) -> int | None:
        if v is None:
            return None
        if v <= 0:
            raise ValueError("max_tokens must be > 0.")
        return v

    def without(self, *names: str) -> "RequestConfig":
        return self.model_copy(update={name: None for name in names})


def coerce_config(config: RequestConfig | Mapping[str, Any] | None) -> RequestConfig:
    if config is None:
        return RequestConfig()
    if isinstance(config, RequestConfig):
        return config
    if not isinstance(config, Mapping):
        raise InvalidInput(f"config must be a mapping or RequestConfig, got {type(config).__name__}.")
    try:
        return RequestConfig.model_validate(dict(config))
    except ValidationError as e:
        details = "; ".join(f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors())
        raise InvalidInput(f"Invalid request config: {details}") from e


def validate_prompt(prompt: Any, *, max_chars: int | None = None) -> str:
    if not isinstance(prompt, str):
        raise InvalidInput("prompt must be a string.")
    if not prompt.strip():
        raise InvalidInput("prompt must be non-empty.")
    if max_chars and len(prompt) > max_chars:
        raise InvalidInput(f"prompt exceeds {max_chars} characters.")
    return prompt


@dataclass(frozen=True)
class Usage:
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None
    raw: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    def as_dict(self) -> dict[str, int | None]:
        return {
            "prompt_tokens": self.prompt_tokens,
            "completion_tokens": self.completion_tokens,
            "total_tokens": self.total_tokens,
        }


@dataclass(frozen=True)
class Result:
    content: str
    provider: Provider
    model: str
    endpoint: Endpoint = Endpoint.CHAT
    usage: Usage | None = None
    latency_seconds: float = 0.0
    fallback_from: Provider | None = None

    @property
    def fell_back(self) -> bool:
        return self.fallback_from is not None


@dataclass(frozen=True)
class ProviderRequest:
    provider: Provider
    endpoint: Endpoint
    model: str
    payload: dict[str, Any]
    timeout_seconds: float | None = None


@dataclass(frozen=True)
class ProviderResponse:
    provider: Provider
    status_code: int
    body: Any
