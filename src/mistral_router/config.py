from __future__ import annotations

import os

from pydantic import BaseModel, Field

MISTRAL_API_BASE = "https://api.mistral.ai/v1"
CODESTRAL_API_BASE = "https://codestral.mistral.ai/v1"


def _parse_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class RouterConfig(BaseModel):
    # Provider credentials and endpoints
    mistral_api_key: str | None = Field(default_factory=lambda: os.getenv("MISTRAL_API_KEY"))
    codestral_api_key: str | None = Field(default_factory=lambda: os.getenv("CODESTRAL_API_KEY"))
    mistral_base_url: str = Field(default_factory=lambda: os.getenv("MISTRAL_BASE_URL", MISTRAL_API_BASE))
    codestral_base_url: str = Field(
        default_factory=lambda: os.getenv("CODESTRAL_BASE_URL", CODESTRAL_API_BASE)
    )

    # Generation defaults
    mistral_model: str = Field(default_factory=lambda: os.getenv("MISTRAL_MODEL", "mistral-large-latest"))
    codestral_model: str = Field(default_factory=lambda: os.getenv("CODESTRAL_MODEL", "codestral-latest"))
    mistral_temperature: float = Field(
        default_factory=lambda: float(os.getenv("MISTRAL_TEMPERATURE", "0.7")), ge=0.0, le=1.0
    )
    codestral_temperature: float = Field(
        default_factory=lambda: float(os.getenv("CODESTRAL_TEMPERATURE", "0.2")), ge=0.0, le=1.0
    )
    default_max_tokens: int = Field(default_factory=lambda: int(os.getenv("DEFAULT_MAX_TOKENS", "1024")), gt=0)

    # Observability
    enable_metrics: bool = Field(default_factory=lambda: _env_bool("ENABLE_METRICS"))
    metrics_bind: str = Field(default_factory=lambda: os.getenv("METRICS_BIND", "127.0.0.1"))
    metrics_port: int = Field(default_factory=lambda: int(os.getenv("METRICS_PORT", "9109")))
    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    log_format: str = Field(default_factory=lambda: os.getenv("LOG_FORMAT", "json"))

    # Test server
    enable_api_docs: bool = Field(default_factory=lambda: _env_bool("ENABLE_API_DOCS"))
    allowed_hosts: list[str] = Field(default_factory=lambda: _parse_csv(os.getenv("ALLOWED_HOSTS")))
    cors_allow_origins: list[str] = Field(default_factory=lambda: _parse_csv(os.getenv("CORS_ALLOW_ORIGINS")))
    max_request_body_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_REQUEST_BODY_BYTES", str(64 * 1024)))
    )
    max_prompt_chars: int = Field(default_factory=lambda: int(os.getenv("MAX_PROMPT_CHARS", "20000")))

    # Upstream HTTP behavior. One attempt and no breaker by default, so a routed
    # request costs one call, or two when the other provider is substituted.
    upstream_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_TIMEOUT_SECONDS", "60"))
    )
    upstream_max_attempts: int = Field(default_factory=lambda: int(os.getenv("UPSTREAM_MAX_ATTEMPTS", "1")))
    upstream_backoff_initial_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_BACKOFF_INITIAL_SECONDS", "0.5"))
    )
    upstream_backoff_max_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_BACKOFF_MAX_SECONDS", "8.0"))
    )
    upstream_circuit_breaker_failures: int = Field(
        default_factory=lambda: int(os.getenv("UPSTREAM_CIRCUIT_BREAKER_FAILURES", "0"))
    )
    upstream_circuit_breaker_reset_seconds: float = Field(
        default_factory=lambda: float(os.getenv("UPSTREAM_CIRCUIT_BREAKER_RESET_SECONDS", "30"))
    )

    # End-to-end deadline applied by the test server to each broker call
    request_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("REQUEST_TIMEOUT_SECONDS", "90"))
    )

    def secrets(self) -> list[str]:
        return [s for s in (self.mistral_api_key, self.codestral_api_key) if s]
