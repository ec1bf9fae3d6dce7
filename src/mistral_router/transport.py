from __future__ import annotations

import asyncio
import random
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx
import structlog

from .config import RouterConfig
from .contracts import Endpoint, Provider, ProviderRequest, ProviderResponse
from .errors import (
    AuthenticationError,
    CircuitBreakerOpenError,
    MalformedResponse,
    ProviderUnavailable,
    RateLimitError,
)
from .metrics import upstream_circuit_breaker_events_total

log = structlog.get_logger()

_ENDPOINT_PATHS = {
    Endpoint.CHAT: "/chat/completions",
    Endpoint.FIM: "/fim/completions",
}


@runtime_checkable
class Transport(Protocol):
    """The network boundary of the broker: one provider request in, one response out."""

    async def send(self, request: ProviderRequest) -> ProviderResponse: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class ProviderTarget:
    base_url: str
    api_key: str | None


class _CircuitBreaker:
    def __init__(self, provider: Provider, *, threshold: int, reset_seconds: float, clock: Callable[[], float]):
        self.provider = provider
        self._threshold = max(0, int(threshold))
        self._reset_seconds = max(0.0, float(reset_seconds))
        self._clock = clock
        self._failures = 0
        self._open_until: float | None = None

    def remaining_seconds(self) -> int | None:
        if self._open_until is None:
            return None
        remaining = self._open_until - self._clock()
        if remaining <= 0:
            return None
        return int(remaining) + 1

    def allow(self) -> None:
        if self._threshold <= 0:
            return
        remaining = self.remaining_seconds()
        if remaining is None:
            return
        upstream_circuit_breaker_events_total.labels(provider=self.provider.value, event="short_circuit").inc()
        raise CircuitBreakerOpenError(retry_after_seconds=remaining, provider=self.provider.value)

    def on_success(self) -> None:
        if self._threshold <= 0:
            return
        self._failures = 0
        self._open_until = None

    def on_failure(self) -> None:
        if self._threshold <= 0:
            return
        self._failures += 1
        if self._failures < self._threshold or self._reset_seconds <= 0:
            return
        self._open_until = self._clock() + self._reset_seconds
        upstream_circuit_breaker_events_total.labels(provider=self.provider.value, event="open").inc()


class HttpTransport:
    """
    httpx-backed transport for the Mistral and Codestral platform APIs.

    Retries and the circuit breaker are opt-in (`max_attempts > 1`,
    `circuit_breaker_failures > 0`). With the defaults every `send` is exactly
    one HTTP request.
    """

    def __init__(
        self,
        targets: dict[Provider, ProviderTarget],
        *,
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 60,
        max_attempts: int = 1,
        backoff_initial_seconds: float = 0.5,
        backoff_max_seconds: float = 8.0,
        circuit_breaker_failures: int = 0,
        circuit_breaker_reset_seconds: float = 30.0,
        sleeper: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self._targets = dict(targets)
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._max_attempts = max(1, max_attempts)
        self._backoff_initial_seconds = max(0.0, backoff_initial_seconds)
        self._backoff_max_seconds = max(self._backoff_initial_seconds, backoff_max_seconds)
        self._sleep: Callable[[float], Awaitable[None]] = sleeper or asyncio.sleep
        clock = clock or time.monotonic
        self._breakers = {
            provider: _CircuitBreaker(
                provider,
                threshold=circuit_breaker_failures,
                reset_seconds=circuit_breaker_reset_seconds,
                clock=clock,
            )
            for provider in Provider
        }

    @classmethod
    def from_config(cls, cfg: RouterConfig, *, client: httpx.AsyncClient | None = None) -> "HttpTransport":
        return cls(
            {
                Provider.MISTRAL: ProviderTarget(cfg.mistral_base_url, cfg.mistral_api_key),
                Provider.CODESTRAL: ProviderTarget(cfg.codestral_base_url, cfg.codestral_api_key),
            },
            client=client,
            timeout_seconds=cfg.upstream_timeout_seconds,
            max_attempts=cfg.upstream_max_attempts,
            backoff_initial_seconds=cfg.upstream_backoff_initial_seconds,
            backoff_max_seconds=cfg.upstream_backoff_max_seconds,
            circuit_breaker_failures=cfg.upstream_circuit_breaker_failures,
            circuit_breaker_reset_seconds=cfg.upstream_circuit_breaker_reset_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    def _compute_backoff(self, attempt_index: int) -> float:
        # attempt_index: 0-based retry count (0 for first retry)
        base = float(min(self._backoff_max_seconds, self._backoff_initial_seconds * (2**attempt_index)))
        jitter = float(random.uniform(0.0, min(0.25, base * 0.1))) if base > 0 else 0.0
        return base + jitter

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        provider = request.provider
        name = provider.value
        breaker = self._breakers[provider]
        breaker.allow()

        target = self._targets.get(provider)
        if target is None:
            raise ProviderUnavailable(f"No endpoint configured for {name}.", provider=name)
        if not target.api_key:
            raise AuthenticationError(f"Missing API key for {name}.", provider=name)

        url = f"{target.base_url.rstrip('/')}{_ENDPOINT_PATHS[request.endpoint]}"
        headers = {
            "Authorization": f"Bearer {target.api_key}",
            "Accept": "application/json",
        }
        post_kwargs: dict = {"headers": headers, "json": request.payload}
        if request.timeout_seconds is not None:
            post_kwargs["timeout"] = request.timeout_seconds

        for attempt in range(self._max_attempts):
            last_attempt = attempt >= self._max_attempts - 1
            try:
                resp = await self._client.post(url, **post_kwargs)
            except httpx.TimeoutException as e:
                breaker.on_failure()
                if last_attempt:
                    raise ProviderUnavailable(f"{name} request timed out.", provider=name) from e
                await self._sleep(self._compute_backoff(attempt))
                continue
            except httpx.HTTPError as e:
                breaker.on_failure()
                if last_attempt:
                    raise ProviderUnavailable(
                        f"{name} request failed: {e.__class__.__name__}.", provider=name
                    ) from e
                await self._sleep(self._compute_backoff(attempt))
                continue

            if resp.status_code in (401, 403):
                raise AuthenticationError(
                    f"{name} rejected credentials ({resp.status_code}).",
                    provider=name,
                    status_code=resp.status_code,
                )

            if resp.status_code == 429:
                retry_after = resp.headers.get("retry-after")
                retry_seconds = int(retry_after) if retry_after and retry_after.isdigit() else None
                breaker.on_failure()
                if last_attempt:
                    raise RateLimitError(retry_after_seconds=retry_seconds, provider=name)
                await self._sleep(retry_seconds if retry_seconds is not None else self._compute_backoff(attempt))
                continue

            if 500 <= resp.status_code <= 599:
                breaker.on_failure()
                if last_attempt:
                    log.warning(
                        "provider_upstream_5xx", provider=name, status_code=resp.status_code, body=resp.text[:500]
                    )
                    raise ProviderUnavailable(
                        f"{name} error {resp.status_code}.", provider=name, status_code=resp.status_code
                    )
                await self._sleep(self._compute_backoff(attempt))
                continue

            if not 200 <= resp.status_code < 300:
                log.warning(
                    "provider_upstream_non_2xx", provider=name, status_code=resp.status_code, body=resp.text[:500]
                )
                raise ProviderUnavailable(
                    f"{name} error {resp.status_code}.", provider=name, status_code=resp.status_code
                )

            try:
                data = resp.json()
            except ValueError as e:
                raise MalformedResponse(f"{name} returned a non-JSON body.", provider=name) from e
            break
        else:  # pragma: no cover
            raise ProviderUnavailable(f"{name} request failed after retries.", provider=name)

        breaker.on_success()
        log.debug("provider_send_ok", provider=name, endpoint=request.endpoint.value, model=request.model)
        return ProviderResponse(provider=provider, status_code=resp.status_code, body=data)
