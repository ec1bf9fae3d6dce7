from __future__ import annotations

import asyncio
import math
import time
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from .classifier import classify, provider_for_intent, provider_for_model
from .config import RouterConfig
from .contracts import (
    Endpoint,
    Provider,
    ProviderChoice,
    ProviderRequest,
    ProviderResponse,
    RequestConfig,
    Result,
    coerce_config,
    validate_prompt,
)
from .errors import (
    SUBSTITUTABLE_ERRORS,
    BothProvidersFailed,
    InvalidInput,
    RequestTimeoutError,
    RouterError,
)
from .metrics import fallbacks_total, request_latency_seconds, requests_total, routing_decisions_total
from .providers import ChatCompletionsProvider, build_providers
from .transport import HttpTransport, Transport

log = structlog.get_logger()

ConfigLike = RequestConfig | Mapping[str, Any] | None


class _Deadline:
    def __init__(self, timeout: float | None, clock: Callable[[], float]):
        if timeout is not None and (not math.isfinite(timeout) or timeout <= 0):
            raise InvalidInput("timeout must be a finite number > 0.")
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return self._expires_at - self._clock()

    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0


def select_provider(prompt: str, config: RequestConfig) -> tuple[Provider, str]:
    """Pick the primary provider for `route` and say why."""
    if config.provider is not None and config.provider is not ProviderChoice.AUTO:
        return Provider(config.provider.value), "explicit"
    pinned = provider_for_model(config.model)
    if pinned is not None:
        return pinned, "model"
    if config.endpoint is Endpoint.FIM:
        return Provider.CODESTRAL, "fim"
    return provider_for_intent(classify(prompt)), "classified"


def translate_config(config: RequestConfig, substitute: Provider) -> RequestConfig:
    """Best-effort copy of `config` for the substitute provider."""
    dropped = ["provider"]
    if config.model is not None and provider_for_model(config.model) is not substitute:
        dropped.append("model")
    if not substitute.supports_fim:
        dropped.extend(("endpoint", "suffix"))
    return config.without(*dropped)


class RequestBroker:
    """
    Single-dispatch broker over the Mistral (chat) and Codestral (code) providers.

    `route` picks a provider, calls it and substitutes the other provider once
    when the first call fails with a provider-side error. `call_mistral` and
    `call_codestral` call exactly one provider and never fall back.

    The broker keeps no per-request state; concurrent calls are independent.
    """

    def __init__(
        self,
        cfg: RouterConfig | None = None,
        *,
        transport: Transport | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.cfg = cfg or RouterConfig()
        self.transport: Transport = transport or HttpTransport.from_config(self.cfg)
        self.providers: dict[Provider, ChatCompletionsProvider] = build_providers(self.cfg)
        self._clock: Callable[[], float] = clock or time.monotonic

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "RequestBroker":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def route(self, prompt: str, config: ConfigLike = None, *, timeout: float | None = None) -> Result:
        prompt = validate_prompt(prompt, max_chars=self.cfg.max_prompt_chars)
        request_config = coerce_config(config)
        deadline = _Deadline(timeout, self._clock)

        primary, reason = select_provider(prompt, request_config)
        routing_decisions_total.labels(provider=primary.value, reason=reason).inc()
        log.info("broker_route", provider=primary.value, reason=reason, prompt_chars=len(prompt))

        try:
            return await self._call(primary, prompt, request_config, deadline)
        except SUBSTITUTABLE_ERRORS as primary_error:
            substitute = primary.other
            if deadline.expired():
                raise RequestTimeoutError("Request deadline exceeded before fallback.") from primary_error

            log.warning(
                "broker_fallback",
                from_provider=primary.value,
                to_provider=substitute.value,
                error_type=type(primary_error).__name__,
                error=str(primary_error),
            )
            try:
                result = await self._call(
                    substitute,
                    prompt,
                    translate_config(request_config, substitute),
                    deadline,
                    fallback_from=primary,
                )
            except SUBSTITUTABLE_ERRORS as fallback_error:
                fallbacks_total.labels(
                    from_provider=primary.value, to_provider=substitute.value, outcome="failure"
                ).inc()
                log.error(
                    "broker_both_providers_failed",
                    primary=primary.value,
                    primary_error=str(primary_error),
                    fallback=substitute.value,
                    fallback_error=str(fallback_error),
                )
                raise BothProvidersFailed(primary_error, fallback_error) from fallback_error

            fallbacks_total.labels(from_provider=primary.value, to_provider=substitute.value, outcome="success").inc()
            return result

    async def call_codestral(
        self, prompt: str, config: ConfigLike = None, *, timeout: float | None = None
    ) -> Result:
        return await self._call_explicit(Provider.CODESTRAL, prompt, config, timeout)

    async def call_mistral(self, prompt: str, config: ConfigLike = None, *, timeout: float | None = None) -> Result:
        return await self._call_explicit(Provider.MISTRAL, prompt, config, timeout)

    async def _call_explicit(
        self, provider: Provider, prompt: str, config: ConfigLike, timeout: float | None
    ) -> Result:
        prompt = validate_prompt(prompt, max_chars=self.cfg.max_prompt_chars)
        request_config = coerce_config(config)
        deadline = _Deadline(timeout, self._clock)
        if request_config.provider not in (None, ProviderChoice.AUTO, ProviderChoice(provider.value)):
            log.debug("broker_provider_override_ignored", provider=provider.value, requested=request_config.provider)
        return await self._call(provider, prompt, request_config, deadline)

    async def _call(
        self,
        provider: Provider,
        prompt: str,
        config: RequestConfig,
        deadline: _Deadline,
        *,
        fallback_from: Provider | None = None,
    ) -> Result:
        adapter = self.providers[provider]
        remaining = deadline.remaining()
        request = adapter.build_request(prompt, config, timeout_seconds=remaining)

        started = time.monotonic()
        status = "error"
        try:
            with request_latency_seconds.labels(provider=provider.value).time():
                response = await self._send(request, remaining)
            content, usage = adapter.parse_response(response)
            status = "success"
        except asyncio.CancelledError:
            status = "cancelled"
            raise
        except RouterError as e:
            log.warning(
                "provider_error",
                provider=provider.value,
                endpoint=request.endpoint.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            raise
        finally:
            requests_total.labels(provider=provider.value, status=status).inc()

        return Result(
            content=content,
            provider=provider,
            model=request.model,
            endpoint=request.endpoint,
            usage=usage,
            latency_seconds=time.monotonic() - started,
            fallback_from=fallback_from,
        )

    async def _send(self, request: ProviderRequest, remaining: float | None) -> ProviderResponse:
        if remaining is None:
            return await self.transport.send(request)
        if remaining <= 0:
            raise RequestTimeoutError("Request deadline exceeded.")
        try:
            return await asyncio.wait_for(self.transport.send(request), timeout=remaining)
        except asyncio.TimeoutError as e:
            raise RequestTimeoutError(f"{request.provider.value} call exceeded the request deadline.") from e
