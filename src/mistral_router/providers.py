from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import structlog

from .config import RouterConfig
from .contracts import Endpoint, Provider, ProviderRequest, ProviderResponse, RequestConfig, Usage
from .errors import MalformedResponse

log = structlog.get_logger()


@dataclass(frozen=True)
class ProviderDefaults:
    model: str
    temperature: float
    max_tokens: int


def parse_usage(raw: Any, *, provider: Provider) -> Usage | None:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise MalformedResponse("usage must be an object in provider response.", provider=provider.value)

    def _count(key: str) -> int | None:
        value = raw.get(key)
        if isinstance(value, bool) or not isinstance(value, int):
            return None
        return value

    prompt_tokens = _count("prompt_tokens")
    completion_tokens = _count("completion_tokens")
    total_tokens = _count("total_tokens")
    if total_tokens is None and prompt_tokens is not None and completion_tokens is not None:
        total_tokens = prompt_tokens + completion_tokens
    return Usage(
        prompt_tokens=prompt_tokens,
        completion_tokens=completion_tokens,
        total_tokens=total_tokens,
        raw=dict(raw),
    )


class ChatCompletionsProvider:
    """Shared request/response mapping for the OpenAI-shaped Mistral platform APIs."""

    provider: Provider

    def __init__(self, defaults: ProviderDefaults):
        self.defaults = defaults

    def resolve_endpoint(self, config: RequestConfig) -> Endpoint:
        return Endpoint.CHAT

    def build_request(
        self,
        prompt: str,
        config: RequestConfig,
        *,
        timeout_seconds: float | None = None,
    ) -> ProviderRequest:
        endpoint = self.resolve_endpoint(config)
        model = config.model or self.defaults.model
        temperature = config.temperature if config.temperature is not None else self.defaults.temperature
        max_tokens = config.max_tokens if config.max_tokens is not None else self.defaults.max_tokens

        payload: dict[str, Any] = {"model": model}
        if endpoint is Endpoint.FIM:
            payload["prompt"] = prompt
            payload["suffix"] = config.suffix or ""
        else:
            payload["messages"] = [{"role": "user", "content": prompt}]
        payload["temperature"] = temperature
        payload["max_tokens"] = max_tokens

        return ProviderRequest(
            provider=self.provider,
            endpoint=endpoint,
            model=model,
            payload=payload,
            timeout_seconds=timeout_seconds,
        )

    def parse_response(self, response: ProviderResponse) -> tuple[str, Usage | None]:
        name = self.provider.value
        data = response.body
        if not isinstance(data, dict):
            raise MalformedResponse("Provider response body must be a JSON object.", provider=name)

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            raise MalformedResponse("Missing choices in provider response.", provider=name)

        choice = choices[0]
        message = choice.get("message")
        if isinstance(message, dict):
            text = message.get("content")
        else:
            text = choice.get("text")
        if not isinstance(text, str):
            raise MalformedResponse("Missing content in provider response.", provider=name)

        return text, parse_usage(data.get("usage"), provider=self.provider)


class MistralProvider(ChatCompletionsProvider):
    provider = Provider.MISTRAL

    def resolve_endpoint(self, config: RequestConfig) -> Endpoint:
        # No FIM mode; always chat framing.
        if config.endpoint is Endpoint.FIM or config.suffix is not None:
            log.debug("mistral_fim_ignored", endpoint=config.endpoint, has_suffix=config.suffix is not None)
        return Endpoint.CHAT


class CodestralProvider(ChatCompletionsProvider):
    provider = Provider.CODESTRAL

    def resolve_endpoint(self, config: RequestConfig) -> Endpoint:
        return config.endpoint or Endpoint.CHAT


def build_providers(cfg: RouterConfig) -> dict[Provider, ChatCompletionsProvider]:
    return {
        Provider.MISTRAL: MistralProvider(
            ProviderDefaults(
                model=cfg.mistral_model,
                temperature=cfg.mistral_temperature,
                max_tokens=cfg.default_max_tokens,
            )
        ),
        Provider.CODESTRAL: CodestralProvider(
            ProviderDefaults(
                model=cfg.codestral_model,
                temperature=cfg.codestral_temperature,
                max_tokens=cfg.default_max_tokens,
            )
        ),
    }
