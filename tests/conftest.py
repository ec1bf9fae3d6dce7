from __future__ import annotations

from typing import Any

import pytest

from mistral_router.broker import RequestBroker
from mistral_router.config import RouterConfig
from mistral_router.contracts import Provider, ProviderRequest, ProviderResponse


def chat_body(content: str, usage: dict[str, Any] | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {
        "id": "cmpl-test",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}, "finish_reason": "stop"}],
    }
    if usage is not None:
        body["usage"] = usage
    return body


class RecordingTransport:
    """Deterministic stand-in for the network: records requests, replays scripted outcomes."""

    def __init__(self) -> None:
        self.requests: list[ProviderRequest] = []
        self.closed = False
        self._outcomes: dict[Provider, list[Any]] = {p: [] for p in Provider}

    def script(self, provider: Provider, *outcomes: Any) -> "RecordingTransport":
        self._outcomes[provider].extend(outcomes)
        return self

    def providers_called(self) -> list[Provider]:
        return [r.provider for r in self.requests]

    async def send(self, request: ProviderRequest) -> ProviderResponse:
        self.requests.append(request)
        queue = self._outcomes[request.provider]
        outcome: Any = queue.pop(0) if queue else f"{request.provider.value} reply"
        if callable(outcome):
            outcome = await outcome(request)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, str):
            outcome = chat_body(outcome, {"prompt_tokens": 3, "completion_tokens": 5, "total_tokens": 8})
        return ProviderResponse(provider=request.provider, status_code=200, body=outcome)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def cfg() -> RouterConfig:
    return RouterConfig(
        mistral_api_key="mistral-key",
        codestral_api_key="codestral-key",
        enable_metrics=False,
    )


@pytest.fixture
def broker(cfg: RouterConfig, transport: RecordingTransport) -> RequestBroker:
    return RequestBroker(cfg, transport=transport)


@pytest.fixture
def make_chat_body():
    return chat_body
