import pytest

from mistral_router.contracts import Endpoint, Provider, ProviderResponse, RequestConfig
from mistral_router.errors import MalformedResponse
from mistral_router.providers import (
    CodestralProvider,
    MistralProvider,
    ProviderDefaults,
    build_providers,
    parse_usage,
)


def _codestral():
    return CodestralProvider(ProviderDefaults(model="codestral-latest", temperature=0.2, max_tokens=1024))


def _mistral():
    return MistralProvider(ProviderDefaults(model="mistral-large-latest", temperature=0.7, max_tokens=1024))


def test_codestral_chat_request_wraps_prompt_as_user_turn():
    req = _codestral().build_request("Write a sort", RequestConfig())
    assert req.endpoint is Endpoint.CHAT
    assert req.payload == {
        "model": "codestral-latest",
        "messages": [{"role": "user", "content": "Write a sort"}],
        "temperature": 0.2,
        "max_tokens": 1024,
    }


def test_codestral_fim_request_has_no_conversational_framing():
    req = _codestral().build_request("def add(a, b):", RequestConfig(endpoint="fim", temperature=0.1, max_tokens=64))
    assert req.endpoint is Endpoint.FIM
    assert "messages" not in req.payload
    assert req.payload["prompt"] == "def add(a, b):"
    assert req.payload["suffix"] == ""
    assert req.payload["temperature"] == 0.1
    assert req.payload["max_tokens"] == 64


def test_codestral_fim_request_carries_suffix():
    req = _codestral().build_request("def f(", RequestConfig(endpoint="fim", suffix="\n    return x"))
    assert req.payload["suffix"] == "\n    return x"


def test_mistral_ignores_fim_and_uses_chat():
    req = _mistral().build_request("hello", RequestConfig(endpoint="fim", suffix="}"))
    assert req.endpoint is Endpoint.CHAT
    assert req.payload["messages"] == [{"role": "user", "content": "hello"}]
    assert "suffix" not in req.payload


def test_explicit_model_and_timeout_are_forwarded():
    req = _mistral().build_request("hi", RequestConfig(model="mistral-small-latest"), timeout_seconds=3.5)
    assert req.model == "mistral-small-latest"
    assert req.payload["model"] == "mistral-small-latest"
    assert req.timeout_seconds == 3.5
    assert req.provider is Provider.MISTRAL


def test_zero_temperature_is_not_replaced_by_default():
    req = _mistral().build_request("hi", RequestConfig(temperature=0.0))
    assert req.payload["temperature"] == 0.0


def test_build_providers_uses_config_defaults(cfg):
    providers = build_providers(cfg)
    assert providers[Provider.MISTRAL].defaults.model == cfg.mistral_model
    assert providers[Provider.CODESTRAL].defaults.temperature == cfg.codestral_temperature


def test_parse_response_reads_message_content_and_usage(make_chat_body):
    body = make_chat_body("ok", {"prompt_tokens": 4, "completion_tokens": 6, "total_tokens": 10})
    content, usage = _mistral().parse_response(ProviderResponse(Provider.MISTRAL, 200, body))
    assert content == "ok"
    assert usage.as_dict() == {"prompt_tokens": 4, "completion_tokens": 6, "total_tokens": 10}


def test_parse_response_accepts_text_choices():
    body = {"choices": [{"index": 0, "text": "    return a + b"}]}
    content, usage = _codestral().parse_response(ProviderResponse(Provider.CODESTRAL, 200, body))
    assert content == "    return a + b"
    assert usage is None


@pytest.mark.parametrize(
    "body",
    [
        [],
        {},
        {"choices": []},
        {"choices": ["x"]},
        {"choices": [{"message": {"content": None}}]},
        {"choices": [{"message": {"role": "assistant"}}]},
        {"choices": [{"message": {"content": "ok"}}], "usage": "lots"},
    ],
)
def test_parse_response_rejects_malformed_bodies(body):
    with pytest.raises(MalformedResponse):
        _codestral().parse_response(ProviderResponse(Provider.CODESTRAL, 200, body))


def test_parse_usage_derives_total_and_drops_non_integers():
    usage = parse_usage({"prompt_tokens": 2, "completion_tokens": 3, "cached": "n/a"}, provider=Provider.MISTRAL)
    assert usage.total_tokens == 5
    assert usage.raw == {"prompt_tokens": 2, "completion_tokens": 3, "cached": "n/a"}

    partial = parse_usage({"prompt_tokens": True, "completion_tokens": 3}, provider=Provider.MISTRAL)
    assert partial.prompt_tokens is None
    assert partial.total_tokens is None
