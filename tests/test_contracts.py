import pytest
from pydantic import ValidationError

from mistral_router.contracts import (
    Endpoint,
    Provider,
    ProviderChoice,
    RequestConfig,
    coerce_config,
    validate_prompt,
)
from mistral_router.errors import InvalidInput


def test_request_config_accepts_camel_case_alias():
    cfg = coerce_config({"maxTokens": 500, "temperature": 0.3, "endpoint": "fim"})
    assert cfg.max_tokens == 500
    assert cfg.temperature == 0.3
    assert cfg.endpoint is Endpoint.FIM


def test_request_config_accepts_snake_case():
    cfg = coerce_config({"max_tokens": 12, "provider": "codestral"})
    assert cfg.max_tokens == 12
    assert cfg.provider is ProviderChoice.CODESTRAL


def test_coerce_config_defaults_when_none():
    assert coerce_config(None) == RequestConfig()


def test_coerce_config_passes_request_config_through():
    cfg = RequestConfig(temperature=0.5)
    assert coerce_config(cfg) is cfg


@pytest.mark.parametrize(
    "raw",
    [
        {"temperature": 1.5},
        {"temperature": -0.1},
        {"max_tokens": 0},
        {"maxTokens": -5},
        {"endpoint": "completions"},
        {"provider": "openai"},
        {"model": "   "},
        {"unknown": True},
        {"temperature": True},
        {"maxTokens": True},
        {"max_tokens": "500"},
        {"temperature": "0.5"},
        {"max_tokens": 12.0},
    ],
)
def test_coerce_config_rejects_invalid_values(raw):
    with pytest.raises(InvalidInput):
        coerce_config(raw)


def test_request_config_accepts_integer_temperature():
    assert coerce_config({"temperature": 0}).temperature == 0.0
    assert coerce_config({"temperature": 1}).temperature == 1.0


def test_coerce_config_rejects_non_mapping():
    with pytest.raises(InvalidInput):
        coerce_config(["temperature", 0.2])


def test_request_config_constructor_validates_directly():
    with pytest.raises(ValidationError):
        RequestConfig(temperature=2.0)


def test_request_config_is_frozen():
    cfg = RequestConfig(temperature=0.1)
    with pytest.raises(ValidationError):
        cfg.temperature = 0.9


def test_without_clears_named_fields():
    cfg = RequestConfig(model="codestral-latest", endpoint="fim", suffix="}", temperature=0.2)
    stripped = cfg.without("model", "endpoint", "suffix")
    assert stripped.model is None
    assert stripped.endpoint is None
    assert stripped.suffix is None
    assert stripped.temperature == 0.2
    assert cfg.model == "codestral-latest"


@pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
def test_validate_prompt_rejects_blank(prompt):
    with pytest.raises(InvalidInput):
        validate_prompt(prompt)


def test_validate_prompt_rejects_non_string():
    with pytest.raises(InvalidInput):
        validate_prompt(None)


def test_invalid_input_is_a_value_error():
    assert issubclass(InvalidInput, ValueError)


def test_provider_other_is_the_substitute():
    assert Provider.MISTRAL.other is Provider.CODESTRAL
    assert Provider.CODESTRAL.other is Provider.MISTRAL
    assert Provider.CODESTRAL.supports_fim
    assert not Provider.MISTRAL.supports_fim
