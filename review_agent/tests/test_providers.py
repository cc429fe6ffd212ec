from typing import get_args

import pytest

from review_agent.providers import DefaultProviderName, create_provider
from review_agent.providers.gemini_client import GeminiClient
from review_agent.providers.openai_compatible import OpenAICompatibleClient
from review_agent.providers.registry import get_provider_config


class DummySettings:
    default_provider = "gemini"
    gemini_api_key = "g-key-123456"
    glm_api_key = None
    kimi_api_key = "k-key-123456"
    http_timeout = 1.0


def test_create_provider_default():
    provider = create_provider(DummySettings())
    assert isinstance(provider, GeminiClient)
    assert provider.name == "gemini"


def test_create_provider_explicit():
    provider = create_provider(DummySettings(), "KIMI")
    assert isinstance(provider, OpenAICompatibleClient)
    assert provider.name == "kimi"


def test_unknown_provider_and_model():
    with pytest.raises(KeyError):
        create_provider(DummySettings(), "openrouter")
    with pytest.raises(KeyError):
        get_provider_config("glm").model("ide-chat")


def test_every_declared_provider_name_is_constructible():
    for name in get_args(DefaultProviderName):
        assert create_provider(DummySettings(), name).name == name
