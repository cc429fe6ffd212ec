"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (gemini_client、openai_compatible)。
- 限流重试包装 (retry)。
"""

from typing import Literal, Optional

from review_agent.providers.base import ProviderClient
from review_agent.providers.gemini_client import GeminiClient
from review_agent.providers.openai_compatible import OpenAICompatibleClient
from review_agent.providers.registry import get_provider_config
from review_agent.providers.retry import RetryingBackendClient


DefaultProviderName = Literal["gemini", "glm", "kimi"]


def create_provider(settings, name: Optional[DefaultProviderName] = None) -> ProviderClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "gemini")).lower()
    if provider_name == "gemini":
        return GeminiClient(settings)
    return OpenAICompatibleClient(settings, get_provider_config(provider_name))


__all__ = ["ProviderClient", "RetryingBackendClient", "create_provider", "DefaultProviderName"]
