"""Provider 抽象接口。

上层 AgentLoop 不直接依赖具体厂商的 HTTP API，而是依赖此协议：

- 每个厂商实现一个 ProviderClient（如 GeminiClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
- 限流统一抛出 RateLimitError，其余 HTTP 错误抛出 ApiError。

RetryingBackendClient 同样实现本协议，因此可以透明地包裹任意 Provider。
"""

from typing import Optional, Protocol

import httpx

from review_agent.domain.exceptions import ApiError, RateLimitError
from review_agent.domain.models import ChatRequest, ChatResult


class ProviderClient(Protocol):
    """LLM Provider 客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat(req): 执行一次对话调用，返回统一的 ChatResult。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...


def raise_for_status(resp: httpx.Response, provider: str) -> None:
    """把 4xx/5xx 响应转换为业务异常，保留服务端错误原文。"""

    if resp.status_code < 400:
        return
    message = _error_message(resp)
    if resp.status_code == 429:
        # 限流错误交给 RetryingBackendClient 做重试/退避
        raise RateLimitError(
            code="RATE_LIMIT",
            message=message or f"{provider} rate limit",
            http_status=429,
            provider=provider,
            retry_after=_retry_after(resp),
        )
    raise ApiError(code="API_ERROR", message=message, http_status=resp.status_code, provider=provider)


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str):
            return err
    return resp.text


def _retry_after(resp: httpx.Response) -> Optional[float]:
    raw = resp.headers.get("retry-after") if resp.headers is not None else None
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        return None
