"""带指数退避的限流重试包装。

RetryingBackendClient 自身也实现 ProviderClient 协议：
- RateLimitError：最多尝试 max_retries 次（含首次），每次失败后等待再试；
  尝试用尽后原样抛出最后一次的异常。
- 其他异常：立即向上抛出，不重试。

等待时长：若错误信息中带有 "retry in <秒数>" 提示（或 Provider 给出了
Retry-After），使用该值加上安全余量；否则使用 base_delay * 2 ** attempt。
服务端提示只是尽力解析，格式变化时会自动退回指数退避。
"""

import logging
import math
import re
import time
from typing import Callable, Optional

from review_agent.domain.exceptions import RateLimitError
from review_agent.domain.models import ChatRequest, ChatResult
from review_agent.infrastructure.logging.logger import log_event
from review_agent.providers.base import ProviderClient


RETRY_HINT = re.compile(r"retry in (\d+(?:\.\d+)?)", re.IGNORECASE)
DEFAULT_MAX_RETRIES = 5
DEFAULT_BASE_DELAY = 5.0
DEFAULT_MARGIN = 1.0


def parse_retry_hint(message: Optional[str]) -> Optional[float]:
    """从错误文本中提取建议等待秒数，找不到时返回 None。"""

    if not message:
        return None
    match = RETRY_HINT.search(message)
    if not match:
        return None
    return float(match.group(1))


class RetryingBackendClient:
    def __init__(
        self,
        inner: ProviderClient,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay: float = DEFAULT_BASE_DELAY,
        margin: float = DEFAULT_MARGIN,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        self._inner = inner
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._margin = margin
        self._sleep = sleep

    @classmethod
    def from_settings(cls, inner: ProviderClient, settings, **kwargs) -> "RetryingBackendClient":
        return cls(
            inner,
            max_retries=settings.max_retries,
            base_delay=settings.retry_base_delay,
            margin=settings.retry_margin,
            **kwargs,
        )

    @property
    def name(self) -> str:
        return self._inner.name

    def chat(self, req: ChatRequest) -> ChatResult:
        attempt = 0
        while True:
            try:
                return self._inner.chat(req)
            except RateLimitError as exc:
                if attempt >= self._max_retries - 1:
                    raise
                delay = self.delay_for(exc, attempt)
                attempt += 1
                log_event(
                    logging.WARNING,
                    f"Rate limited. Retrying in {round(delay)}s",
                    provider=self.name,
                    attempt=attempt,
                    max_retries=self._max_retries,
                    delay_seconds=delay,
                )
                self._sleep(delay)

    def delay_for(self, exc: RateLimitError, attempt: int) -> float:
        hint = parse_retry_hint(exc.message)
        if hint is None:
            retry_after = exc.extra.get("retry_after")
            hint = float(retry_after) if retry_after is not None else None
        if hint is not None:
            return math.ceil(hint * 1000) / 1000 + self._margin
        return self._base_delay * (2 ** attempt)
