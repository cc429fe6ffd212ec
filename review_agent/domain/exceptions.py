"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 CLI 层做统一捕获与日志记录。
"""


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "RATE_LIMIT"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 retry_after、provider 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class NetworkError(BusinessError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(BusinessError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(BusinessError):
    """Provider 限流错误，由 RetryingBackendClient 负责重试/退避。

    message 保留服务端原文（可能包含 "retry in 12.5s" 之类的提示），
    extra["retry_after"] 保存 Retry-After 头（秒），两者都可能缺失。
    """


class ValidationError(BusinessError):
    """参数或配置校验失败。"""


class DuplicateToolError(BusinessError):
    """同名工具重复注册。"""


class UnknownToolError(BusinessError):
    """请求的工具未在 ToolRegistry 中注册。"""


class ConversationStateError(BusinessError):
    """违反会话轮次交替约束（例如工具结果与调用不匹配）。"""
