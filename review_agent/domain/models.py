"""统一的对话与结果数据模型。

本模块定义了 Agent 内部在不同 Provider 之间共享的标准数据结构：

- Turn: 会话日志中的一条记录（user / model / tool-result）。
- ChatRequest: 发给底层 LLM Provider 的完整请求。
- ChatResult: 从 Provider 解析后的统一响应（要么是工具调用批次，要么是最终文本）。

所有 Provider 适配器（如 GeminiClient）都只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass, field
from typing import Literal, Optional, Any, List, Sequence, Tuple

from review_agent.tools.definitions import ToolCall, ToolResult, ToolSpec


# 会话角色：用户输入 / 模型工具调用 / 工具执行结果
Role = Literal["user", "model", "tool-result"]


@dataclass(frozen=True)
class Turn:
    """一条不可变的会话记录。

    - role 为 "user" 时 text 为用户输入。
    - role 为 "model" 时 tool_calls 记录模型一次返回的整批工具调用。
    - role 为 "tool-result" 时 result 记录单个工具调用的结果。
    """

    role: Role
    text: Optional[str] = None
    tool_calls: Tuple[ToolCall, ...] = ()
    result: Optional[ToolResult] = None

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role="user", text=text)

    @classmethod
    def model_calls(cls, calls: Sequence[ToolCall]) -> "Turn":
        return cls(role="model", tool_calls=tuple(calls))

    @classmethod
    def tool_result(cls, result: ToolResult) -> "Turn":
        return cls(role="tool-result", result=result)


@dataclass
class ChatRequest:
    """一次完整的后端请求。

    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "gemini"
    model: str  # 逻辑模型名，如 "review-chat"（再由 registry 映射为真实模型名）
    turns: Sequence[Turn]
    tools: Sequence[ToolSpec] = ()
    system_instruction: Optional[str] = None
    temperature: float = 0.3
    max_tokens: Optional[int] = None


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatResult:
    """一次后端调用的结果。

    tool_calls 非空时表示模型请求继续执行工具，此时忽略 text；
    否则 text 即最终回答。
    """

    provider: str
    model: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    text: str = ""
    usage: Optional[ChatUsage] = None
    raw: Optional[Any] = None

    @property
    def is_final(self) -> bool:
        return not self.tool_calls
