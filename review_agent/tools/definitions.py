"""工具数据结构定义。

这些 dataclass 描述了“工具调用”的 schema，既用于：
- 将可用工具列表暴露给 LLM（ToolSpec / ToolParam）。
- 在 AgentLoop 中保存和执行模型触发的工具调用（ToolCall / ToolResult）。

所有结构在创建后都不可变。
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ToolParam:
    """单个工具参数的定义。"""

    name: str
    description: str
    required: bool
    schema: Mapping[str, Any] = field(default_factory=lambda: {"type": "string"})

    @property
    def type(self) -> str:
        return str(self.schema.get("type", "string"))


@dataclass(frozen=True)
class ToolSpec:
    """一个可供 LLM 调用的工具定义，params 保持声明顺序。"""

    name: str
    description: str
    params: Tuple[ToolParam, ...] = ()

    @property
    def required(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.params if p.required)

    def param(self, name: str) -> Optional[ToolParam]:
        for p in self.params:
            if p.name == name:
                return p
        return None


@dataclass(frozen=True)
class ToolCall:
    """模型发起的一次工具调用请求。"""

    id: str
    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


class ToolErrorKind(str, Enum):
    """工具失败分类，会原样回传给模型。"""

    UNKNOWN_TOOL = "UnknownTool"
    VALIDATION = "ValidationError"
    NOT_FOUND = "NotFound"
    IS_A_DIRECTORY = "IsADirectory"
    PERMISSION = "PermissionDenied"
    DECODE = "DecodeError"
    IO = "IOError"
    TIMEOUT = "Timeout"
    INTERNAL = "ToolError"


@dataclass(frozen=True)
class ToolFailure:
    kind: ToolErrorKind
    message: str


@dataclass(frozen=True)
class ToolResult:
    """工具执行结果：value 与 error 二选一。"""

    call_id: str
    name: str
    value: Any = None
    error: Optional[ToolFailure] = None

    @classmethod
    def success(cls, call: ToolCall, value: Any) -> "ToolResult":
        return cls(call_id=call.id, name=call.name, value=value)

    @classmethod
    def failure(cls, call: ToolCall, kind: ToolErrorKind, message: str) -> "ToolResult":
        return cls(call_id=call.id, name=call.name, error=ToolFailure(kind=kind, message=message))

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_payload(self) -> Dict[str, Any]:
        """转换为发给 Provider 的 response 对象。"""

        if self.error is not None:
            return {"error": {"kind": self.error.kind.value, "message": self.error.message}}
        return {"result": self.value}
