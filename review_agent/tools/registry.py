"""工具注册表。

把工具名映射到可执行的 handler 与声明式 ToolSpec。
AgentLoop 只通过名称查找工具，不做反射调用。
"""

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple

from review_agent.domain.exceptions import DuplicateToolError, UnknownToolError
from .definitions import ToolSpec


ToolHandler = Callable[[Mapping[str, Any]], Any]


class ToolRegistry:
    def __init__(self) -> None:
        # dict 保持插入顺序，schema_for() 依赖这一点
        self._tools: Dict[str, Tuple[ToolSpec, ToolHandler]] = {}

    def register(self, spec: ToolSpec, handler: ToolHandler) -> None:
        if spec.name in self._tools:
            raise DuplicateToolError(code="DUPLICATE_TOOL", message=f"Tool '{spec.name}' already registered")
        self._tools[spec.name] = (spec, handler)

    def schema_for(self, names: Optional[Iterable[str]] = None) -> List[ToolSpec]:
        """返回用于向后端声明的 ToolSpec 列表。

        names 为空时按注册顺序返回全部工具，否则按 names 的顺序返回。
        """

        if names is None:
            return [spec for spec, _ in self._tools.values()]
        return [self.spec_for(name) for name in names]

    def spec_for(self, name: str) -> ToolSpec:
        return self._lookup(name)[0]

    def handler_for(self, name: str) -> ToolHandler:
        return self._lookup(name)[1]

    def names(self) -> List[str]:
        return list(self._tools)

    def _lookup(self, name: str) -> Tuple[ToolSpec, ToolHandler]:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(code="UNKNOWN_TOOL", message=f"Tool '{name}' not registered") from None

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
