"""单次运行的会话日志。

ConversationState 是只追加的有序 Turn 列表，每次调用后端时都会原样发送。
它负责维护轮次交替约束：一条 model 工具调用记录之后，必须按调用顺序
逐个追加对应的 tool-result，全部补齐之前不能再次请求后端。
"""

from typing import Iterator, List, Optional, Tuple

from review_agent.domain.exceptions import ConversationStateError
from review_agent.domain.models import Role, Turn
from review_agent.tools.definitions import ToolCall, ToolResult


class ConversationState:
    def __init__(self, instruction: str):
        self._turns: List[Turn] = [Turn.user(instruction)]
        self._pending: List[ToolCall] = []

    @property
    def turns(self) -> Tuple[Turn, ...]:
        return tuple(self._turns)

    @property
    def pending_calls(self) -> Tuple[ToolCall, ...]:
        """最近一批中尚未收到结果的工具调用。"""

        return tuple(self._pending)

    @property
    def ready_for_backend(self) -> bool:
        return not self._pending

    @property
    def last(self) -> Turn:
        return self._turns[-1]

    def append_tool_calls(self, calls: List[ToolCall]) -> Turn:
        if not calls:
            raise ConversationStateError(code="EMPTY_TOOL_BATCH", message="tool call batch is empty")
        if self._pending:
            raise ConversationStateError(
                code="PENDING_TOOL_RESULTS",
                message=f"{len(self._pending)} tool result(s) still pending",
            )
        turn = Turn.model_calls(calls)
        self._turns.append(turn)
        self._pending = list(turn.tool_calls)
        return turn

    def append_tool_result(self, result: ToolResult) -> Turn:
        if not self._pending:
            raise ConversationStateError(code="UNEXPECTED_TOOL_RESULT", message="no tool call awaiting a result")
        expected = self._pending[0]
        if result.call_id != expected.id:
            raise ConversationStateError(
                code="TOOL_RESULT_ORDER",
                message=f"expected result for {expected.id}, got {result.call_id}",
            )
        turn = Turn.tool_result(result)
        self._turns.append(turn)
        self._pending.pop(0)
        return turn

    def count(self, role: Optional[Role] = None) -> int:
        if role is None:
            return len(self._turns)
        return sum(1 for t in self._turns if t.role == role)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.turns)
