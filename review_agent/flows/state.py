"""State definition for the review loop graph."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, TypedDict

from review_agent.domain.conversation import ConversationState
from review_agent.providers.base import ProviderClient
from review_agent.tasks.trace import TraceRecorder
from review_agent.tools.definitions import ToolCall, ToolSpec
from review_agent.tools.executor import ToolExecutor


class Phase(str, Enum):
    AWAITING_BACKEND = "awaiting_backend"
    DISPATCHING_TOOLS = "dispatching_tools"
    DONE = "done"


class RunStatus(str, Enum):
    DONE = "done"
    MAX_TURNS_EXCEEDED = "max_turns_exceeded"
    CANCELLED = "cancelled"


class LoopState(TypedDict, total=False):
    """State shared across graph nodes."""

    conversation: ConversationState
    phase: Phase
    pending: List[ToolCall]
    rounds: int
    status: Optional[RunStatus]
    final_text: Optional[str]


@dataclass
class LoopContext:
    """Collaborators and limits for one run; nodes only read from it."""

    client: ProviderClient
    executor: ToolExecutor
    tools: Sequence[ToolSpec]
    provider: str
    model: str
    max_turns: int
    system_instruction: Optional[str] = None
    temperature: float = 0.3
    cancel_event: Optional[threading.Event] = None
    trace: Optional[TraceRecorder] = None
    log_ctx: Dict[str, Any] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()
