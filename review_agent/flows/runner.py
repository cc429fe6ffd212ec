"""High-level entry point for the review loop."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence
from uuid import uuid4

from review_agent.domain.conversation import ConversationState
from review_agent.flows.graph import build_graph
from review_agent.flows.state import LoopContext, LoopState, Phase, RunStatus
from review_agent.infrastructure.logging.logger import log_event
from review_agent.prompts import build_instruction, load_system_prompt
from review_agent.providers import RetryingBackendClient, create_provider
from review_agent.providers.base import ProviderClient
from review_agent.tasks.trace import TraceRecorder
from review_agent.tools.definitions import ToolSpec
from review_agent.tools.executor import ToolExecutor
from review_agent.tools.filesystem import registry_from_settings

DEFAULT_MAX_TURNS = 50


@dataclass
class AgentRunResult:
    status: RunStatus
    text: str
    conversation: ConversationState
    rounds: int
    trace_id: str

    @property
    def ok(self) -> bool:
        return self.status == RunStatus.DONE


class AgentLoop:
    """Drive one instruction to a final answer through backend/tool rounds.

    The client is used as given; wrap it in ``RetryingBackendClient`` to get
    rate-limit handling. Backend errors that are not handled by the client
    propagate out of ``run`` unchanged, tool failures never do.
    """

    def __init__(
        self,
        client: ProviderClient,
        executor: ToolExecutor,
        *,
        system_instruction: Optional[str] = None,
        tools: Optional[Sequence[ToolSpec]] = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        model: str = "review-chat",
        temperature: float = 0.3,
        trace: Optional[TraceRecorder] = None,
    ) -> None:
        if max_turns < 1:
            raise ValueError("max_turns must be >= 1")
        self.client = client
        self.executor = executor
        self.system_instruction = system_instruction
        self.tools = list(tools) if tools is not None else executor.registry.schema_for()
        self.max_turns = max_turns
        self.model = model
        self.temperature = temperature
        self.trace = trace

    def run(self, instruction: str, cancel_event: Optional[threading.Event] = None) -> AgentRunResult:
        start_time = time.time()
        trace_id = self.trace.trace_id if self.trace else f"tr-{uuid4().hex}"
        log_ctx = {"trace_id": trace_id, "provider": getattr(self.client, "name", "unknown")}
        ctx = LoopContext(
            client=self.client,
            executor=self.executor,
            tools=self.tools,
            provider=getattr(self.client, "name", "unknown"),
            model=self.model,
            max_turns=self.max_turns,
            system_instruction=self.system_instruction,
            temperature=self.temperature,
            cancel_event=cancel_event,
            trace=self.trace,
            log_ctx=log_ctx,
        )
        state: LoopState = {
            "conversation": ConversationState(instruction),
            "phase": Phase.AWAITING_BACKEND,
            "pending": [],
            "rounds": 0,
            "status": None,
            "final_text": None,
        }
        graph = build_graph(ctx)
        # each round visits backend + tools once; the last backend visit ends the run
        final = graph.invoke(state, config={"recursion_limit": 2 * self.max_turns + 5})

        status = RunStatus(final["status"])
        text = final.get("final_text") or ""
        if self.trace:
            self.trace.finalize(status.value, text)
        log_event(
            logging.INFO,
            "Completed agent run",
            log_ctx,
            status=status.value,
            rounds=final["rounds"],
            elapsed_seconds=round(time.time() - start_time, 2),
        )
        return AgentRunResult(
            status=status,
            text=text,
            conversation=final["conversation"],
            rounds=final["rounds"],
            trace_id=trace_id,
        )


def build_agent_loop(
    settings,
    directory: str,
    *,
    client: Optional[ProviderClient] = None,
    sleep=None,
) -> AgentLoop:
    """Assemble provider, retry wrapper, file tools and trace from settings."""

    inner = client or create_provider(settings)
    retry_kwargs = {"sleep": sleep} if sleep is not None else {}
    backend = RetryingBackendClient.from_settings(inner, settings, **retry_kwargs)
    registry = registry_from_settings(settings, workspace_root=Path(directory))
    executor = ToolExecutor(registry, timeout=settings.tool_timeout)
    trace = None
    if settings.trace_dir:
        trace = TraceRecorder(settings.trace_dir, directory=directory, max_turns=settings.max_turns)
    return AgentLoop(
        backend,
        executor,
        system_instruction=load_system_prompt("code_review"),
        max_turns=settings.max_turns,
        model=settings.default_model,
        temperature=settings.temperature,
        trace=trace,
    )


def run_review(
    directory: str,
    settings,
    *,
    client: Optional[ProviderClient] = None,
    cancel_event: Optional[threading.Event] = None,
) -> AgentRunResult:
    """Review and fix the code under ``directory``; returns the run outcome."""

    log_event(logging.INFO, f"Reviewing {directory}")
    loop = build_agent_loop(settings, directory, client=client)
    return loop.run(build_instruction(directory), cancel_event=cancel_event)
