"""LangGraph construction and node implementations.

The loop has two working nodes:

- ``backend`` (AwaitingBackend): sends the whole conversation to the backend.
  A tool-call batch is recorded as one ``model`` turn and routed to ``tools``;
  a final text ends the run.
- ``tools`` (DispatchingTools): executes the batch strictly in the order the
  backend emitted it, appending one ``tool-result`` turn per call, then routes
  back to ``backend``.

The turn budget and the cancellation signal are checked before every backend
call and before every tool dispatch.
"""

from __future__ import annotations

import logging

from langgraph.graph import END, StateGraph
from langgraph.graph.state import CompiledStateGraph

from review_agent.domain.models import ChatRequest
from review_agent.flows.state import LoopContext, LoopState, Phase, RunStatus
from review_agent.infrastructure.logging.logger import log_event
from review_agent.tasks.trace import summarize


def _finish(state: LoopState, status: RunStatus, text: str) -> LoopState:
    state["status"] = status
    state["final_text"] = text
    state["phase"] = Phase.DONE
    return state


def backend_node(state: LoopState, ctx: LoopContext) -> LoopState:
    conv = state["conversation"]
    if ctx.cancelled:
        log_event(logging.WARNING, "Run cancelled before backend call", ctx.log_ctx, round=state["rounds"])
        return _finish(state, RunStatus.CANCELLED, "Run cancelled.")
    if state["rounds"] >= ctx.max_turns:
        log_event(logging.WARNING, "Reached max turns", ctx.log_ctx, max_turns=ctx.max_turns)
        return _finish(
            state,
            RunStatus.MAX_TURNS_EXCEEDED,
            f"Stopped after {ctx.max_turns} backend calls without a final answer.",
        )

    step = state["rounds"] + 1
    state["rounds"] = step
    log_event(
        logging.INFO,
        "Calling provider",
        ctx.log_ctx,
        round=step,
        max_turns=ctx.max_turns,
        turn_count=len(conv),
    )
    req = ChatRequest(
        provider=ctx.provider,
        model=ctx.model,
        turns=conv.turns,
        tools=ctx.tools,
        system_instruction=ctx.system_instruction,
        temperature=ctx.temperature,
    )
    result = ctx.client.chat(req)
    if result.usage:
        log_event(
            logging.INFO,
            "Token usage",
            ctx.log_ctx,
            prompt_tokens=result.usage.prompt_tokens,
            completion_tokens=result.usage.completion_tokens,
            total_tokens=result.usage.total_tokens,
        )
    if ctx.trace:
        ctx.trace.record_llm_step(step, tool_calls=len(result.tool_calls), summary=summarize(result.text))

    if result.tool_calls:
        conv.append_tool_calls(result.tool_calls)
        state["pending"] = list(result.tool_calls)
        state["phase"] = Phase.DISPATCHING_TOOLS
        log_event(
            logging.INFO,
            "Executing tool calls",
            ctx.log_ctx,
            call_count=len(result.tool_calls),
            tools=", ".join(c.name for c in result.tool_calls),
        )
        return state

    return _finish(state, RunStatus.DONE, result.text)


def tools_node(state: LoopState, ctx: LoopContext) -> LoopState:
    conv = state["conversation"]
    step = state["rounds"]
    for call in list(state["pending"]):
        if ctx.cancelled:
            log_event(logging.WARNING, "Run cancelled before tool dispatch", ctx.log_ctx, tool_name=call.name)
            return _finish(state, RunStatus.CANCELLED, "Run cancelled.")
        log_event(
            logging.INFO,
            "Tool call received",
            ctx.log_ctx,
            tool_name=call.name,
            tool_call_id=call.id,
        )
        result = ctx.executor.execute(call, ctx.log_ctx)
        conv.append_tool_result(result)
        state["pending"] = state["pending"][1:]
        if ctx.trace:
            error = None
            if result.error is not None:
                error = {"error": result.error.kind.value, "message": result.error.message}
            ctx.trace.record_tool_step(
                step,
                tool_name=call.name,
                args=call.arguments,
                result_summary=summarize(str(result.value)) if result.ok else None,
                error=error,
            )
    state["phase"] = Phase.AWAITING_BACKEND
    return state


def _route(state: LoopState) -> str:
    return Phase(state["phase"]).value


def build_graph(ctx: LoopContext) -> CompiledStateGraph:
    graph = StateGraph(LoopState)
    graph.add_node("backend", lambda s: backend_node(s, ctx))
    graph.add_node("tools", lambda s: tools_node(s, ctx))
    graph.set_entry_point("backend")
    graph.add_conditional_edges(
        "backend",
        _route,
        {Phase.DISPATCHING_TOOLS.value: "tools", Phase.DONE.value: END},
    )
    graph.add_conditional_edges(
        "tools",
        _route,
        {Phase.AWAITING_BACKEND.value: "backend", Phase.DONE.value: END},
    )
    return graph.compile()
