from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Any, Dict, Mapping, Optional
import logging

from review_agent.domain.exceptions import UnknownToolError
from review_agent.infrastructure.logging.logger import log_event
from .definitions import ToolCall, ToolErrorKind, ToolResult, ToolSpec
from .registry import ToolHandler, ToolRegistry


_TYPE_CHECKS: Dict[str, Any] = {
    "string": str,
    "integer": int,
    "number": (int, float),
    "boolean": bool,
    "array": (list, tuple),
    "object": dict,
}


class ToolExecutor:
    """按名称执行工具，并把结果或失败统一封装为 ToolResult。

    单个工具的失败永远不会向上抛出：未注册的工具、参数缺失、
    handler 内部异常都会被分类后作为失败结果返回，由模型自行纠正。
    """

    def __init__(self, registry: ToolRegistry, timeout: Optional[float] = None):
        self._registry = registry
        self._timeout = timeout

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def execute(self, call: ToolCall, log_ctx: Optional[Dict[str, Any]] = None) -> ToolResult:
        """执行单个工具调用；log_ctx 为运行级日志上下文（如 trace_id）。"""

        try:
            spec = self._registry.spec_for(call.name)
            handler = self._registry.handler_for(call.name)
        except UnknownToolError as exc:
            log_event(logging.WARNING, "Unknown tool requested", log_ctx, tool_name=call.name, tool_call_id=call.id)
            return ToolResult.failure(call, ToolErrorKind.UNKNOWN_TOOL, exc.message)

        if call.arguments is None:
            args: Dict[str, Any] = {}
        elif isinstance(call.arguments, Mapping):
            args = dict(call.arguments)
        else:
            problem = f"arguments must be an object, got {type(call.arguments).__name__}"
            log_event(logging.WARNING, "Tool arguments rejected", log_ctx, tool_name=call.name, error=problem)
            return ToolResult.failure(call, ToolErrorKind.VALIDATION, problem)

        problem = _validate_arguments(spec, args)
        if problem:
            log_event(logging.WARNING, "Tool arguments rejected", log_ctx, tool_name=call.name, error=problem)
            return ToolResult.failure(call, ToolErrorKind.VALIDATION, problem)

        try:
            value = self._invoke(handler, args)
        except Exception as exc:  # noqa: BLE001 - 需要把异常转换为工具错误
            kind = classify_error(exc)
            message = str(exc) or type(exc).__name__
            log_event(
                logging.ERROR,
                "Tool execution failed",
                log_ctx,
                tool_name=call.name,
                tool_call_id=call.id,
                kind=kind.value,
                error=message,
            )
            return ToolResult.failure(call, kind, message)

        log_event(logging.INFO, "Tool execution finished", log_ctx, tool_name=call.name, tool_call_id=call.id)
        return ToolResult.success(call, value)

    def _invoke(self, handler: ToolHandler, args: Mapping[str, Any]) -> Any:
        if self._timeout is None:
            return handler(args)
        pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tool")
        try:
            future = pool.submit(handler, args)
            try:
                return future.result(timeout=self._timeout)
            except FutureTimeout:
                future.cancel()
                raise TimeoutError(f"tool did not finish within {self._timeout}s") from None
        finally:
            # 超时的 handler 线程无法强制终止，只能放弃等待
            pool.shutdown(wait=False)


def _validate_arguments(spec: ToolSpec, args: Mapping[str, Any]) -> Optional[str]:
    for param in spec.params:
        if param.name not in args or args[param.name] is None:
            if param.required:
                return f"missing required argument '{param.name}'"
            continue
        expected = _TYPE_CHECKS.get(param.type)
        value = args[param.name]
        if expected is not None and not isinstance(value, expected):
            return f"argument '{param.name}' must be of type {param.type}"
    return None


def classify_error(exc: BaseException) -> ToolErrorKind:
    """把 handler 抛出的异常映射为 ToolErrorKind。"""

    if isinstance(exc, FileNotFoundError):
        return ToolErrorKind.NOT_FOUND
    if isinstance(exc, IsADirectoryError):
        return ToolErrorKind.IS_A_DIRECTORY
    if isinstance(exc, PermissionError):
        return ToolErrorKind.PERMISSION
    if isinstance(exc, TimeoutError):
        return ToolErrorKind.TIMEOUT
    if isinstance(exc, UnicodeError):
        return ToolErrorKind.DECODE
    if isinstance(exc, OSError):
        return ToolErrorKind.IO
    if isinstance(exc, (ValueError, TypeError, KeyError)):
        return ToolErrorKind.VALIDATION
    return ToolErrorKind.INTERNAL
