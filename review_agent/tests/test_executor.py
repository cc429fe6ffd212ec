import logging
import threading

import pytest

from review_agent.domain.exceptions import DuplicateToolError, UnknownToolError
from review_agent.tools.definitions import ToolCall, ToolErrorKind, ToolParam, ToolSpec
from review_agent.tools.executor import ToolExecutor, classify_error
from review_agent.tools.registry import ToolRegistry


ECHO = ToolSpec(
    name="echo",
    description="echo text",
    params=(
        ToolParam(name="text", description="text", required=True),
        ToolParam(name="times", description="repeat", required=False, schema={"type": "integer"}),
    ),
)


def _registry(handler=None) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(ECHO, handler or (lambda args: args["text"] * int(args.get("times") or 1)))
    return reg


def test_registry_rejects_duplicates_and_unknown_names():
    reg = _registry()
    with pytest.raises(DuplicateToolError):
        reg.register(ECHO, lambda args: None)
    with pytest.raises(UnknownToolError):
        reg.handler_for("nope")
    assert "echo" in reg
    assert len(reg) == 1


def test_schema_for_keeps_registration_order():
    reg = ToolRegistry()
    for name in ("b", "a", "c"):
        reg.register(ToolSpec(name=name, description=name), lambda args: None)
    assert [s.name for s in reg.schema_for()] == ["b", "a", "c"]
    assert [s.name for s in reg.schema_for(["c", "b"])] == ["c", "b"]
    with pytest.raises(UnknownToolError):
        reg.schema_for(["missing"])


def test_execute_success():
    res = ToolExecutor(_registry()).execute(ToolCall(id="1", name="echo", arguments={"text": "ab", "times": 2}))
    assert res.ok
    assert res.value == "abab"
    assert res.call_id == "1"
    assert res.to_payload() == {"result": "abab"}


def test_unknown_tool_is_a_failure_not_an_exception():
    res = ToolExecutor(_registry()).execute(ToolCall(id="9", name="deleteEverything", arguments={}))
    assert not res.ok
    assert res.error.kind == ToolErrorKind.UNKNOWN_TOOL
    assert "deleteEverything" in res.error.message
    assert res.to_payload()["error"]["kind"] == "UnknownTool"


@pytest.mark.parametrize(
    "arguments",
    [{}, {"text": None}, {"text": 3}, {"text": "a", "times": "2"}, {"_raw": "{not json"}],
)
def test_invalid_arguments_are_validation_failures(arguments):
    called = []
    reg = _registry(lambda args: called.append(args))
    res = ToolExecutor(reg).execute(ToolCall(id="1", name="echo", arguments=arguments))
    assert res.error.kind == ToolErrorKind.VALIDATION
    assert called == []


@pytest.mark.parametrize("arguments", [["filePath"], "text=x", 42])
def test_non_mapping_arguments_are_validation_failures(arguments):
    res = ToolExecutor(_registry()).execute(ToolCall(id="1", name="echo", arguments=arguments))
    assert res.error.kind == ToolErrorKind.VALIDATION
    assert "must be an object" in res.error.message


def test_missing_arguments_treated_as_empty():
    res = ToolExecutor(_registry()).execute(ToolCall(id="1", name="echo", arguments=None))
    assert res.error.kind == ToolErrorKind.VALIDATION
    assert "text" in res.error.message


def test_tool_logs_carry_run_context(caplog):
    caplog.set_level(logging.INFO, logger="review_agent")
    ToolExecutor(_registry()).execute(ToolCall(id="7", name="echo", arguments={"text": "x"}), {"trace_id": "run-42"})
    records = [r for r in caplog.records if r.getMessage() == "Tool execution finished"]
    assert records[-1].extra["trace_id"] == "run-42"
    assert records[-1].extra["tool_call_id"] == "7"


def test_handler_exception_is_classified_and_message_preserved():
    def boom(args):
        raise PermissionError("read-only file system")

    res = ToolExecutor(_registry(boom)).execute(ToolCall(id="1", name="echo", arguments={"text": "x"}))
    assert res.error.kind == ToolErrorKind.PERMISSION
    assert res.error.message == "read-only file system"


@pytest.mark.parametrize(
    "exc, kind",
    [
        (FileNotFoundError("x"), ToolErrorKind.NOT_FOUND),
        (IsADirectoryError("x"), ToolErrorKind.IS_A_DIRECTORY),
        (UnicodeDecodeError("utf-8", b"\xff", 0, 1, "bad"), ToolErrorKind.DECODE),
        (OSError("disk"), ToolErrorKind.IO),
        (ValueError("bad"), ToolErrorKind.VALIDATION),
        (RuntimeError("bug"), ToolErrorKind.INTERNAL),
    ],
)
def test_classify_error(exc, kind):
    assert classify_error(exc) == kind


def test_timeout_turns_hung_handler_into_failure():
    release = threading.Event()

    def hang(args):
        release.wait(5)
        return "late"

    try:
        res = ToolExecutor(_registry(hang), timeout=0.05).execute(
            ToolCall(id="1", name="echo", arguments={"text": "x"})
        )
        assert res.error.kind == ToolErrorKind.TIMEOUT
    finally:
        release.set()
