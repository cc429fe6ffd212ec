import httpx
import pytest

from review_agent.domain.exceptions import ApiError, NetworkError, RateLimitError, ValidationError
from review_agent.domain.models import ChatRequest, Turn
from review_agent.providers.gemini_client import GeminiClient
from review_agent.tools.definitions import ToolCall, ToolErrorKind, ToolResult
from review_agent.tools.filesystem import LIST_FILES_SPEC, READ_FILE_SPEC


class SettingsStub:
    gemini_api_key = "g-key-123456"
    gemini_base_url = "https://example.test/v1beta"
    http_timeout = 1.0


def _install_client(monkeypatch, response, captured=None):
    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            if captured is not None:
                captured.update(url=url, payload=json, headers=headers)
            if isinstance(response, Exception):
                raise response
            return response

    monkeypatch.setattr("httpx.Client", Client)


def _req(turns, **kw):
    return ChatRequest(provider="gemini", model="review-chat", turns=turns, **kw)


def test_payload_groups_consecutive_tool_results(monkeypatch):
    a = ToolCall(id="a", name="listFiles", arguments={"directory": "src"})
    b = ToolCall(id="b", name="readFile", arguments={"filePath": "src/x.js"})
    turns = [
        Turn.user("review directory src"),
        Turn.model_calls([a, b]),
        Turn.tool_result(ToolResult.success(a, ["src/x.js"])),
        Turn.tool_result(ToolResult.failure(b, ToolErrorKind.NOT_FOUND, "no such file")),
    ]
    captured = {}
    _install_client(monkeypatch, httpx.Response(200, json={"candidates": []}), captured)

    GeminiClient(SettingsStub()).chat(
        _req(turns, tools=[LIST_FILES_SPEC, READ_FILE_SPEC], system_instruction="be careful")
    )

    assert captured["url"] == "https://example.test/v1beta/models/gemini-2.0-flash:generateContent"
    assert captured["headers"]["x-goog-api-key"] == "g-key-123456"
    payload = captured["payload"]
    assert [c["role"] for c in payload["contents"]] == ["user", "model", "user"]
    assert len(payload["contents"][1]["parts"]) == 2
    responses = [p["functionResponse"] for p in payload["contents"][2]["parts"]]
    assert [r["name"] for r in responses] == ["listFiles", "readFile"]
    assert responses[0]["response"] == {"result": ["src/x.js"]}
    assert responses[1]["response"]["error"]["kind"] == "NotFound"
    assert payload["systemInstruction"] == {"parts": [{"text": "be careful"}]}
    decl = payload["tools"][0]["functionDeclarations"][1]
    assert decl["name"] == "readFile"
    assert decl["parameters"]["type"] == "OBJECT"
    assert decl["parameters"]["properties"]["filePath"]["type"] == "STRING"
    assert decl["parameters"]["required"] == ["filePath"]


def test_parse_function_calls_and_usage(monkeypatch):
    body = {
        "candidates": [
            {
                "content": {
                    "role": "model",
                    "parts": [
                        {"functionCall": {"name": "readFile", "args": {"filePath": "a.js"}}},
                        {"functionCall": {"name": "readFile", "args": {"filePath": "b.js"}}},
                    ],
                }
            }
        ],
        "usageMetadata": {"promptTokenCount": 10, "candidatesTokenCount": 3, "totalTokenCount": 13},
    }
    _install_client(monkeypatch, httpx.Response(200, json=body))
    res = GeminiClient(SettingsStub()).chat(_req([Turn.user("hi")]))
    assert not res.is_final
    assert [c.arguments["filePath"] for c in res.tool_calls] == ["a.js", "b.js"]
    assert len({c.id for c in res.tool_calls}) == 2
    assert res.usage.total_tokens == 13


def test_parse_final_text(monkeypatch):
    body = {"candidates": [{"content": {"parts": [{"text": "CODE REVIEW "}, {"text": "COMPLETE"}]}}]}
    _install_client(monkeypatch, httpx.Response(200, json=body))
    res = GeminiClient(SettingsStub()).chat(_req([Turn.user("hi")]))
    assert res.is_final
    assert res.text == "CODE REVIEW COMPLETE"
    assert res.usage is None


def test_429_becomes_rate_limit_error_with_server_message(monkeypatch):
    body = {"error": {"code": 429, "message": "Quota exceeded. Please retry in 17.2s."}}
    _install_client(monkeypatch, httpx.Response(429, json=body, headers={"Retry-After": "18"}))
    with pytest.raises(RateLimitError) as excinfo:
        GeminiClient(SettingsStub()).chat(_req([Turn.user("hi")]))
    assert "retry in 17.2s" in excinfo.value.message
    assert excinfo.value.extra["retry_after"] == 18.0


def test_other_http_errors_become_api_error(monkeypatch):
    _install_client(monkeypatch, httpx.Response(400, json={"error": {"message": "bad schema"}}))
    with pytest.raises(ApiError) as excinfo:
        GeminiClient(SettingsStub()).chat(_req([Turn.user("hi")]))
    assert excinfo.value.http_status == 400
    assert excinfo.value.message == "bad schema"


def test_network_failure_becomes_network_error(monkeypatch):
    _install_client(monkeypatch, httpx.ConnectError("dns failure"))
    with pytest.raises(NetworkError):
        GeminiClient(SettingsStub()).chat(_req([Turn.user("hi")]))


def test_missing_api_key():
    class NoKey(SettingsStub):
        gemini_api_key = None

    with pytest.raises(ValidationError):
        GeminiClient(NoKey()).chat(_req([Turn.user("hi")]))
