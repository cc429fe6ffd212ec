"""Gemini Provider 适配器。

使用 REST 接口 models/{model}:generateContent：
- URL: {base_url}/models/{model}:generateContent
- 认证: x-goog-api-key: <api_key>

会话映射规则：
- user 记录 -> role "user" 的 text part。
- model 记录 -> role "model"，整批工具调用各占一个 functionCall part。
- 连续的 tool-result 记录合并为一条 role "user"，每个结果一个 functionResponse part。
"""

from typing import Any, Dict, List, Sequence
from uuid import uuid4

import httpx

from review_agent.domain.exceptions import NetworkError, ValidationError
from review_agent.domain.models import ChatRequest, ChatResult, ChatUsage, Turn
from review_agent.providers.base import raise_for_status
from review_agent.providers.registry import GEMINI_CONFIG, ModelConfig
from review_agent.tools.definitions import ToolCall, ToolSpec


class GeminiClient:
    """Gemini 提供方客户端实现。"""

    name = "gemini"

    def __init__(self, settings):
        self._settings = settings

    def chat(self, req: ChatRequest) -> ChatResult:
        if not getattr(self._settings, "gemini_api_key", None):
            raise ValidationError(code="MISSING_API_KEY", message="GEMINI_API_KEY not set")
        model_cfg = GEMINI_CONFIG.model(req.model)
        payload = self._build_payload(req, model_cfg)
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{base}/models/{model_cfg.provider_model}:generateContent",
                    json=payload,
                    headers={
                        "x-goog-api-key": self._settings.gemini_api_key,
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        raise_for_status(resp, self.name)
        return self._parse_response(resp.json(), req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "contents": self._contents(req.turns),
            "generationConfig": {
                "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
                "maxOutputTokens": req.max_tokens or model_cfg.max_tokens,
            },
        }
        if req.system_instruction:
            payload["systemInstruction"] = {"parts": [{"text": req.system_instruction}]}
        if req.tools:
            payload["tools"] = [{"functionDeclarations": [self._serialize_tool(t) for t in req.tools]}]
        return payload

    @staticmethod
    def _contents(turns: Sequence[Turn]) -> List[Dict[str, Any]]:
        contents: List[Dict[str, Any]] = []
        for turn in turns:
            if turn.role == "user":
                contents.append({"role": "user", "parts": [{"text": turn.text or ""}]})
            elif turn.role == "model":
                parts = [{"functionCall": {"name": c.name, "args": dict(c.arguments)}} for c in turn.tool_calls]
                contents.append({"role": "model", "parts": parts})
            elif turn.result is not None:
                part = {
                    "functionResponse": {
                        "name": turn.result.name,
                        "response": turn.result.to_payload(),
                    }
                }
                last = contents[-1] if contents else None
                if last and last.get("_tool_results"):
                    last["parts"].append(part)
                else:
                    contents.append({"role": "user", "parts": [part], "_tool_results": True})
        for item in contents:
            item.pop("_tool_results", None)
        return contents

    @staticmethod
    def _serialize_tool(tool: ToolSpec) -> Dict[str, Any]:
        """把内部的 ToolSpec 转成 Gemini functionDeclaration（OpenAPI 大写类型）。"""

        properties: Dict[str, Any] = {}
        for param in tool.params:
            schema = {k: v for k, v in param.schema.items() if k != "type"}
            schema["type"] = param.type.upper()
            if param.description:
                schema["description"] = param.description
            properties[param.name] = schema
        return {
            "name": tool.name,
            "description": tool.description,
            "parameters": {
                "type": "OBJECT",
                "properties": properties,
                "required": list(tool.required),
            },
        }

    def _parse_response(self, data: Dict[str, Any], req: ChatRequest) -> ChatResult:
        """将 Gemini 的原始响应 JSON 解析为统一的 ChatResult。

        只看第一个 candidate；functionCall part 优先于文本。
        """

        candidates = data.get("candidates") or []
        parts: List[Dict[str, Any]] = []
        if candidates:
            parts = (candidates[0].get("content") or {}).get("parts") or []

        tool_calls: List[ToolCall] = []
        texts: List[str] = []
        for part in parts:
            call = part.get("functionCall")
            if call:
                tool_calls.append(
                    ToolCall(
                        id=call.get("id") or f"call-{uuid4().hex[:12]}",
                        name=call.get("name") or "",
                        arguments=call.get("args") or {},
                    )
                )
            elif part.get("text"):
                texts.append(part["text"])

        usage_raw = data.get("usageMetadata") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("promptTokenCount", 0),
                completion_tokens=usage_raw.get("candidatesTokenCount", 0),
                total_tokens=usage_raw.get("totalTokenCount", 0),
            )
        return ChatResult(
            provider=self.name,
            model=req.model,
            tool_calls=tool_calls,
            text="".join(texts),
            usage=usage,
            raw=data,
        )
