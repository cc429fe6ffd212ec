"""OpenAI 兼容 Provider 适配器（GLM / Kimi）。

两家接口风格一致，均使用 chat/completions 端点：
- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>

会话映射规则：
- user 记录 -> role "user"。
- model 记录 -> role "assistant" + tool_calls。
- tool-result 记录 -> role "tool" + tool_call_id，content 为 JSON 文本。
"""

import json
from typing import Any, Dict, List, Optional, Sequence

import httpx

from review_agent.domain.exceptions import NetworkError, ValidationError
from review_agent.domain.models import ChatRequest, ChatResult, ChatUsage, Turn
from review_agent.providers.base import raise_for_status
from review_agent.providers.registry import ModelConfig, ProviderConfig
from review_agent.tools.definitions import ToolCall, ToolSpec


class OpenAICompatibleClient:
    """GLM / Kimi 等 OpenAI 兼容厂商的客户端实现。"""

    def __init__(self, settings, config: ProviderConfig):
        self._settings = settings
        self._config = config
        self.name = config.name

    @property
    def _api_key(self) -> Optional[str]:
        return getattr(self._settings, f"{self.name}_api_key", None)

    @property
    def _base_url(self) -> str:
        return getattr(self._settings, f"{self.name}_base_url", None) or self._config.base_url

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并把网络错误/限流/服务端错误转换为业务异常。
        4. 解析第一个 choice 为 ChatResult。
        """

        if not self._api_key:
            raise ValidationError(code="MISSING_API_KEY", message=f"{self.name.upper()}_API_KEY not set")
        model_cfg = self._config.model(req.model)
        payload = self._build_payload(req, model_cfg)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                resp = client.post(
                    f"{self._base_url}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e))
        raise_for_status(resp, self.name)
        return self._parse_response(resp.json(), req)

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        msgs: List[Dict[str, Any]] = []
        if req.system_instruction:
            msgs.append({"role": "system", "content": req.system_instruction})
        msgs.extend(self._messages(req.turns))
        payload: Dict[str, Any] = {
            "model": model_cfg.provider_model,
            "messages": msgs,
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
        }
        if req.tools:
            payload["tools"] = [self._serialize_tool(tool) for tool in req.tools]
            payload["tool_choice"] = "auto"
        return payload

    @staticmethod
    def _messages(turns: Sequence[Turn]) -> List[Dict[str, Any]]:
        msgs: List[Dict[str, Any]] = []
        for turn in turns:
            if turn.role == "user":
                msgs.append({"role": "user", "content": turn.text or ""})
            elif turn.role == "model":
                msgs.append(
                    {
                        "role": "assistant",
                        "tool_calls": [
                            {
                                "id": call.id,
                                "type": "function",
                                "function": {
                                    "name": call.name,
                                    "arguments": json.dumps(dict(call.arguments), ensure_ascii=False),
                                },
                            }
                            for call in turn.tool_calls
                        ],
                    }
                )
            elif turn.result is not None:
                msgs.append(
                    {
                        "role": "tool",
                        "tool_call_id": turn.result.call_id,
                        "content": json.dumps(turn.result.to_payload(), ensure_ascii=False, default=str),
                    }
                )
        return msgs

    @staticmethod
    def _serialize_tool(tool: ToolSpec) -> Dict[str, Any]:
        """把内部的 ToolSpec 转成 function tool 描述。"""

        properties: Dict[str, Any] = {}
        for param in tool.params:
            schema = dict(param.schema or {"type": "string"})
            if param.description:
                schema["description"] = param.description
            properties[param.name] = schema
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": {
                    "type": "object",
                    "properties": properties,
                    "required": list(tool.required),
                },
            },
        }

    def _parse_response(self, data: Dict[str, Any], req: ChatRequest) -> ChatResult:
        choices = data.get("choices") or []
        message: Dict[str, Any] = (choices[0].get("message") or {}) if choices else {}

        tool_calls: List[ToolCall] = []
        for idx, call in enumerate(message.get("tool_calls") or []):
            func = call.get("function") or {}
            tool_calls.append(
                ToolCall(
                    id=call.get("id") or f"tool_call_{idx}",
                    name=func.get("name") or call.get("name") or "",
                    arguments=self._parse_arguments(func.get("arguments")),
                )
            )

        # 部分模型仍会返回旧版 function_call 字段
        function_call = message.get("function_call")
        if function_call:
            tool_calls.append(
                ToolCall(
                    id=function_call.get("id") or "function_call",
                    name=function_call.get("name") or "",
                    arguments=self._parse_arguments(function_call.get("arguments")),
                )
            )

        usage_raw = data.get("usage") or {}
        usage = None
        if usage_raw:
            usage = ChatUsage(
                prompt_tokens=usage_raw.get("prompt_tokens", 0),
                completion_tokens=usage_raw.get("completion_tokens", 0),
                total_tokens=usage_raw.get("total_tokens", 0),
            )
        return ChatResult(
            provider=self.name,
            model=req.model,
            tool_calls=tool_calls,
            text=message.get("content") or "",
            usage=usage,
            raw=data,
        )

    @staticmethod
    def _parse_arguments(raw: Any) -> Dict[str, Any]:
        """解析工具调用的 arguments 字段。

        厂商会把 arguments 作为 JSON 字符串返回，这里做一层
        json.loads 尝试，失败时保留原始字符串到 `_raw`，避免信息丢失。
        """

        if isinstance(raw, dict):
            return raw
        if isinstance(raw, str):
            try:
                parsed = json.loads(raw)
            except json.JSONDecodeError:
                return {"_raw": raw}
            return parsed if isinstance(parsed, dict) else {"_raw": raw}
        return {}
