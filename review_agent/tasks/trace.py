"""运行 trace 记录器。"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
from uuid import uuid4


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class TraceRecorder:
    """把单次运行的关键信息写入 JSON 文件，便于审计。

    每记录一步就整体重写一次文件，进程中途退出时也能保留已完成的步骤。
    """

    def __init__(
        self,
        trace_dir: Union[str, Path],
        *,
        directory: str,
        max_turns: int,
        trace_id: Optional[str] = None,
    ):
        self.trace_id = trace_id or f"run-{uuid4().hex}"
        traces_dir = Path(trace_dir)
        traces_dir.mkdir(parents=True, exist_ok=True)
        self.path = traces_dir / f"{self.trace_id}.json"
        self.data: Dict[str, Any] = {
            "trace_id": self.trace_id,
            "directory": directory,
            "max_turns": max_turns,
            "started_at": _utcnow(),
            "finished_at": None,
            "final_status": None,
            "final_reply_preview": None,
            "steps": [],
        }
        self._flush()

    def _flush(self) -> None:
        self.path.write_text(json.dumps(self.data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")

    def record_llm_step(self, step: int, *, tool_calls: int, summary: str) -> None:
        self.data["steps"].append(
            {
                "type": "llm",
                "step": step,
                "timestamp": _utcnow(),
                "tool_calls": tool_calls,
                "response_summary": summary,
            }
        )
        self._flush()

    def record_tool_step(
        self,
        step: int,
        *,
        tool_name: str,
        args: Mapping[str, Any],
        result_summary: Optional[str] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "type": "tool",
            "step": step,
            "timestamp": _utcnow(),
            "tool_name": tool_name,
            "args": _trim_args(args),
            "result_summary": result_summary,
        }
        if error:
            entry["error"] = error
        self.data["steps"].append(entry)
        self._flush()

    def finalize(self, status: str, final_reply: str) -> None:
        self.data["finished_at"] = _utcnow()
        self.data["final_status"] = status
        self.data["final_reply_preview"] = (final_reply or "")[:400]
        self._flush()


def _trim_args(args: Mapping[str, Any]) -> Dict[str, Any]:
    trimmed: Dict[str, Any] = {}
    for key, value in args.items():
        if isinstance(value, str) and len(value) > 200:
            trimmed[key] = value[:200] + "..."
        else:
            trimmed[key] = value
    return trimmed


def summarize(text: Optional[str], limit: int = 160) -> str:
    if not text:
        return ""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[:limit] + "..."
