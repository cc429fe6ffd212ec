import json
import logging
import sys
from pathlib import Path
from datetime import datetime, timezone
from typing import Any, Dict, Optional


logger = logging.getLogger("review_agent")


class JsonFormatter(logging.Formatter):
    def __init__(self, redact_content: bool = False):
        super().__init__()
        self._redact = redact_content

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            if self._redact:
                extra = {k: (v[:64] if isinstance(v, str) else v) for k, v in extra.items()}
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """控制台进度输出：消息 + 关键字段。"""

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict) and extra:
            fields = " ".join(f"{k}={v}" for k, v in extra.items() if k != "trace_id")
            if fields:
                msg = f"{msg} ({fields})"
        return msg


def setup_logger(settings, console: bool = True) -> logging.Logger:
    """按配置挂载 JSON 文件日志与 stderr 控制台日志，可重复调用。"""

    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if getattr(settings, "log_to_file", True):
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_dir / "agent.log", encoding="utf-8")
        fh.setLevel(logging.INFO)
        fh.setFormatter(JsonFormatter(redact_content=settings.log_redact_content))
        logger.addHandler(fh)

    if console:
        ch = logging.StreamHandler(sys.stderr)
        ch.setLevel(logging.INFO)
        ch.setFormatter(ConsoleFormatter())
        logger.addHandler(ch)
    return logger


def log_event(level: int, message: str, log_ctx: Optional[Dict[str, Any]] = None, **fields: Any) -> None:
    payload = dict(log_ctx or {})
    payload.update(fields)
    logger.log(level, message, extra={"extra": payload})
