"""配置管理模块。

支持从初始化参数、环境变量、.env 以及 config.yaml 加载配置。
不在导入时创建全局实例：调用方通过 load_settings() 显式构造，
再把同一个 Settings 传给 Provider、工具与 AgentLoop。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from review_agent.tools.filesystem import DEFAULT_EXCLUDED_DIRS, DEFAULT_EXTENSIONS, DEFAULT_MAX_DEPTH


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("AGENT_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 相关配置 ----
    default_provider: str = Field(
        default="gemini",
        description="默认使用的 Provider 名称，例如 gemini、glm、kimi",
    )
    default_model: str = Field(
        default="review-chat",
        description="逻辑模型名，由 registry 映射为具体厂商模型",
    )

    # Gemini
    gemini_api_key: Optional[str] = Field(default=None, description="Gemini API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )
    # GLM / BigModel
    glm_api_key: Optional[str] = Field(default=None, description="GLM API 密钥")
    glm_base_url: str = Field(
        default="https://open.bigmodel.cn/api/paas/v4",
        description="GLM API 基础URL",
    )
    # Kimi
    kimi_api_key: Optional[str] = Field(default=None, description="Kimi API 密钥")
    kimi_base_url: str = Field(
        default="https://api.moonshot.cn/v1",
        description="Kimi API 基础URL",
    )
    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    temperature: float = Field(default=0.3, ge=0.0, le=2.0, description="生成温度")

    # ---- Agent 循环 ----
    max_turns: int = Field(default=50, ge=1, description="单次运行允许的最大后端调用次数")
    max_retries: int = Field(default=5, ge=1, description="限流时的最大尝试次数（含首次）")
    retry_base_delay: float = Field(default=5.0, ge=0.0, description="指数退避基础延迟（秒）")
    retry_margin: float = Field(default=1.0, ge=0.0, description="服务端建议等待时间之外的安全余量（秒）")
    tool_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="单次工具执行超时（秒），为空时同步执行不设超时",
    )

    # ---- 文件工具 ----
    allowed_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    excluded_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    max_list_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=1, description="listFiles 最大递归深度")
    restrict_to_workspace: bool = Field(
        default=True,
        description="是否禁止工具访问目标目录之外的路径",
    )

    # ---- 日志 / trace ----
    log_dir: str = Field(default="logs", description="日志目录")
    log_to_file: bool = Field(default=True, description="是否写入 JSON 文件日志")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")
    trace_dir: Optional[str] = Field(default=None, description="运行 trace 输出目录，为空时不记录")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("gemini_api_key", "glm_api_key", "kimi_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("allowed_extensions")
    @classmethod
    def normalize_extensions(cls, v: List[str]) -> List[str]:
        return [e if e.startswith(".") else f".{e}" for e in (x.strip().lower() for x in v) if e]

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


def load_settings(**overrides: Any) -> Settings:
    """显式构造配置对象，overrides 优先级最高。"""

    return Settings(**overrides)
