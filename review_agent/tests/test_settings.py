import pydantic
import pytest

from review_agent.config.settings import load_settings
from review_agent.tools.filesystem import DEFAULT_EXTENSIONS, registry_from_settings


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in ("GEMINI_API_KEY", "GLM_API_KEY", "KIMI_API_KEY", "MAX_TURNS", "DEFAULT_PROVIDER", "AGENT_CONFIG_FILE"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults():
    s = load_settings()
    assert s.default_provider == "gemini"
    assert s.max_turns == 50
    assert s.max_retries == 5
    assert s.retry_base_delay == 5.0
    assert s.tool_timeout is None
    assert s.restrict_to_workspace is True
    assert s.allowed_extensions == list(DEFAULT_EXTENSIONS)


def test_overrides_and_extension_normalization():
    s = load_settings(max_turns=3, allowed_extensions=["JS", " ts", "", ".Vue"])
    assert s.max_turns == 3
    assert s.allowed_extensions == [".js", ".ts", ".vue"]


def test_short_api_key_rejected():
    with pytest.raises(pydantic.ValidationError):
        load_settings(gemini_api_key="short")


def test_yaml_file_then_env_precedence(monkeypatch, tmp_path):
    cfg = tmp_path / "agent.yaml"
    cfg.write_text("default_provider: kimi\nmax_turns: 7\ntrace_dir: traces\n", encoding="utf-8")
    monkeypatch.setenv("AGENT_CONFIG_FILE", str(cfg))
    s = load_settings()
    assert s.default_provider == "kimi"
    assert s.max_turns == 7
    assert s.trace_dir == "traces"

    monkeypatch.setenv("MAX_TURNS", "9")
    assert load_settings().max_turns == 9
    assert load_settings(max_turns=2).max_turns == 2


def test_cwd_config_yaml_is_picked_up(tmp_path):
    (tmp_path / "config.yaml").write_text("max_retries: 2\n", encoding="utf-8")
    assert load_settings().max_retries == 2


def test_registry_from_settings_honours_tool_options(tmp_path):
    (tmp_path / "vendor").mkdir()
    (tmp_path / "vendor" / "lib.py").write_text("", encoding="utf-8")
    (tmp_path / "main.py").write_text("", encoding="utf-8")
    (tmp_path / "app.js").write_text("", encoding="utf-8")
    s = load_settings(allowed_extensions=["py"], excluded_dirs=["vendor"], restrict_to_workspace=False)
    registry = registry_from_settings(s, workspace_root=tmp_path)
    files = registry.handler_for("listFiles")({"directory": str(tmp_path)})
    assert files == [str(tmp_path / "main.py")]
