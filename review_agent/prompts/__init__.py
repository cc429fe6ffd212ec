"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取对应的 system prompt 文本，
作为 ChatRequest.system_instruction 发给后端。审查规则属于配置数据，
修改这里的 markdown 即可调整 Agent 行为，无需改代码。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(agent_type: str = "code_review", locale: str = "en") -> str:
    """根据 Agent 类型和语言加载系统提示词文本。"""

    fname = PROMPTS_DIR / locale / f"{agent_type}_system.md"
    return fname.read_text(encoding="utf-8")


def build_instruction(directory: str) -> str:
    """生成一次运行的首条 user 指令。"""

    return (
        f"Review and fix any issues in the codebase located at {directory}. "
        "You can use the listFiles, readFile and writeFile tools to interact with the file system."
    )
