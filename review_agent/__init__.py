"""Code review agent 顶层包。

该包提供一个工具调用式的代码审查 Agent：
模型通过 listFiles / readFile / writeFile 三个工具自主浏览并修复目标目录，
包括配置加载、领域模型、Provider 适配（含限流重试）、工具系统、
基于 LangGraph 的对话循环与运行 trace。
"""

from review_agent.flows.runner import AgentLoop, AgentRunResult, run_review

__all__ = ["AgentLoop", "AgentRunResult", "run_review"]
