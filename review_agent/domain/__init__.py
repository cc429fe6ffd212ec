"""领域层模型与协议。

包含：
- models: Turn / ChatRequest / ChatResult 等统一模型。
- conversation: 单次运行的只追加会话日志 ConversationState。
- exceptions: 业务异常类型定义。
"""
