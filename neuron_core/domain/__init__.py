"""领域层模型与异常。

包含：
- models: Message / ConversationState / ModelCandidate / GenerationConfig。
- exceptions: 业务异常类型定义与失败分类。
"""
