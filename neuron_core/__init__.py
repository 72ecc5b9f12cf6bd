"""Neuron Core 顶层包。

该包提供 Neuron 倾听型对话助手的核心实现，
包括配置加载、领域模型、Gemini 回复客户端（含模型探测与请求降级重试）、
会话编排与日志等能力。
"""

from neuron_core.agents.session import ConversationSession
from neuron_core.providers import create_reply_client

__all__ = ["ConversationSession", "create_reply_client"]
