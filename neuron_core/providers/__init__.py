"""回复 Provider 集成层。

该包下的模块负责：
- 定义回复 Provider 抽象接口 (base)。
- 维护后端常量与模型探测偏好 (registry)。
- 提供 Gemini 的具体实现 (gemini_client)。
"""

from typing import Optional

from neuron_core.config.settings import settings
from neuron_core.providers.base import ReplyProvider
from neuron_core.providers.gemini_client import GeminiReplyClient


def create_reply_client(cfg=None, system_instruction: Optional[str] = None) -> ReplyProvider:
    """根据配置创建回复客户端，默认使用全局 settings。"""

    return GeminiReplyClient(cfg or settings, system_instruction=system_instruction)
