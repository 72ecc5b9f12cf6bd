"""对外 API 服务模块。

提供简化的函数接口供展示层调用：只暴露 send / reset 两个变更入口，
以及会话状态的只读字典视图。
"""

import threading
from typing import Any, Dict, Optional

from neuron_core.agents.session import ConversationSession
from neuron_core.domain.models import ConversationState
from neuron_core.providers import create_reply_client


_session: Optional[ConversationSession] = None
_session_lock = threading.Lock()


def get_default_session() -> ConversationSession:
    """获取默认的会话实例（单例）。"""
    global _session
    with _session_lock:
        if _session is None:
            _session = ConversationSession(provider_client=create_reply_client())
        return _session


def send_thought(text: str) -> Dict[str, Any]:
    """发送一条用户输入并返回交换结束后的会话状态。

    会话层从不向外抛出异常：失败会体现在 "error" 字段与一条致歉消息上。
    """
    session = get_default_session()
    session.send(text)
    return _state_to_dict(session.state())


def reset_conversation() -> Dict[str, Any]:
    """重置会话，返回只含问候消息的新状态。"""
    session = get_default_session()
    session.reset()
    return _state_to_dict(session.state())


def get_conversation_state() -> Dict[str, Any]:
    """获取会话当前状态。

    Returns:
        包含 messages、is_pending、error 的字典
    """
    return _state_to_dict(get_default_session().state())


def _state_to_dict(state: ConversationState) -> Dict[str, Any]:
    return {
        "messages": [
            {
                "id": m.id,
                "role": m.role,
                "text": m.text,
                "created_at": m.created_at.isoformat(),
            }
            for m in state.messages
        ],
        "is_pending": state.is_pending,
        "error": state.last_error,
    }
