"""对话领域数据模型。

本模块定义会话层与回复客户端之间共享的数据结构：

- Message: 会话日志中的一条消息（user / assistant），创建后不可变。
- ConversationState: 会话状态快照，供展示层只读渲染。
- ModelCandidate: 模型探测接口返回的候选模型（仅在客户端内部短暂使用）。
- GenerationConfig: 生成参数，原样透传给后端。
"""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Tuple
from uuid import uuid4


# 会话消息角色（发往后端时 assistant 映射为 "model"）
Role = Literal["user", "assistant"]


def new_message_id() -> str:
    """时间戳 + 随机后缀，单个会话内不会冲突。"""

    return f"m-{time.time_ns()}-{uuid4().hex[:8]}"


@dataclass(frozen=True)
class Message:
    id: str
    role: Role
    text: str
    created_at: datetime

    @classmethod
    def create(cls, role: Role, text: str) -> "Message":
        return cls(id=new_message_id(), role=role, text=text, created_at=datetime.now(timezone.utc))


@dataclass(frozen=True)
class ConversationState:
    """会话状态快照。

    - messages: 按发送顺序排列的消息，至少包含开场问候。
    - is_pending: 是否有一次交换正在进行。
    - last_error: 最近一次失败的可读描述，成功或重置后清空。
    """

    messages: Tuple[Message, ...]
    is_pending: bool
    last_error: Optional[str] = None


@dataclass
class ModelCandidate:
    name: str
    supports_generation: bool

    @classmethod
    def from_descriptor(cls, descriptor: Dict[str, Any]) -> "ModelCandidate":
        """解析 ListModels 返回的单个模型描述，去掉 "models/" 前缀。"""

        name = str(descriptor.get("name") or "")
        if name.startswith("models/"):
            name = name[len("models/"):]
        methods = descriptor.get("supportedGenerationMethods") or []
        return cls(name=name, supports_generation=isinstance(methods, list) and "generateContent" in methods)


@dataclass
class GenerationConfig:
    """采样参数。extra 中的键会原样合并进请求体。"""

    temperature: float = 0.6
    top_p: float = 0.9
    max_output_tokens: int = 420
    top_k: Optional[int] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "temperature": self.temperature,
            "topP": self.top_p,
            "maxOutputTokens": self.max_output_tokens,
        }
        if self.top_k is not None:
            payload["topK"] = self.top_k
        payload.update(self.extra)
        return payload
