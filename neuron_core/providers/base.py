"""回复 Provider 抽象接口。

会话层 ConversationSession 不直接依赖具体的 HTTP 实现，而是依赖此协议：

- 输入：完整的有序消息历史（包含刚追加的用户消息）。
- 输出：去除首尾空白、非空的回复文本；失败时抛出已分类的 BusinessError。

测试中可以用任意实现了 generate_reply 的假对象替换真实客户端。
"""

from typing import Protocol, Sequence

from neuron_core.domain.models import Message


class ReplyProvider(Protocol):
    """回复客户端协议。

    - name: Provider 名称，用于日志。
    - generate_reply(history): 生成下一条助手回复。
    """

    name: str

    def generate_reply(self, history: Sequence[Message]) -> str:
        ...
