"""会话编排模块。

ConversationSession 负责：
- 维护只追加的有序消息日志（至少包含开场问候）。
- 单飞（single-flight）：同一时刻最多一次交换在进行，Pending 期间的 send 直接丢弃。
- 调用回复 Provider，并把成功/失败统一落到日志与 last_error 上；
  失败时依然追加一条平静的致歉消息，保证 user / assistant 交替。
- reset 开启新的日志代（generation），旧交换的迟到结果会被丢弃。
"""

import logging
import re
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

from neuron_core.domain.exceptions import BusinessError
from neuron_core.domain.models import ConversationState, Message
from neuron_core.infrastructure.logging.logger import exchange_context, logger
from neuron_core.providers.base import ReplyProvider


GREETING_TEXT = "Hi. I'm Neuron. I'm here to listen. No judgment, no rushing. What's on your mind right now?"
RESET_GREETING_TEXT = "We can start fresh. What's present for you right now?"
APOLOGY_TEXT = (
    "I'm here. Something went wrong while I was trying to respond. "
    "If you want, you can try again, or just tell me what you're feeling in one sentence."
)
DEFAULT_ERROR_TEXT = "Failed to reach Gemini"

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_text(raw_text: Optional[str]) -> str:
    """合并连续空白并去除首尾空白。"""

    return _WHITESPACE_RE.sub(" ", str(raw_text or "")).strip()


class ConversationSession:
    def __init__(
        self,
        provider_client: ReplyProvider,
        greeting: str = GREETING_TEXT,
        reset_greeting: str = RESET_GREETING_TEXT,
    ):
        self._provider_client = provider_client
        self._reset_greeting = reset_greeting
        self._lock = threading.Lock()
        self._messages: List[Message] = [Message.create("assistant", greeting)]
        self._is_pending = False
        self._last_error: Optional[str] = None
        self._generation = 0

    # ---- 只读视图 ----

    @property
    def messages(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def is_pending(self) -> bool:
        return self._is_pending

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    @property
    def can_send(self) -> bool:
        return not self._is_pending

    def state(self) -> ConversationState:
        with self._lock:
            return ConversationState(
                messages=tuple(self._messages),
                is_pending=self._is_pending,
                last_error=self._last_error,
            )

    # ---- 变更操作 ----

    def send(self, raw_text: str) -> Optional[Message]:
        """执行一次交换。

        Args:
            raw_text: 用户原始输入

        Returns:
            追加的助手消息（回复或致歉）；输入为空、已有交换进行中，
            或结果因 reset 被丢弃时返回 None。
        """
        text = normalize_text(raw_text)
        if not text:
            return None

        with self._lock:
            if self._is_pending:
                self._log(logging.INFO, "Dropped send while pending")
                return None
            self._is_pending = True
            self._last_error = None
            generation = self._generation
            user_msg = Message.create("user", text)
            self._messages.append(user_msg)
            history = tuple(self._messages)

        with exchange_context(user_msg.id):
            return self._run_exchange(user_msg, history, generation)

    def _run_exchange(self, user_msg: Message, history: Tuple[Message, ...], generation: int) -> Optional[Message]:
        start_time = time.time()
        self._log(logging.INFO, "Exchange started", message_id=user_msg.id, history_len=len(history))
        reply: Optional[str] = None
        error: Optional[str] = None
        try:
            reply = self._provider_client.generate_reply(history)
        except Exception as e:
            error = self._describe_error(e)
            self._log(
                logging.ERROR,
                "Exchange failed",
                message_id=user_msg.id,
                error_type=type(e).__name__,
                code=getattr(e, "code", None),
                error=error,
            )
        finally:
            with self._lock:
                if generation != self._generation:
                    # reset 已经清空 pending 并开启了新日志，丢弃迟到结果
                    self._log(logging.INFO, "Discarded result of abandoned exchange", message_id=user_msg.id)
                    assistant_msg = None
                else:
                    if error is not None or reply is None:
                        self._last_error = error or DEFAULT_ERROR_TEXT
                        assistant_msg = Message.create("assistant", APOLOGY_TEXT)
                    else:
                        assistant_msg = Message.create("assistant", reply)
                    self._messages.append(assistant_msg)
                    self._is_pending = False

        if assistant_msg is not None:
            self._log(
                logging.INFO,
                "Exchange completed",
                message_id=user_msg.id,
                ok=error is None,
                elapsed_seconds=round(time.time() - start_time, 2),
            )
        return assistant_msg

    def reset(self) -> None:
        """清空错误与 pending，并以一条新的问候开启新日志。"""
        with self._lock:
            abandoned = self._is_pending
            self._generation += 1
            self._last_error = None
            self._is_pending = False
            self._messages = [Message.create("assistant", self._reset_greeting)]
        self._log(logging.INFO, "Conversation reset", abandoned_exchange=abandoned)

    # ---- 辅助方法 ----

    @staticmethod
    def _describe_error(exc: Exception) -> str:
        if isinstance(exc, BusinessError) and exc.message:
            return exc.message
        return str(exc) or DEFAULT_ERROR_TEXT

    def _log(self, level: int, message: str, **fields: Any) -> None:
        payload: Dict[str, Any] = {"provider": getattr(self._provider_client, "name", "unknown")}
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
