"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在会话层或 UI 层做统一捕获与用户提示。

回复客户端在每次请求失败后只做一次分类（classify_failure），
重试分支基于 FailureKind 枚举，而不是在各处重复匹配错误文本。
"""

import re
from enum import Enum


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "MISSING_API_KEY"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 detail、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BusinessError):
    """凭证缺失或无效，需要用户完成配置。"""


class ModelUnavailableError(BusinessError):
    """配置的模型被拒绝，且自动探测也找不到可用模型。"""


class ProtocolError(BusinessError):
    """后端响应结构不符合预期（包括降级请求后依然失败）。"""


class TransportError(BusinessError):
    """网络层或 HTTP 层错误，detail 保存后端返回的原始错误正文。"""

    @property
    def detail(self) -> str:
        return str(self.extra.get("detail") or "")


class RateLimitError(TransportError):
    """HTTP 429 限流。"""


class FailureKind(Enum):
    """一次失败请求的分类结果，决定客户端走哪条自愈分支。"""

    MODEL_NOT_FOUND = "model_not_found"
    INSTRUCTION_FIELD_REJECTED = "instruction_field_rejected"
    OTHER = "other"


_MODEL_NOT_FOUND_RE = re.compile(r"models/[\w.-]+ is not found|Call ListModels|NOT_FOUND", re.IGNORECASE)
_INSTRUCTION_FIELD_RE = re.compile(r'Unknown name "systemInstruction"|systemInstruction', re.IGNORECASE)


def classify_failure(detail: str) -> FailureKind:
    """根据后端错误正文判定失败类型（模型不存在优先）。"""

    text = detail or ""
    if _MODEL_NOT_FOUND_RE.search(text):
        return FailureKind.MODEL_NOT_FOUND
    if _INSTRUCTION_FIELD_RE.search(text):
        return FailureKind.INSTRUCTION_FIELD_REJECTED
    return FailureKind.OTHER
