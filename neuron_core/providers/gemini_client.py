"""Gemini 回复客户端。

本模块负责：

1. 把会话历史转换为 generateContent 请求（assistant -> "model"，user -> "user"）。
2. 随每次请求附带固定的行为指令（systemInstruction 字段，或合并为首条轮次）。
3. 调用 HTTP 接口并把网络/HTTP 异常包装为 TransportError。
4. 失败后分类一次（FailureKind），按分类自愈：
   - 模型不存在：调用 ListModels 探测可用模型，换模型重试一次；
   - systemInstruction 字段不被识别：改为合并轮次方式重试一次。
5. 从响应中提取回复文本，空回复替换为固定占位文本。

整个交换最多两次生成请求加一次探测请求，全部串行执行。
"""

from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx

from neuron_core.config.settings import settings
from neuron_core.domain.exceptions import (
    ConfigurationError,
    FailureKind,
    ModelUnavailableError,
    ProtocolError,
    RateLimitError,
    TransportError,
    classify_failure,
)
from neuron_core.domain.models import GenerationConfig, Message, ModelCandidate
from neuron_core.infrastructure.logging.logger import logger
from neuron_core.prompts import load_system_prompt
from neuron_core.providers.registry import GEMINI_CONFIG


EMPTY_REPLY_PLACEHOLDER = (
    "I'm here with you. I had trouble forming a response. "
    "Could you say that again in a slightly different way?"
)
MERGED_TURN_SUFFIX = "(Conversation starts below.)"


class InstructionStrategy(Enum):
    """行为指令的发送方式。"""

    STRUCTURED = "structured"  # systemInstruction 独立字段（首选）
    MERGED_TURN = "merged_turn"  # 作为首条 user 轮次合并进 contents


def pick_fallback_model(candidates: Iterable[ModelCandidate], exclude: Optional[str] = None) -> Optional[str]:
    """从探测结果中挑选替代模型：优先 fast/flash 类，其次第一个支持生成的模型。

    exclude 为刚被后端拒绝的模型名，不会再被选中。
    """

    supported = [c.name for c in candidates if c.supports_generation and c.name and c.name != exclude]
    for name in supported:
        if GEMINI_CONFIG.fallback_pattern.search(name):
            return name
    return supported[0] if supported else None


class GeminiReplyClient:
    """Gemini 回复客户端实现。

    - name: Provider 名称（供日志使用）。
    - generate_reply: 对外统一调用入口，返回非空回复文本。
    """

    name = "gemini"

    def __init__(
        self,
        cfg=settings,
        system_instruction: Optional[str] = None,
        generation: Optional[GenerationConfig] = None,
    ):
        # Settings 里包含 api_key、模型、base_url、超时与采样参数
        self._settings = cfg
        self._instruction = system_instruction if system_instruction is not None else load_system_prompt("neuron")
        self._generation = generation or GenerationConfig(
            temperature=getattr(cfg, "temperature", 0.6),
            top_p=getattr(cfg, "top_p", 0.9),
            max_output_tokens=getattr(cfg, "max_output_tokens", 420),
            top_k=getattr(cfg, "top_k", None),
        )

    # ---- 对外入口 ----

    def generate_reply(self, history: Sequence[Message]) -> str:
        api_key = self._require_api_key()
        model = self._configured_model()
        contents = self._build_contents(history)
        try:
            data = self._generate(api_key, model, self._build_payload(contents, InstructionStrategy.STRUCTURED))
        except TransportError as exc:
            kind = classify_failure(exc.detail)
            self._log_failure(model, exc, kind)
            if kind is FailureKind.MODEL_NOT_FOUND:
                return self._retry_with_fallback_model(api_key, model, contents)
            if kind is FailureKind.INSTRUCTION_FIELD_REJECTED:
                return self._retry_with_merged_instruction(api_key, model, contents)
            raise
        return self._extract_text(data)

    def list_models(self, api_key: str) -> List[ModelCandidate]:
        """调用 ListModels 探测接口，返回候选模型列表。"""

        resp = self._request("GET", f"{self._base_url()}/models", api_key)
        data = self._decode(resp)
        models = data.get("models") or []
        if not isinstance(models, list):
            raise ProtocolError(code="UNEXPECTED_RESPONSE", message="ListModels returned a non-list 'models' field")
        return [ModelCandidate.from_descriptor(m) for m in models if isinstance(m, dict)]

    # ---- 自愈分支 ----

    def _retry_with_fallback_model(self, api_key: str, model: str, contents: List[Dict[str, Any]]) -> str:
        fallback = self._discover_fallback_model(api_key, model)
        logger.warning(
            "Retrying with discovered model",
            extra={"extra": {"requested_model": model, "fallback_model": fallback}},
        )
        try:
            data = self._generate(api_key, fallback, self._build_payload(contents, InstructionStrategy.STRUCTURED))
        except TransportError as exc:
            if classify_failure(exc.detail) is FailureKind.MODEL_NOT_FOUND:
                raise self._model_unavailable(model, exc.detail) from exc
            raise
        return self._extract_text(data)

    def _discover_fallback_model(self, api_key: str, model: str) -> str:
        try:
            candidates = self.list_models(api_key)
        except (TransportError, ProtocolError) as exc:
            raise self._model_unavailable(model, exc.message) from exc
        fallback = pick_fallback_model(candidates, exclude=model)
        if not fallback:
            raise self._model_unavailable(
                model, "No models with generateContent support were returned by ListModels."
            )
        return fallback

    def _retry_with_merged_instruction(self, api_key: str, model: str, contents: List[Dict[str, Any]]) -> str:
        logger.warning(
            "systemInstruction rejected, retrying with merged instruction turn",
            extra={"extra": {"model": model}},
        )
        try:
            data = self._generate(api_key, model, self._build_payload(contents, InstructionStrategy.MERGED_TURN))
        except TransportError as exc:
            if classify_failure(exc.detail) is FailureKind.INSTRUCTION_FIELD_REJECTED:
                raise ProtocolError(
                    code="INSTRUCTION_REJECTED",
                    message="Gemini rejected the request even with the instruction merged into the conversation",
                    http_status=exc.http_status,
                    detail=exc.detail,
                ) from exc
            raise
        return self._extract_text(data)

    # ---- HTTP ----

    def _generate(self, api_key: str, model: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self._base_url()}/models/{model}:{GEMINI_CONFIG.generation_method}"
        resp = self._request("POST", url, api_key, payload)
        return self._decode(resp)

    def _request(self, method: str, url: str, api_key: str, payload: Optional[Dict[str, Any]] = None):
        headers = {
            "x-goog-api-key": api_key,
            "Content-Type": "application/json",
        }
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                if method == "GET":
                    resp = client.get(url, headers=headers)
                else:
                    resp = client.post(url, json=payload, headers=headers)
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise TransportError(code="NETWORK_ERROR", message=str(e) or type(e).__name__)
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT", message="Gemini rate limit", http_status=429, detail=resp.text
            )
        if resp.status_code >= 400:
            detail = resp.text or ""
            raise TransportError(
                code="API_ERROR",
                message=f"Gemini API error {resp.status_code}" + (f": {detail}" if detail else ""),
                http_status=resp.status_code,
                detail=detail,
            )
        return resp

    @staticmethod
    def _decode(resp) -> Dict[str, Any]:
        try:
            data = resp.json()
        except ValueError as e:
            raise ProtocolError(code="UNEXPECTED_RESPONSE", message=f"Gemini returned invalid JSON: {e}")
        if not isinstance(data, dict):
            raise ProtocolError(code="UNEXPECTED_RESPONSE", message="Gemini returned a non-object JSON body")
        return data

    # ---- 请求/响应转换 ----

    def _build_contents(self, history: Sequence[Message]) -> List[Dict[str, Any]]:
        return [
            {"role": self._to_backend_role(m.role), "parts": [{"text": m.text}]}
            for m in history
        ]

    def _build_payload(self, contents: List[Dict[str, Any]], strategy: InstructionStrategy) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"generationConfig": self._generation.to_payload()}
        if strategy is InstructionStrategy.STRUCTURED:
            payload["contents"] = list(contents)
            payload["systemInstruction"] = {"role": "system", "parts": [{"text": self._instruction}]}
        else:
            leading = {"role": "user", "parts": [{"text": f"{self._instruction}\n\n{MERGED_TURN_SUFFIX}"}]}
            payload["contents"] = [leading, *contents]
        return payload

    def _extract_text(self, data: Dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list):
            raise ProtocolError(code="UNEXPECTED_RESPONSE", message="'candidates' is not a list")
        text = ""
        if candidates:
            first = candidates[0]
            if not isinstance(first, dict):
                raise ProtocolError(code="UNEXPECTED_RESPONSE", message="candidate is not an object")
            content = first.get("content") or {}
            parts = (content.get("parts") or []) if isinstance(content, dict) else None
            if not isinstance(parts, list):
                raise ProtocolError(code="UNEXPECTED_RESPONSE", message="candidate content has no parts list")
            text = "".join(str(p.get("text") or "") for p in parts if isinstance(p, dict))
        text = text.strip()
        if not text:
            logger.info("Empty reply from Gemini, using placeholder", extra={"extra": {"candidates": len(candidates)}})
            return EMPTY_REPLY_PLACEHOLDER
        return text

    @staticmethod
    def _to_backend_role(role: str) -> str:
        return "model" if role == "assistant" else "user"

    # ---- 配置 ----

    def _require_api_key(self) -> str:
        api_key = (getattr(self._settings, "gemini_api_key", None) or "").strip()
        if not api_key:
            # 配置缺失走 ConfigurationError，在任何网络请求之前失败
            raise ConfigurationError(
                code="MISSING_API_KEY",
                message="GEMINI_API_KEY not set. Add it to your .env or config.yaml and restart.",
            )
        return api_key

    def _configured_model(self) -> str:
        model = getattr(self._settings, "gemini_model", None) or GEMINI_CONFIG.default_model
        return model[len("models/"):] if model.startswith("models/") else model

    def _base_url(self) -> str:
        base = getattr(self._settings, "gemini_base_url", None) or GEMINI_CONFIG.base_url
        return base.rstrip("/")

    @staticmethod
    def _model_unavailable(model: str, detail: str) -> ModelUnavailableError:
        hint = (
            f'Your configured model ("{model}") isn\'t available for this API key. '
            f'Set GEMINI_MODEL to a supported model (try "{GEMINI_CONFIG.default_model}").'
        )
        message = f"{hint}\n\nDetails: {detail}" if detail else hint
        return ModelUnavailableError(code="MODEL_UNAVAILABLE", message=message, http_status=404, model=model, detail=detail)

    @staticmethod
    def _log_failure(model: str, exc: TransportError, kind: FailureKind) -> None:
        logger.warning(
            "Gemini request failed",
            extra={"extra": {"model": model, "code": exc.code, "http_status": exc.http_status, "kind": kind.value}},
        )
