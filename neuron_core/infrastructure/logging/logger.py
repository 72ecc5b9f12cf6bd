"""JSON 行日志。

每条记录一行 JSON，写入 <log_dir>/<log_file>。交换进行期间，
exchange_context 绑定的交换 ID 会附加到该线程产生的每条记录上，
便于把客户端的重试日志与会话层的交换日志对应起来。
"""

import contextvars
import json
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from neuron_core.config.settings import settings


_exchange_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("neuron_exchange_id", default=None)


@contextmanager
def exchange_context(exchange_id: str) -> Iterator[None]:
    token = _exchange_id.set(exchange_id)
    try:
        yield
    finally:
        _exchange_id.reset(token)


class ExchangeFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.exchange_id = _exchange_id.get()
        return True


class JsonFormatter(logging.Formatter):
    def __init__(self, redact: bool = False):
        super().__init__()
        self._redact = redact

    def format(self, record: logging.LogRecord) -> str:
        msg = record.getMessage()
        if self._redact:
            msg = (msg or "")[:64]
        payload = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
            "msg": msg,
        }
        exchange_id = getattr(record, "exchange_id", None)
        if exchange_id:
            payload["exchange_id"] = exchange_id
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        return json.dumps(payload, ensure_ascii=False)


def setup_logger(cfg=settings) -> logging.Logger:
    logger = logging.getLogger("neuron_core")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return logger
    log_dir = Path(cfg.log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = logging.FileHandler(log_dir / cfg.log_file, encoding="utf-8")
    fh.setLevel(logging.INFO)
    fh.setFormatter(JsonFormatter(redact=cfg.log_redact_content))
    logger.addFilter(ExchangeFilter())
    logger.addHandler(fh)
    return logger


logger = setup_logger()
