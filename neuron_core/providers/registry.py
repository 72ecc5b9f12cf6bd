"""后端与模型配置。

集中维护 Gemini 后端的常量：

- base_url / default_model：settings 未覆盖时使用的默认值。
- fallback_pattern：模型探测时优先选择的模型命名模式（fast / flash 类）。
- generation_method：候选模型必须支持的生成方法名。
"""

import re
from dataclasses import dataclass
from typing import Pattern


@dataclass
class BackendConfig:
    """单个后端的整体配置。"""

    name: str
    base_url: str
    default_model: str
    generation_method: str
    fallback_pattern: Pattern[str]


GEMINI_CONFIG = BackendConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    default_model="gemini-1.5-flash",
    generation_method="generateContent",
    fallback_pattern=re.compile(r"flash|fast", re.IGNORECASE),
)
