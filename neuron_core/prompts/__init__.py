"""系统提示词加载工具。

按语言(locale) 从 prompts/<locale> 目录读取对应的行为指令文本，
由回复客户端随每次请求一起发送。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent


def load_system_prompt(persona: str = "neuron", locale: str = "en") -> str:
    """根据人设名和语言加载系统提示词文本。

    目前 persona 仅支持 "neuron"，文件名为 <persona>_system.md。
    """

    fname = PROMPTS_DIR / locale / f"{persona}_system.md"
    return fname.read_text(encoding="utf-8").strip()
