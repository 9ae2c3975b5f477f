"""系统提示词加载工具。

按 Agent 类型与语言(locale) 从 prompts/<locale> 目录读取 system prompt 文本，
用于构造 Message(role="system")。
"""

from pathlib import Path


PROMPTS_DIR = Path(__file__).resolve().parent

_PROMPT_FILES = {
    "business-advisor": "advisor_system.md",
}


def load_system_prompt(agent_type: str = "business-advisor", locale: str = "en") -> str:
    """根据 Agent 类型和语言加载系统提示词文本。

    未知的 agent_type 抛出 KeyError。
    """

    fname = PROMPTS_DIR / locale / _PROMPT_FILES[agent_type]
    return fname.read_text(encoding="utf-8").strip()
