"""统一的对话与结果数据模型。

本模块定义了顾问会话在 Provider 之间共享的标准数据结构：

- Message: 一条对话消息（system/user/assistant），创建后不可变。
- ChatRequest: 发给底层 LLM Provider 的完整请求（含生成参数）。
- ChatResult: 从 Provider 解析后的统一响应结果。

Provider 适配器（如 MistralClient）只依赖这些模型，
并负责在各自的 API JSON 和这些模型之间做转换。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional


# 消息角色类型（与 Mistral / OpenAI 的 role 字段对应）
Role = Literal["system", "user", "assistant"]

ROLES = ("system", "user", "assistant")


@dataclass(frozen=True)
class Message:
    """一条对话消息，既可用于请求，也可用于持久化。"""

    role: Role
    content: str

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content}


@dataclass
class ChatRequest:
    """一次完整的聊天请求。

    会话控制器会把历史消息与新的用户消息拼成 ChatRequest，
    Provider 适配层负责把本结构转换成各家 API 的 JSON 请求体。
    """

    provider: str  # 逻辑 Provider 名，如 "mistral"
    model: str  # 逻辑模型名，如 "advisor-chat"（再由 registry 映射为真实模型名）
    messages: List[Message]
    temperature: float = 0.8
    max_tokens: Optional[int] = None
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass
class ChatChoice:
    """单个候选回答（目前通常只用 index=0 的一条）。"""

    index: int
    message: Message
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的最终结果。

    - provider: 逻辑 Provider 名（如 "mistral"）。
    - model: 逻辑模型名（如 "advisor-chat"）。
    - choices: 一个或多个候选回答。
    - usage: 可选的 token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    usage: Optional[ChatUsage] = None
    raw: Optional[Dict[str, Any]] = None

    @property
    def text(self) -> str:
        """第一个候选回答的文本。"""

        if not self.choices:
            return ""
        return self.choices[0].message.content
