"""Provider 抽象接口。

会话控制器不直接依赖具体厂商的 HTTP SDK，而是依赖此协议：

- 每个厂商实现一个 CompletionClient（如 MistralClient）。
- 负责：将 ChatRequest 转成具体 API 请求，并把响应 JSON 解析为 ChatResult。
- 失败时抛出 CompletionError 的子类（限流/鉴权/网络/服务端）。
"""

from typing import Protocol
from advisor_core.domain.models import ChatRequest, ChatResult


class CompletionClient(Protocol):
    """LLM 补全服务客户端协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/统计。
    - chat(req): 执行一次非流式对话调用，返回统一的 ChatResult。
    """

    name: str

    def chat(self, req: ChatRequest) -> ChatResult:
        ...
