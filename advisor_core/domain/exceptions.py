"""统一业务异常模型。

所有跨模块抛出的业务级错误都应该继承自 BusinessError，
便于在 API 层或 UI 层做统一捕获与用户提示。

错误分类：
- ValidationError: 输入校验失败（例如空消息）。
- StoreError: 持久化存储不可用或数据损坏，调用方降级为仅内存运行。
- CompletionError: 调用 LLM 补全服务失败，按 kind 区分限流/鉴权/网络/服务端。
- FormatError: 导入文档格式错误，整体拒绝。
"""

from typing import Literal


# 面向用户的提示文案（与 UI 保持一致）
ERROR_MESSAGES = {
    "API_ERROR": "Mind if we try that again?",
    "NETWORK_ERROR": "Having trouble connecting. Could you try again?",
    "RATE_LIMIT": "Let's take a quick pause - could you share that again in a moment?",
    "UNAUTHORIZED": "The advisor service rejected our credentials. Please check your API key.",
    "SERVER_ERROR": "Need a moment to process. Could we try that again?",
    "VALIDATION_ERROR": "Could you rephrase that?",
    "STORAGE_ERROR": "Having trouble saving your conversation.",
    "FORMAT_ERROR": "Failed to import conversations. Please check the file format.",
    "UNKNOWN_ERROR": "Something unexpected happened. Please try again.",
}


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_UNAVAILABLE"）。
        message: 错误详情（用于日志）。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 key、provider 等）。
    """

    user_message_key = "UNKNOWN_ERROR"

    def __init__(self, code: str, message: str, http_status: int = 400, **extra):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)

    @property
    def user_message(self) -> str:
        """用户可读提示，直接展示在 UI 中。"""

        return ERROR_MESSAGES[self.user_message_key]


class ValidationError(BusinessError):
    """参数或配置校验失败。"""

    user_message_key = "VALIDATION_ERROR"


StoreErrorKind = Literal["unavailable", "corrupted"]


class StoreError(BusinessError):
    """持久化存储错误。

    kind:
        - "unavailable": 读写失败（磁盘、权限等）。
        - "corrupted": 存储内容无法解析为会话集合。
    """

    user_message_key = "STORAGE_ERROR"

    def __init__(
        self,
        code: str,
        message: str,
        kind: StoreErrorKind = "unavailable",
        **extra,
    ):
        super().__init__(code=code, message=message, http_status=503, **extra)
        self.kind = kind

    @property
    def user_message(self) -> str:
        # 恢复类错误自带的提示优先展示
        return self.extra.get("notice") or super().user_message


class FormatError(BusinessError):
    """导入文档格式错误，导入整体失败。"""

    user_message_key = "FORMAT_ERROR"


CompletionErrorKind = Literal["rate_limited", "unauthorized", "network_error", "server_error"]


class CompletionError(BusinessError):
    """补全服务调用失败的基类，不做自动重试。"""

    kind: CompletionErrorKind = "server_error"
    user_message_key = "API_ERROR"


class RateLimitError(CompletionError):
    """Provider 限流错误。"""

    kind = "rate_limited"
    user_message_key = "RATE_LIMIT"


class UnauthorizedError(CompletionError):
    """API 密钥缺失或被拒绝。"""

    kind = "unauthorized"
    user_message_key = "UNAUTHORIZED"


class NetworkError(CompletionError):
    """网络层错误，例如连接失败、超时等。"""

    kind = "network_error"
    user_message_key = "NETWORK_ERROR"


class ServerError(CompletionError):
    """第三方 API 返回非 2xx 错误或响应内容不可用。"""

    kind = "server_error"
    user_message_key = "SERVER_ERROR"
