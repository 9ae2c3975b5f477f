"""顾问会话控制器。

AdvisorSession 负责编排一次提交（一个回合）：

    idle -> submitting -> idle

1. 校验输入（空白输入抛出 ValidationError，状态不变）。
2. 拼接历史：system prompt + 活动会话的历史消息 + 新的用户消息。
3. 调用补全服务；失败时返回 failed 结果，保留输入缓冲，不修改任何会话。
4. 成功时规整回答、分类打标签，并通过仓库 append_turn 提交。

同一时刻只允许一个提交在进行中，进行中的再次提交直接忽略（不排队）。
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional
from uuid import uuid4

from advisor_core.analysis.classifier import classify_response, format_response
from advisor_core.config.settings import settings
from advisor_core.domain.conversation import ResponseTags
from advisor_core.domain.exceptions import BusinessError, ServerError, StoreError, ValidationError
from advisor_core.domain.models import ChatRequest, ChatResult, Message
from advisor_core.infrastructure.logging.logger import logger
from advisor_core.infrastructure.storage.repository import ConversationRepository
from advisor_core.prompts import load_system_prompt
from advisor_core.providers.base import CompletionClient


SessionState = Literal["idle", "submitting"]


@dataclass
class AdvisorConfig:
    agent_type: str = "business-advisor"
    provider: str = "mistral"
    model: str = "advisor-chat"
    temperature: float = 0.8  # 生成温度
    max_tokens: Optional[int] = 1024
    presence_penalty: float = 0.0
    frequency_penalty: float = 0.0
    max_message_length: int = 1000
    system_prompt: Optional[str] = None  # None 时按 agent_type 加载

    @classmethod
    def from_settings(cls, cfg=settings, provider: Optional[str] = None) -> "AdvisorConfig":
        return cls(
            provider=provider or cfg.default_provider,
            model=cfg.default_model,
            temperature=cfg.temperature,
            max_tokens=cfg.max_tokens,
            presence_penalty=cfg.presence_penalty,
            frequency_penalty=cfg.frequency_penalty,
            max_message_length=cfg.max_message_length,
        )


@dataclass
class SubmitResult:
    """一次提交的结果。

    status 为 "failed" 时 error 携带可展示给用户的错误；
    warning 非空表示回合已提交但写入存储失败（仅内存保存）。
    """

    status: Literal["succeeded", "failed"]
    conversation_id: Optional[str] = None
    response: Optional[str] = None
    tags: Optional[ResponseTags] = None
    error: Optional[BusinessError] = None
    warning: Optional[StoreError] = None

    @property
    def ok(self) -> bool:
        return self.status == "succeeded"

    @property
    def message(self) -> Optional[str]:
        if self.error is not None:
            return self.error.user_message
        if self.warning is not None:
            return self.warning.user_message
        return None


class AdvisorSession:
    def __init__(
        self,
        repository: ConversationRepository,
        provider_client: CompletionClient,
        config: Optional[AdvisorConfig] = None,
    ):
        self._repository = repository
        self._provider_client = provider_client
        self._config = config or AdvisorConfig(provider=getattr(provider_client, "name", "mistral"))
        self._gate = threading.Lock()
        self._state: SessionState = "idle"
        self._input = ""
        self._system_prompt = (
            self._config.system_prompt
            if self._config.system_prompt is not None
            else load_system_prompt(self._config.agent_type)
        )

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def input_buffer(self) -> str:
        return self._input

    @property
    def repository(self) -> ConversationRepository:
        return self._repository

    def set_input(self, text: str) -> None:
        self._input = text or ""

    def start_new_conversation(self) -> None:
        """清除活动会话与输入，下一次提交将新建会话。"""

        self._repository.set_active(None)
        self._input = ""

    def submit(self, input_text: Optional[str] = None) -> Optional[SubmitResult]:
        """提交一条用户输入。

        Args:
            input_text: 用户输入；为 None 时使用当前输入缓冲。

        Returns:
            SubmitResult；已有提交进行中时返回 None（忽略本次提交）。

        Raises:
            ValidationError: 输入为空白或超过长度上限。
        """

        if not self._gate.acquire(blocking=False):
            logger.info("Submission ignored: another turn is in flight")
            return None
        try:
            text = self._input if input_text is None else input_text
            self._validate(text)
            self._input = text
            self._state = "submitting"
            return self._run_turn(text)
        finally:
            self._state = "idle"
            self._gate.release()

    def _validate(self, text: Optional[str]) -> None:
        if not text or not text.strip():
            raise ValidationError(code="EMPTY_INPUT", message="input is empty")
        if len(text) > self._config.max_message_length:
            raise ValidationError(
                code="MESSAGE_TOO_LONG",
                message=f"input exceeds {self._config.max_message_length} characters",
            )

    def _run_turn(self, text: str) -> SubmitResult:
        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "trace_id": f"tr-{uuid4().hex}",
            "agent_type": self._config.agent_type,
        }

        active = self._repository.active_conversation
        conversation_id = active.id if active else None
        history = list(active.messages) if active else []
        log_ctx["conversation_id"] = conversation_id

        user_msg = Message(role="user", content=text)
        req = ChatRequest(
            provider=self._config.provider,
            model=self._config.model,
            messages=self._build_messages(history, user_msg),
            temperature=self._config.temperature,
            max_tokens=self._config.max_tokens,
            presence_penalty=self._config.presence_penalty,
            frequency_penalty=self._config.frequency_penalty,
        )
        self._log(
            logging.INFO,
            "Calling provider",
            log_ctx,
            provider=self._config.provider,
            model=self._config.model,
            message_count=len(req.messages),
        )

        try:
            result: ChatResult = self._provider_client.chat(req)
            formatted = format_response(result.text)
            if not formatted:
                raise ServerError(code="EMPTY_COMPLETION", message="completion text is empty", http_status=502)
        except BusinessError as e:
            self._log(logging.WARNING, "Completion failed", log_ctx, code=e.code, error=e.message)
            return SubmitResult(status="failed", conversation_id=conversation_id, error=e)

        tags = classify_response(formatted)
        try:
            cid = self._repository.append_turn(
                conversation_id,
                user_msg,
                Message(role="assistant", content=formatted),
                tags,
            )
        except BusinessError as e:
            self._log(logging.ERROR, "Failed to commit turn", log_ctx, code=e.code, error=e.message)
            return SubmitResult(status="failed", conversation_id=conversation_id, error=e)

        self._input = ""
        self._log(
            logging.INFO,
            "Completed advisor turn",
            log_ctx,
            conversation_id=cid,
            elapsed_seconds=round(time.time() - start_time, 2),
            category=tags.category,
            sentiment=tags.sentiment,
            is_question=tags.is_question,
        )
        return SubmitResult(
            status="succeeded",
            conversation_id=cid,
            response=formatted,
            tags=tags,
            warning=self._repository.last_save_error,
        )

    def _build_messages(self, history: List[Message], user_msg: Message) -> List[Message]:
        messages: List[Message] = []
        if self._system_prompt:
            messages.append(Message(role="system", content=self._system_prompt))
        messages.extend(history)
        messages.append(user_msg)
        return messages

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
