"""Mistral Provider 适配器。

本模块负责：

1. 接收统一的 ChatRequest。
2. 将其转换为 Mistral chat/completions 接口的请求格式。
3. 调用 HTTP 接口，把网络/限流/鉴权/服务端错误映射为 CompletionError 子类。
4. 将响应 JSON 解析为统一的 ChatResult。

- URL: {base_url}/chat/completions
- 认证: Authorization: Bearer <api_key>
"""

from typing import Any, Dict, Optional

import httpx

from advisor_core.domain.exceptions import (
    NetworkError,
    RateLimitError,
    ServerError,
    UnauthorizedError,
    ValidationError,
)
from advisor_core.domain.models import (
    ChatChoice,
    ChatRequest,
    ChatResult,
    ChatUsage,
    Message,
)
from advisor_core.providers.registry import ModelConfig, get_provider_config


class MistralClient:
    """Mistral 提供方客户端实现。"""

    name = "mistral"

    def __init__(self, settings):
        # Settings 里包含 base_url、api_key、超时等配置
        self._settings = settings

    def chat(self, req: ChatRequest) -> ChatResult:
        """执行一次非流式对话调用。

        步骤：
        1. 读取模型配置（logical model -> provider model）。
        2. 构造 HTTP 请求 payload。
        3. 发送请求并按状态码映射错误类型（不做自动重试）。
        4. 校验响应结构并解析为 ChatResult；结构不符或没有候选回答时视为服务端错误。
        """

        if not getattr(self._settings, "mistral_api_key", None):
            raise UnauthorizedError(code="MISSING_API_KEY", message="MISTRAL_API_KEY not set", http_status=401)
        provider_cfg = get_provider_config(self.name)
        model_cfg = provider_cfg.models.get(req.model)
        if model_cfg is None:
            raise ValidationError(code="UNKNOWN_MODEL", message=f"Unknown model for {self.name}: {req.model!r}")
        payload = self._build_payload(req, model_cfg)
        try:
            with httpx.Client(timeout=self._settings.http_timeout, trust_env=False) as client:
                base = getattr(self._settings, "mistral_base_url", None) or provider_cfg.base_url
                resp = client.post(
                    f"{base}/chat/completions",
                    json=payload,
                    headers={
                        "Authorization": f"Bearer {self._settings.mistral_api_key}",
                        "Content-Type": "application/json",
                    },
                )
        except httpx.RequestError as e:
            # 网络错误：DNS 失败、连接超时等
            raise NetworkError(code="NETWORK_ERROR", message=str(e), http_status=503)
        if resp.status_code == 429:
            raise RateLimitError(code="RATE_LIMIT", message="Mistral rate limit", http_status=429)
        if resp.status_code in (401, 403):
            raise UnauthorizedError(code="UNAUTHORIZED", message=resp.text, http_status=resp.status_code)
        if resp.status_code >= 400:
            raise ServerError(code="API_ERROR", message=resp.text, http_status=resp.status_code)
        try:
            data = resp.json()
        except ValueError as e:
            raise ServerError(code="INVALID_RESPONSE", message=str(e), http_status=502)
        problem = self._shape_problem(data)
        if problem:
            raise ServerError(code="INVALID_RESPONSE", message=problem, http_status=502)
        result = self._parse_response(data, req)
        if not result.choices:
            raise ServerError(code="EMPTY_COMPLETION", message="No response choices returned from API", http_status=502)
        return result

    def _build_payload(self, req: ChatRequest, model_cfg: ModelConfig) -> Dict[str, Any]:
        """将 ChatRequest 转成 Mistral 所需的请求 JSON。"""

        return {
            "model": model_cfg.provider_model,
            "messages": [m.to_dict() for m in req.messages],
            "temperature": req.temperature if req.temperature is not None else model_cfg.default_temperature,
            "max_tokens": req.max_tokens or model_cfg.max_tokens,
            "presence_penalty": req.presence_penalty,
            "frequency_penalty": req.frequency_penalty,
        }

    @staticmethod
    def _shape_problem(data: Any) -> Optional[str]:
        """检查响应结构，返回问题描述；结构合法时返回 None。"""

        if not isinstance(data, dict):
            return f"response body must be an object, got {type(data).__name__}"
        choices = data.get("choices")
        if choices is not None and not isinstance(choices, list):
            return "choices must be an array"
        for ch in choices or []:
            if not isinstance(ch, dict):
                return "choice must be an object"
            msg = ch.get("message")
            if msg is not None and not isinstance(msg, dict):
                return "choice message must be an object"
            content = (msg or {}).get("content")
            if content is not None and not isinstance(content, str):
                return "message content must be a string"
        usage = data.get("usage")
        if usage is not None and not isinstance(usage, dict):
            return "usage must be an object"
        return None

    def _parse_response(self, data: Dict[str, Any], req: ChatRequest) -> ChatResult:
        """将 Mistral 的原始响应 JSON 解析为统一的 ChatResult。"""

        choices: list[ChatChoice] = []
        for i, ch in enumerate(data.get("choices") or []):
            msg = ch.get("message") or {}
            choices.append(
                ChatChoice(
                    index=ch.get("index", i),
                    message=Message(role="assistant", content=msg.get("content") or ""),
                    finish_reason=ch.get("finish_reason"),
                )
            )
        usage_raw = data.get("usage") or {}
        usage = ChatUsage(
            prompt_tokens=usage_raw.get("prompt_tokens", 0),
            completion_tokens=usage_raw.get("completion_tokens", 0),
            total_tokens=usage_raw.get("total_tokens", 0),
        )
        return ChatResult(provider=self.name, model=req.model, choices=choices, usage=usage, raw=data)
