"""LLM Provider 集成层。

该包下的模块负责：
- 定义补全服务抽象接口 (base)。
- 维护 Provider 与模型配置 (registry)。
- 提供各厂商的具体实现 (如 mistral_client)。
"""

from typing import Optional

from advisor_core.config.settings import settings
from advisor_core.domain.exceptions import ValidationError
from advisor_core.providers.base import CompletionClient
from advisor_core.providers.mistral_client import MistralClient


def create_provider(name: Optional[str] = None) -> CompletionClient:
    """根据名称创建 Provider 实例，默认取配置中的 provider。"""

    provider_name = (name or getattr(settings, "default_provider", "mistral")).lower()
    if provider_name == "mistral":
        return MistralClient(settings)
    raise ValidationError(code="UNKNOWN_PROVIDER", message=f"Unknown provider: {provider_name!r}")
