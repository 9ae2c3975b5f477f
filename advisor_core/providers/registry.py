"""Provider 与模型配置。

本模块将“逻辑模型名”与“具体厂商模型名”解耦：

- 逻辑名（logical_name）：在代码里使用的统一名称，例如 "advisor-chat"。
- provider_model：厂商实际提供的模型 ID，例如 "mistral-small"。

上层只关心逻辑名，具体用哪个底层模型由这里集中配置，便于后续升级或切换。"""

from dataclasses import dataclass
from typing import Dict, Mapping


@dataclass
class ModelConfig:
    """单个逻辑模型的配置。"""

    logical_name: str
    provider_model: str
    max_tokens: int
    default_temperature: float


@dataclass
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    models: Dict[str, ModelConfig]


MISTRAL_CONFIG = ProviderConfig(
    name="mistral",
    base_url="https://api.mistral.ai/v1",
    models={
        "advisor-chat": ModelConfig(
            logical_name="advisor-chat",
            provider_model="mistral-small",
            max_tokens=1024,
            default_temperature=0.8,
        )
    },
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "mistral": MISTRAL_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
