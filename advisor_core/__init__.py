"""Advisor Core 顶层包。

该包提供商业顾问对话应用的核心实现，包括配置加载、领域模型、
Provider 适配、回答分类、会话持久化（备份与崩溃恢复）、
导入导出与单回合会话控制等能力。
"""

from advisor_core.agents.advisor_agent import AdvisorConfig, AdvisorSession, SubmitResult

__all__ = ["AdvisorConfig", "AdvisorSession", "SubmitResult"]
