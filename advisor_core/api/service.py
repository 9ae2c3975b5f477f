"""对外 API 服务模块。

提供简化的函数接口供 UI 事件处理器调用：hydrate / submit / export /
import / reset。所有错误都转换为可展示的提示，不会终止进程。
"""

from pathlib import Path
from typing import Any, Dict, Optional

from advisor_core.agents.advisor_agent import AdvisorConfig, AdvisorSession, SubmitResult
from advisor_core.analysis.keywords import CATEGORY_LABELS, SENTIMENT_LABELS
from advisor_core.config.settings import settings
from advisor_core.domain.conversation import Conversation, KeyValueStore
from advisor_core.domain.exceptions import BusinessError, StoreError
from advisor_core.infrastructure.logging.logger import logger
from advisor_core.infrastructure.storage.autosave import AutoSaver
from advisor_core.infrastructure.storage.kv_store import JsonFileStore, MemoryStore
from advisor_core.infrastructure.storage.repository import ConversationRepository
from advisor_core.infrastructure.storage.transfer import ConversationTransfer
from advisor_core.providers import create_provider


_store: Optional[KeyValueStore] = None
_repository: Optional[ConversationRepository] = None
_session: Optional[AdvisorSession] = None
_autosaver: Optional[AutoSaver] = None


def get_default_session() -> AdvisorSession:
    """获取默认的顾问会话实例（单例），首次调用时加载历史并启动自动保存。"""
    global _store, _repository, _session, _autosaver
    if _store is None:
        try:
            _store = JsonFileStore(root=settings.storage_root)
        except StoreError as e:
            # 存储目录不可用时降级为仅内存运行
            logger.warning(f"Storage unavailable, running in memory only: {e.message}")
            _store = MemoryStore()
    if _repository is None:
        _repository = ConversationRepository(_store)
        _repository.hydrate()
    if _session is None:
        provider = create_provider()
        _session = AdvisorSession(
            repository=_repository,
            provider_client=provider,
            config=AdvisorConfig.from_settings(settings, provider=provider.name),
        )
    if _autosaver is None:
        _autosaver = AutoSaver(_repository, settings.auto_save_interval)
        _autosaver.start()
    return _session


def hydrate_history() -> Dict[str, Any]:
    """重新从存储加载历史。"""
    session = get_default_session()
    result = session.repository.hydrate()
    conversations, active_id = session.repository.snapshot()
    return {
        "source": result.source,
        "active_conversation_id": active_id,
        "conversations": [conversation_to_view(c) for c in sorted(conversations, key=lambda c: c.created_at)],
        "notice": result.error.user_message if result.error else None,
    }


def submit_message(user_input: str) -> Dict[str, Any]:
    """提交一条用户输入并返回本回合的结果。

    Returns:
        包含 status、conversation_id、response、标签与提示信息的字典。
        已有提交进行中时 status 为 "ignored"。
    """
    session = get_default_session()
    try:
        result = session.submit(user_input)
    except BusinessError as e:
        return {"status": "rejected", "error": e.code, "message": e.user_message}
    if result is None:
        return {"status": "ignored"}
    return submit_result_to_view(result)


def start_new_conversation() -> None:
    get_default_session().start_new_conversation()


def list_conversations() -> list[Dict[str, Any]]:
    """列出所有会话（按创建时间升序）。"""
    session = get_default_session()
    return [conversation_to_view(c) for c in session.repository.list_conversations()]


def export_history(target: Optional[str | Path] = None) -> Dict[str, Any]:
    """导出全部会话；给出 target 时写入文件，否则返回文档文本。"""
    transfer = ConversationTransfer(get_default_session().repository)
    if target is None:
        return {"status": "ok", "document": transfer.export_document()}
    try:
        path = transfer.export_to_file(target)
    except OSError as e:
        logger.error(f"Export failed: {e}")
        return {"status": "failed", "message": "Failed to export conversations. Please try again."}
    return {"status": "ok", "path": str(path), "message": "Your wisdom has been shared."}


def import_history(document: Optional[str] = None, path: Optional[str | Path] = None) -> Dict[str, Any]:
    """导入会话文档（文本或文件路径二选一）。"""
    transfer = ConversationTransfer(get_default_session().repository)
    try:
        if path is not None:
            count = transfer.import_from_file(path)
        else:
            count = transfer.import_document(document or "")
    except BusinessError as e:
        return {"status": "failed", "error": e.code, "message": e.user_message}
    return {"status": "ok", "imported": count, "message": "Your journey has been restored."}


def reset_all() -> Dict[str, Any]:
    """清空全部会话与存储。"""
    session = get_default_session()
    session.set_input("")
    try:
        session.repository.remove_all()
    except StoreError as e:
        return {"status": "failed", "error": e.code, "message": e.user_message}
    return {"status": "ok", "message": "A new journey begins."}


def shutdown() -> None:
    """停止自动保存并做最后一次保存。"""
    global _autosaver
    if _autosaver is not None:
        _autosaver.stop()
        _autosaver.tick()
        _autosaver = None


def conversation_to_view(conv: Conversation) -> Dict[str, Any]:
    view = conv.to_dict()
    view["messageCount"] = len(conv.messages)
    view["categoryLabel"] = CATEGORY_LABELS.get(conv.category, conv.category)
    view["sentimentLabel"] = SENTIMENT_LABELS.get(conv.sentiment, conv.sentiment)
    return view


def submit_result_to_view(result: SubmitResult) -> Dict[str, Any]:
    view: Dict[str, Any] = {
        "status": result.status,
        "conversation_id": result.conversation_id,
        "response": result.response,
        "message": result.message,
    }
    if result.tags is not None:
        view.update(
            {
                "category": result.tags.category,
                "sentiment": result.tags.sentiment,
                "is_question": result.tags.is_question,
                "category_label": CATEGORY_LABELS.get(result.tags.category, result.tags.category),
                "sentiment_label": SENTIMENT_LABELS.get(result.tags.sentiment, result.tags.sentiment),
            }
        )
    if result.error is not None:
        view["error"] = result.error.code
    return view
