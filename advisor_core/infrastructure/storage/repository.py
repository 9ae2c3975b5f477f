"""会话仓库。

ConversationRepository 独占内存中的会话集合，并通过 KeyValueStore 完成
持久化与恢复：

- hydrate(): 读取主键；解析失败时回退到备份键；备份也失败时以空集合启动，
  并返回可恢复的 StoreError，绝不抛出。
- persist(): 覆盖主键前先把当前主键内容复制到备份键（尽力而为），
  再写入新的集合。
- append_turn(): 新建或续写会话，写入后立即保存。

集合以不可变 tuple 保存，每次变更整体替换（copy-on-write），
定时保存线程拿到的快照永远是完整的一致状态。
"""

import json
import logging
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Literal, Optional, Sequence, Tuple

from advisor_core.domain.conversation import (
    Conversation,
    KeyValueStore,
    ResponseTags,
    new_conversation_id,
)
from advisor_core.domain.exceptions import BusinessError, StoreError, ValidationError
from advisor_core.domain.models import Message
from advisor_core.infrastructure.logging.logger import log_event

RECOVERED_NOTICE = "Recovered from backup. Some recent changes might be missing."
STARTING_FRESH_NOTICE = "Could not load your conversation history. Starting fresh."


@dataclass(frozen=True)
class StorageKeys:
    """持久化布局中的三个逻辑键。"""

    conversations: str = "empath_conversations"
    backup: str = "empath_conversations_backup"
    active: str = "empath_active_conversation"


HydrateSource = Literal["primary", "backup", "empty"]


@dataclass
class HydrateResult:
    source: HydrateSource
    conversations: Tuple[Conversation, ...]
    active_id: Optional[str]
    error: Optional[StoreError] = None


def encode_conversations(conversations: Iterable[Conversation], indent: Optional[int] = None) -> str:
    return json.dumps([c.to_dict() for c in conversations], ensure_ascii=False, indent=indent)


def decode_conversations(raw: str, *, synthesize_ids: bool = False) -> List[Conversation]:
    """把 JSON 数组解析为会话列表，任何结构问题都以 ValueError 报告。"""

    try:
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"expected a JSON array of conversations, got {type(data).__name__}")
        return [Conversation.from_dict(item, synthesize_id=synthesize_ids) for item in data]
    except (TypeError, OverflowError, OSError, RecursionError) as e:
        raise ValueError(f"{type(e).__name__}: {e}") from e


def _with_unique_ids(conversations: Sequence[Conversation], taken: set) -> List[Conversation]:
    """为与已有 id 冲突的会话补发新 id，taken 会被就地更新。"""

    result: List[Conversation] = []
    for conv in conversations:
        if conv.id in taken:
            new_id = new_conversation_id()
            while new_id in taken:
                new_id = new_conversation_id()
            log_event(logging.WARNING, "Re-keyed conversation with duplicate id", old_id=conv.id, new_id=new_id)
            conv = replace(conv, id=new_id)
        taken.add(conv.id)
        result.append(conv)
    return result


class ConversationRepository:
    def __init__(
        self,
        store: KeyValueStore,
        keys: Optional[StorageKeys] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._keys = keys or StorageKeys()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        # _lock 保护内存状态；_persist_lock 串行化“取快照 + 写存储”
        self._lock = threading.RLock()
        self._persist_lock = threading.Lock()
        self._conversations: Tuple[Conversation, ...] = ()
        self._active_id: Optional[str] = None
        self._last_saved: Optional[datetime] = None
        self._last_created_at: Optional[datetime] = None
        self.last_error: Optional[StoreError] = None
        self.last_save_error: Optional[StoreError] = None

    # ---- 读取 ------------------------------------------------------

    @property
    def keys(self) -> StorageKeys:
        return self._keys

    @property
    def conversations(self) -> Tuple[Conversation, ...]:
        """当前集合的快照（插入顺序，新建会话在前）。"""

        with self._lock:
            return self._conversations

    @property
    def active_id(self) -> Optional[str]:
        with self._lock:
            return self._active_id

    @property
    def active_conversation(self) -> Optional[Conversation]:
        with self._lock:
            if self._active_id is None:
                return None
            return self._find(self._active_id)

    @property
    def last_saved(self) -> Optional[datetime]:
        with self._lock:
            return self._last_saved

    def snapshot(self) -> Tuple[Tuple[Conversation, ...], Optional[str]]:
        """同一时刻的 (会话集合, 活动会话 id)。"""

        with self._lock:
            return self._conversations, self._active_id

    def is_empty(self) -> bool:
        with self._lock:
            return not self._conversations

    def get(self, conversation_id: str) -> Optional[Conversation]:
        with self._lock:
            return self._find(conversation_id)

    def list_conversations(self) -> List[Conversation]:
        """按 created_at 升序返回，用于展示。"""

        return sorted(self.conversations, key=lambda c: c.created_at)

    # ---- 加载 ------------------------------------------------------

    def hydrate(self) -> HydrateResult:
        keys = self._keys
        source: HydrateSource = "empty"
        conversations: List[Conversation] = []
        error: Optional[StoreError] = None
        primary_failure: Optional[Exception] = None

        try:
            raw = self._store.get(keys.conversations)
            if raw is not None:
                conversations = decode_conversations(raw)
                source = "primary"
        except (StoreError, ValueError) as e:
            primary_failure = e
            log_event(logging.WARNING, "Failed to load primary conversations", key=keys.conversations, error=str(e))

        if primary_failure is not None:
            kind = primary_failure.kind if isinstance(primary_failure, StoreError) else "corrupted"
            try:
                raw_backup = self._store.get(keys.backup)
                if raw_backup is None:
                    raise ValueError("no backup snapshot available")
                conversations = decode_conversations(raw_backup)
                source = "backup"
                error = StoreError(
                    code="RECOVERED_FROM_BACKUP",
                    message=str(primary_failure),
                    kind=kind,
                    notice=RECOVERED_NOTICE,
                )
                log_event(logging.WARNING, "Recovered conversations from backup", count=len(conversations))
            except (StoreError, ValueError) as backup_error:
                conversations = []
                source = "empty"
                error = StoreError(
                    code="HISTORY_UNAVAILABLE",
                    message=f"{primary_failure}; backup: {backup_error}",
                    kind=kind,
                    notice=STARTING_FRESH_NOTICE,
                )
                log_event(logging.ERROR, "Could not load conversation history", error=error.message)

        conversations = _with_unique_ids(conversations, set())

        active: Optional[str] = None
        try:
            saved_active = self._store.get(keys.active)
        except StoreError as e:
            saved_active = None
            log_event(logging.WARNING, "Failed to read active conversation id", error=str(e))
        if saved_active and any(c.id == saved_active for c in conversations):
            active = saved_active

        with self._lock:
            self._conversations = tuple(conversations)
            self._active_id = active
            self._last_created_at = None
            self.last_error = error

        log_event(logging.INFO, "Hydrated conversations", source=source, count=len(conversations), active_id=active)
        return HydrateResult(source=source, conversations=tuple(conversations), active_id=active, error=error)

    # ---- 保存 ------------------------------------------------------

    def persist(self, conversations: Optional[Iterable[Conversation]] = None) -> datetime:
        """写入集合（默认当前快照），失败时抛出 StoreError，内存状态不变。"""

        keys = self._keys
        with self._persist_lock:
            if conversations is None:
                snapshot = self.conversations
            else:
                snapshot = tuple(conversations)
            payload = encode_conversations(snapshot)

            try:
                current = self._store.get(keys.conversations)
                if current is not None and self._is_loadable(current):
                    self._store.set(keys.backup, current)
            except StoreError as e:
                log_event(logging.WARNING, "Backup copy failed, continuing with save", error=str(e))

            try:
                self._store.set(keys.conversations, payload)
            except StoreError as e:
                log_event(logging.ERROR, "Failed to save conversations", error=str(e), count=len(snapshot))
                raise

            saved_at = self._clock()
            with self._lock:
                self._last_saved = saved_at
        log_event(logging.INFO, "Conversations saved", count=len(snapshot))
        return saved_at

    def save(self) -> Optional[StoreError]:
        """persist() 的非抛出版本，失败时记录并返回错误，继续以内存模式运行。"""

        try:
            self.persist()
        except StoreError as e:
            self.last_save_error = e
            return e
        self.last_save_error = None
        return None

    @staticmethod
    def _is_loadable(raw: str) -> bool:
        try:
            decode_conversations(raw)
        except ValueError:
            return False
        return True

    # ---- 变更 ------------------------------------------------------

    def set_active(self, conversation_id: Optional[str]) -> Optional[StoreError]:
        with self._lock:
            if conversation_id is not None and self._find(conversation_id) is None:
                raise BusinessError(code="CONVERSATION_NOT_FOUND", message=conversation_id, http_status=404)
            self._active_id = conversation_id
        return self._mirror_active(conversation_id)

    def append_turn(
        self,
        conversation_id: Optional[str],
        user_message: Message,
        assistant_message: Message,
        tags: ResponseTags,
    ) -> str:
        """追加一个回合，返回（可能新建的）会话 id。"""

        if user_message.role != "user" or assistant_message.role != "assistant":
            raise ValidationError(code="INVALID_TURN", message="a turn is one user message followed by one assistant message")

        created = False
        with self._lock:
            if conversation_id is None:
                cid = new_conversation_id()
                while self._find(cid) is not None:
                    cid = new_conversation_id()
                conv = Conversation(
                    id=cid,
                    text=user_message.content,
                    sentiment=tags.sentiment,
                    category=tags.category,
                    is_question=tags.is_question,
                    created_at=self._next_created_at(),
                    messages=[user_message, assistant_message],
                    response=assistant_message.content,
                )
                self._conversations = (conv,) + self._conversations
                self._active_id = cid
                created = True
            else:
                index = self._index_of(conversation_id)
                if index is None:
                    raise BusinessError(code="CONVERSATION_NOT_FOUND", message=conversation_id, http_status=404)
                current = self._conversations[index]
                updated = replace(
                    current,
                    text=user_message.content,
                    response=assistant_message.content,
                    sentiment=tags.sentiment,
                    category=tags.category,
                    is_question=tags.is_question,
                    messages=[*current.messages, user_message, assistant_message],
                )
                items = list(self._conversations)
                items[index] = updated
                self._conversations = tuple(items)
                cid = conversation_id

        if created:
            self._mirror_active(cid)
        log_event(logging.INFO, "Appended turn", conversation_id=cid, created=created)
        self.save()
        return cid

    def add_imported(self, conversations: Sequence[Conversation]) -> List[str]:
        """把导入的会话插到集合最前面；不改变当前活动会话。"""

        with self._lock:
            taken = {c.id for c in self._conversations}
            fresh = _with_unique_ids(conversations, taken)
            self._conversations = tuple(fresh) + self._conversations
        log_event(logging.INFO, "Imported conversations", count=len(fresh))
        self.save()
        return [c.id for c in fresh]

    def remove_all(self) -> None:
        """清空内存与存储中的全部会话、备份和活动会话 id，不可恢复。"""

        keys = self._keys
        with self._persist_lock:
            with self._lock:
                self._conversations = ()
                self._active_id = None
                self._last_saved = None
                self._last_created_at = None
                self.last_error = None
                self.last_save_error = None
            failed: List[str] = []
            for key in (keys.conversations, keys.backup, keys.active):
                try:
                    self._store.remove(key)
                except StoreError as e:
                    failed.append(key)
                    log_event(logging.ERROR, "Failed to clear store key", key=key, error=str(e))
        if failed:
            raise StoreError(code="STORE_CLEAR_ERROR", message=f"could not remove: {', '.join(failed)}", keys=failed)
        log_event(logging.INFO, "All stored data cleared")

    # ---- helpers ---------------------------------------------------

    def _find(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def _index_of(self, conversation_id: str) -> Optional[int]:
        for i, conv in enumerate(self._conversations):
            if conv.id == conversation_id:
                return i
        return None

    def _next_created_at(self) -> datetime:
        now = self._clock()
        if self._last_created_at is not None and now <= self._last_created_at:
            now = self._last_created_at + timedelta(microseconds=1)
        self._last_created_at = now
        return now

    def _mirror_active(self, conversation_id: Optional[str]) -> Optional[StoreError]:
        try:
            if conversation_id:
                self._store.set(self._keys.active, conversation_id)
            else:
                self._store.remove(self._keys.active)
        except StoreError as e:
            log_event(logging.WARNING, "Failed to persist active conversation id", error=str(e))
            return e
        return None
