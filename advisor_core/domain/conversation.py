from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Dict, Any, List, Literal, Protocol
from uuid import uuid4

from .models import Message, ROLES


Level = Literal["Low", "Medium", "High"]
LEVELS = ("Low", "Medium", "High")


@dataclass(frozen=True)
class ResponseTags:
    category: str
    sentiment: str
    is_question: bool


@dataclass
class BusinessMetrics:
    estimated_roi: Optional[str] = None
    implementation_time: Optional[str] = None
    difficulty: Optional[Level] = None
    priority: Optional[Level] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.estimated_roi is not None:
            payload["estimatedRoi"] = self.estimated_roi
        if self.implementation_time is not None:
            payload["implementationTime"] = self.implementation_time
        if self.difficulty is not None:
            payload["difficulty"] = self.difficulty
        if self.priority is not None:
            payload["priority"] = self.priority
        return payload

    @classmethod
    def from_dict(cls, data: Any) -> Optional["BusinessMetrics"]:
        if not isinstance(data, dict):
            return None
        return cls(
            estimated_roi=_optional_str(data.get("estimatedRoi")),
            implementation_time=_optional_str(data.get("implementationTime")),
            difficulty=data.get("difficulty") if data.get("difficulty") in LEVELS else None,
            priority=data.get("priority") if data.get("priority") in LEVELS else None,
        )


@dataclass
class Conversation:
    id: str
    text: str
    sentiment: str
    category: str
    is_question: bool
    created_at: datetime
    messages: List[Message] = field(default_factory=list)
    response: str = ""
    metrics: Optional[BusinessMetrics] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "sentiment": self.sentiment,
            "response": self.response,
            "category": self.category,
            "createdAt": format_timestamp(self.created_at),
            "isQuestion": self.is_question,
            "messages": [m.to_dict() for m in self.messages],
        }
        if self.metrics is not None:
            payload["metrics"] = self.metrics.to_dict()
        return payload

    @classmethod
    def from_dict(
        cls,
        data: Any,
        *,
        synthesize_id: bool = False,
        now: Optional[datetime] = None,
    ) -> "Conversation":
        """从存储/导入记录构造 Conversation。

        记录必须是 JSON 对象。缺失 messages 或 messages 不是数组时视为空；
        奇数条消息（中断的回合）照常接受。缺失 id 时仅在 synthesize_id=True
        时补发新 id，否则抛出 ValueError。
        """

        if not isinstance(data, dict):
            raise ValueError(f"conversation record must be an object, got {type(data).__name__}")
        cid = data.get("id")
        if cid is None or cid == "":
            if not synthesize_id:
                raise ValueError("conversation record has no id")
            cid = new_conversation_id()
        raw_messages = data.get("messages")
        messages: List[Message] = []
        if isinstance(raw_messages, list):
            messages = [_message_from_dict(m) for m in raw_messages]
        raw_created = data.get("createdAt")
        if raw_created is None:
            created_at = now or datetime.now(timezone.utc)
        else:
            created_at = parse_timestamp(raw_created)
        return cls(
            id=str(cid),
            text=_optional_str(data.get("text")) or "",
            sentiment=_optional_str(data.get("sentiment")) or "NEUTRAL",
            category=_optional_str(data.get("category")) or "purpose",
            is_question=data.get("isQuestion") is True,
            created_at=created_at,
            messages=messages,
            response=_optional_str(data.get("response")) or "",
            metrics=BusinessMetrics.from_dict(data.get("metrics")),
        )


class KeyValueStore(Protocol):
    """持久化键值存储协议。

    get 返回 None 表示键不存在；读写失败统一抛出 StoreError。
    """

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


def new_conversation_id() -> str:
    return f"c-{uuid4().hex}"


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    """解析 ISO-8601 字符串或毫秒时间戳，统一为 UTC datetime。"""

    if isinstance(value, bool):
        raise ValueError(f"invalid timestamp: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    raise ValueError(f"invalid timestamp: {value!r}")


def _message_from_dict(data: Any) -> Message:
    if not isinstance(data, dict):
        raise ValueError("message must be an object")
    role = data.get("role")
    if role not in ROLES:
        raise ValueError(f"invalid message role: {role!r}")
    content = data.get("content")
    if not isinstance(content, str):
        raise ValueError("message content must be a string")
    return Message(role=role, content=content)


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)
