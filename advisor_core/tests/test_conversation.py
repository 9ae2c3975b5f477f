from datetime import datetime, timezone

import pytest

from advisor_core.domain.conversation import (
    BusinessMetrics,
    Conversation,
    format_timestamp,
    parse_timestamp,
)
from advisor_core.domain.models import Message


def _conv(**overrides):
    data = dict(
        id="c-1",
        text="What drives me?",
        sentiment="NEUTRAL",
        category="purpose",
        is_question=True,
        created_at=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
        messages=[
            Message(role="user", content="What drives me?"),
            Message(role="assistant", content="Good question. What's your goal?"),
        ],
        response="Good question. What's your goal?",
    )
    data.update(overrides)
    return Conversation(**data)


def test_to_dict_uses_camel_case_and_utc():
    payload = _conv().to_dict()
    assert payload["createdAt"] == "2024-05-01T12:30:00Z"
    assert payload["isQuestion"] is True
    assert payload["messages"][1] == {"role": "assistant", "content": "Good question. What's your goal?"}
    assert "metrics" not in payload


def test_from_dict_restores_record():
    original = _conv(metrics=BusinessMetrics(estimated_roi="20%", difficulty="High", priority="Urgent"))
    restored = Conversation.from_dict(original.to_dict())
    assert restored.id == original.id
    assert restored.created_at == original.created_at
    assert restored.messages == original.messages
    assert restored.metrics.estimated_roi == "20%"
    assert restored.metrics.difficulty == "High"
    assert restored.metrics.priority is None


def test_from_dict_defaults_missing_fields():
    now = datetime(2024, 1, 1, tzinfo=timezone.utc)
    conv = Conversation.from_dict({"id": "c-2", "text": "hi"}, now=now)
    assert conv.messages == []
    assert conv.created_at == now
    assert conv.sentiment == "NEUTRAL"
    assert conv.category == "purpose"
    assert conv.is_question is False


def test_from_dict_tolerates_odd_message_count():
    conv = Conversation.from_dict(
        {"id": "c-3", "createdAt": "2024-01-01T00:00:00Z", "messages": [{"role": "user", "content": "hello"}]}
    )
    assert len(conv.messages) == 1


def test_from_dict_rejects_bad_records():
    with pytest.raises(ValueError):
        Conversation.from_dict("not a record")
    with pytest.raises(ValueError):
        Conversation.from_dict({"text": "no id"})
    with pytest.raises(ValueError):
        Conversation.from_dict({"id": "c-4", "messages": [{"role": "robot", "content": "x"}]})
    with pytest.raises(ValueError):
        Conversation.from_dict({"id": "c-5", "createdAt": "yesterday"})


def test_from_dict_synthesizes_missing_id():
    conv = Conversation.from_dict({"text": "imported"}, synthesize_id=True)
    assert conv.id.startswith("c-")


def test_parse_timestamp_accepts_epoch_millis_and_iso():
    expected = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    assert parse_timestamp(int(expected.timestamp() * 1000)) == expected
    assert parse_timestamp("2024-05-01T12:30:00.000Z") == expected
    assert parse_timestamp("2024-05-01T14:30:00+02:00") == expected
    with pytest.raises(ValueError):
        parse_timestamp(True)


def test_format_timestamp_treats_naive_as_utc():
    assert format_timestamp(datetime(2024, 5, 1, 12, 30)) == "2024-05-01T12:30:00Z"


def test_from_dict_only_accepts_boolean_is_question():
    base = {"id": "c-6", "createdAt": "2024-01-01T00:00:00Z"}
    assert Conversation.from_dict({**base, "isQuestion": True}).is_question is True
    assert Conversation.from_dict({**base, "isQuestion": "false"}).is_question is False
    assert Conversation.from_dict({**base, "isQuestion": 1}).is_question is False
