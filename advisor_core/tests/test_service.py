import json

import pytest

from advisor_core.agents.advisor_agent import AdvisorConfig, AdvisorSession
from advisor_core.api import service
from advisor_core.domain.models import ChatChoice, ChatResult, Message
from advisor_core.infrastructure.storage.autosave import AutoSaver
from advisor_core.infrastructure.storage.kv_store import MemoryStore
from advisor_core.infrastructure.storage.repository import ConversationRepository


class FakeProvider:
    name = "fake"

    def chat(self, req):
        msg = Message(role="assistant", content="Good question. What's your goal?")
        return ChatResult(provider="fake", model=req.model, choices=[ChatChoice(index=0, message=msg)], usage=None, raw={})


@pytest.fixture
def wired(monkeypatch):
    store = MemoryStore()
    repo = ConversationRepository(store)
    session = AdvisorSession(repo, FakeProvider(), AdvisorConfig(provider="fake", system_prompt="mentor"))
    monkeypatch.setattr(service, "_store", store)
    monkeypatch.setattr(service, "_repository", repo)
    monkeypatch.setattr(service, "_session", session)
    monkeypatch.setattr(service, "_autosaver", AutoSaver(repo, interval_seconds=60))
    return store


def test_submit_and_list(wired):
    view = service.submit_message("What drives me?")
    assert view["status"] == "succeeded"
    assert view["is_question"] is True
    listed = service.list_conversations()
    assert [c["id"] for c in listed] == [view["conversation_id"]]
    assert listed[0]["messageCount"] == 2


def test_submit_blank_is_rejected(wired):
    view = service.submit_message("  ")
    assert view["status"] == "rejected"
    assert view["error"] == "EMPTY_INPUT"


def test_export_import_and_reset(wired):
    service.submit_message("What drives me?")
    document = service.export_history()["document"]
    assert len(json.loads(document)) == 1

    imported = service.import_history(document=document)
    assert imported == {"status": "ok", "imported": 1, "message": "Your journey has been restored."}
    assert len(service.list_conversations()) == 2

    bad = service.import_history(document="[1]")
    assert bad["status"] == "failed"
    assert bad["error"] == "IMPORT_FORMAT_ERROR"

    assert service.reset_all()["status"] == "ok"
    assert service.list_conversations() == []
    assert wired.keys() == []


def test_hydrate_reports_recovery_notice(wired):
    wired.set("empath_conversations", "corrupt")
    view = service.hydrate_history()
    assert view["source"] == "empty"
    assert view["notice"] == "Could not load your conversation history. Starting fresh."


def test_shutdown_flushes(wired):
    service.submit_message("What drives me?")
    wired.remove("empath_conversations")
    service.shutdown()
    assert wired.get("empath_conversations") is not None
    assert service._autosaver is None


def test_views_carry_display_labels(wired):
    view = service.submit_message("What drives me?")
    assert view["category_label"] == "Soul Purpose"
    assert view["sentiment_label"] == "Journey Begins"
    listed = service.list_conversations()[0]
    assert listed["categoryLabel"] == "Soul Purpose"
    assert listed["sentimentLabel"] == "Journey Begins"
    hydrated = service.hydrate_history()
    assert hydrated["active_conversation_id"] == view["conversation_id"]
