import httpx
import pytest

from advisor_core.agents.advisor_agent import AdvisorConfig, AdvisorSession
from advisor_core.domain.exceptions import (
    NetworkError,
    RateLimitError,
    ServerError,
    UnauthorizedError,
    ValidationError,
)
from advisor_core.domain.models import ChatRequest, Message
from advisor_core.infrastructure.storage.kv_store import MemoryStore
from advisor_core.infrastructure.storage.repository import ConversationRepository
from advisor_core.providers.mistral_client import MistralClient


class SettingsStub:
    mistral_api_key = "mistral-test-key"
    http_timeout = 1.0
    mistral_base_url = "https://api.mistral.ai/v1"


def _request():
    return ChatRequest(
        provider="mistral",
        model="advisor-chat",
        messages=[
            Message(role="system", content="You are a mentor."),
            Message(role="user", content="hi"),
        ],
        temperature=0.8,
        max_tokens=1024,
        presence_penalty=0.5,
        frequency_penalty=0.3,
    )


def _patch_client(monkeypatch, status_code=200, body=None, captured=None, raise_on_post=None):
    class Resp:
        def __init__(self):
            self.status_code = status_code
            self.text = "error body"

        def json(self):
            if isinstance(body, Exception):
                raise body
            return body

    class Client:
        def __init__(self, *a, **kw):
            if captured is not None:
                captured["client_kwargs"] = kw

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **_):
            if raise_on_post is not None:
                raise raise_on_post
            if captured is not None:
                captured["url"] = url
                captured["payload"] = json
                captured["headers"] = headers
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)


def test_mistral_client_parse_basic(monkeypatch):
    captured = {}
    _patch_client(
        monkeypatch,
        body={
            "choices": [{"message": {"role": "assistant", "content": "ok"}, "finish_reason": "stop"}],
            "usage": {"prompt_tokens": 3, "completion_tokens": 1, "total_tokens": 4},
        },
        captured=captured,
    )
    res = MistralClient(SettingsStub()).chat(_request())
    assert res.text == "ok"
    assert res.usage.total_tokens == 4
    assert captured["url"] == "https://api.mistral.ai/v1/chat/completions"
    assert captured["headers"]["Authorization"] == "Bearer mistral-test-key"
    assert captured["client_kwargs"]["trust_env"] is False


def test_mistral_client_payload(monkeypatch):
    captured = {}
    _patch_client(monkeypatch, body={"choices": [{"message": {"content": "ok"}}]}, captured=captured)
    MistralClient(SettingsStub()).chat(_request())
    payload = captured["payload"]
    assert payload["model"] == "mistral-small"
    assert payload["messages"][0] == {"role": "system", "content": "You are a mentor."}
    assert payload["temperature"] == 0.8
    assert payload["max_tokens"] == 1024
    assert payload["presence_penalty"] == 0.5
    assert payload["frequency_penalty"] == 0.3


@pytest.mark.parametrize(
    "status_code,error_type",
    [(429, RateLimitError), (401, UnauthorizedError), (403, UnauthorizedError), (500, ServerError)],
)
def test_mistral_client_maps_http_errors(monkeypatch, status_code, error_type):
    _patch_client(monkeypatch, status_code=status_code, body={})
    with pytest.raises(error_type) as exc:
        MistralClient(SettingsStub()).chat(_request())
    assert exc.value.http_status == status_code


def test_mistral_client_network_error(monkeypatch):
    _patch_client(monkeypatch, raise_on_post=httpx.ConnectError("connection refused"))
    with pytest.raises(NetworkError) as exc:
        MistralClient(SettingsStub()).chat(_request())
    assert exc.value.kind == "network_error"


def test_mistral_client_empty_choices(monkeypatch):
    _patch_client(monkeypatch, body={"choices": [], "usage": {}})
    with pytest.raises(ServerError) as exc:
        MistralClient(SettingsStub()).chat(_request())
    assert exc.value.code == "EMPTY_COMPLETION"


def test_mistral_client_invalid_json(monkeypatch):
    _patch_client(monkeypatch, body=ValueError("not json"))
    with pytest.raises(ServerError) as exc:
        MistralClient(SettingsStub()).chat(_request())
    assert exc.value.code == "INVALID_RESPONSE"


def test_mistral_client_requires_api_key():
    class NoKey(SettingsStub):
        mistral_api_key = None

    with pytest.raises(UnauthorizedError) as exc:
        MistralClient(NoKey()).chat(_request())
    assert exc.value.code == "MISSING_API_KEY"


@pytest.mark.parametrize(
    "body",
    [
        ["x"],
        {"choices": "abc"},
        {"choices": ["oops"]},
        {"choices": [{"message": "text"}]},
        {"choices": [{"message": {"role": "assistant", "content": 42}}]},
        {"choices": [{"message": {"content": "ok"}}], "usage": "n/a"},
    ],
)
def test_mistral_client_rejects_malformed_body(monkeypatch, body):
    _patch_client(monkeypatch, body=body)
    with pytest.raises(ServerError) as exc:
        MistralClient(SettingsStub()).chat(_request())
    assert exc.value.code == "INVALID_RESPONSE"
    assert exc.value.http_status == 502


def test_malformed_body_fails_the_turn_without_mutation(monkeypatch):
    _patch_client(monkeypatch, body={"choices": ["oops"]})
    repo = ConversationRepository(MemoryStore())
    session = AdvisorSession(repo, MistralClient(SettingsStub()), AdvisorConfig(system_prompt="mentor"))
    result = session.submit("What drives me?")
    assert result.status == "failed"
    assert result.error.code == "INVALID_RESPONSE"
    assert session.state == "idle"
    assert session.input_buffer == "What drives me?"
    assert repo.is_empty()


def test_mistral_client_unknown_model():
    req = _request()
    req.model = "no-such-model"
    with pytest.raises(ValidationError) as exc:
        MistralClient(SettingsStub()).chat(req)
    assert exc.value.code == "UNKNOWN_MODEL"
