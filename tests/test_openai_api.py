import json

import pytest

from raychat.config import settings


URL = "/hf/v1/chat/completions"


def test_missing_authorization_is_rejected(client, backend):
    response = client.post(URL, json={"model": "gpt-4o", "messages": []})

    assert response.status_code == 401
    assert backend.requests == []


def test_wrong_api_key_is_rejected(client, backend):
    response = client.post(URL, json={"model": "gpt-4o", "messages": []}, headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401


def test_skip_auth_token(client, backend, monkeypatch):
    monkeypatch.setattr(settings, "SKIP_AUTH_TOKEN", True)
    backend.lines = ['data: {"text":"ok"}']

    response = client.post(URL, json={"model": "gpt-4o", "messages": [{"role": "user", "content": "x"}]})

    assert response.status_code == 200


def test_non_stream_completion(client, backend, auth_headers, monkeypatch):
    monkeypatch.setattr(settings, "RAYCAST_TOKEN", "backend-token")
    backend.lines = [
        'data: {"text":"Hel","reasoning":"th"}',
        "",
        'data: {"text":"lo","reasoning":"ink"}',
        "",
        'data: {"text":"","finish_reason":"length"}',
    ]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "messages": [
            {"role": "system", "content": "Be terse"},
            {"role": "user", "content": "Hi"},
        ],
    })

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "chat.completion"
    assert body["model"] == "gpt-4o"
    assert body["choices"][0]["message"] == {"role": "assistant", "content": "Hello", "reasoning_content": "think"}
    assert body["choices"][0]["finish_reason"] == "stop"
    assert body["usage"]["total_tokens"] == 0

    payload = backend.last_payload
    assert payload["additional_system_instructions"] == "Be terse"
    assert payload["messages"] == [{"content": {"text": "Hi"}, "author": "user"}]
    assert payload["temperature"] == 1.0
    assert payload["provider"] == "openai"
    assert backend.requests[-1].headers["Authorization"] == "Bearer backend-token"


def test_stream_completion(client, backend, auth_headers, parse_sse):
    backend.lines = [
        'data: {"text":"Hel"}',
        "",
        'data: {"reasoning":"hmm"}',
        "",
        'data: {"text":"","finish_reason":"stop"}',
    ]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "stream": True,
        "messages": [{"role": "user", "content": "Hi"}],
    })

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    payloads = parse_sse(response.text)
    assert payloads[-1] == "[DONE]"
    chunks = [json.loads(p) for p in payloads[:-1]]
    assert [c["choices"][0]["delta"] for c in chunks] == [
        {"role": "assistant", "content": "Hel"},
        {"role": "assistant", "reasoning_content": "hmm"},
        {},
    ]
    assert [c["choices"][0]["finish_reason"] for c in chunks] == [None, None, "stop"]
    assert all(c["object"] == "chat.completion.chunk" for c in chunks)


def test_stream_swallows_error_events(client, backend, auth_headers, parse_sse):
    backend.lines = [
        'data: {"text":"a"}',
        'data: {"error":{"message":"rate limited"}}',
        'data: {"text":"b"}',
    ]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "stream": True,
        "messages": [{"role": "user", "content": "Hi"}],
    })

    chunks = [json.loads(p) for p in parse_sse(response.text)[:-1]]
    assert [c["choices"][0]["delta"].get("content") for c in chunks] == ["a", None, "b"]


def test_stream_malformed_event_terminates_with_error(client, backend, auth_headers, parse_sse):
    backend.lines = [
        'data: {"text":"a"}',
        "data: {oops",
        'data: {"text":"never sent"}',
    ]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "stream": True,
        "messages": [{"role": "user", "content": "Hi"}],
    })

    payloads = parse_sse(response.text)
    assert json.loads(payloads[0])["choices"][0]["delta"]["content"] == "a"
    assert json.loads(payloads[1])["error"]["type"] == "stream_decode_error"
    assert payloads[2] == "[DONE]"
    assert len(payloads) == 3


def test_stream_upstream_status_error(client, backend, auth_headers, parse_sse):
    backend.status_code = 503
    backend.lines = ["service unavailable"]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "stream": True,
        "messages": [{"role": "user", "content": "Hi"}],
    })

    payloads = parse_sse(response.text)
    error = json.loads(payloads[0])["error"]
    assert error["type"] == "upstream_error"
    assert error["code"] == 503
    assert "service unavailable" in error["details"]
    assert payloads[-1] == "[DONE]"


def test_non_stream_upstream_status_error(client, backend, auth_headers):
    backend.status_code = 429
    backend.lines = ["slow down"]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "Hi"}],
    })

    assert response.status_code == 429
    assert "slow down" in response.json()["detail"]


def test_non_stream_malformed_event_is_502(client, backend, auth_headers):
    backend.lines = ["data: {oops"]

    response = client.post(URL, headers=auth_headers, json={
        "model": "gpt-4o",
        "messages": [{"role": "user", "content": "Hi"}],
    })

    assert response.status_code == 502


def test_unknown_model_falls_back(client, backend, auth_headers):
    backend.lines = ['data: {"text":"x"}']

    response = client.post(URL, headers=auth_headers, json={
        "model": "not-a-real-model",
        "messages": [{"role": "user", "content": "Hi"}],
    })

    assert response.json()["model"] == "gpt-3.5-turbo"
    assert backend.last_payload["model"] == "gpt-3.5-turbo"


@pytest.mark.parametrize("entitled,premium,expected", [
    ([], False, "gpt-3.5-turbo"),
    (["licensed-model"], False, "licensed-model"),
])
def test_entitlements_from_settings(client, backend, auth_headers, monkeypatch, entitled, premium, expected):
    monkeypatch.setattr(settings, "ENTITLED_MODELS", entitled)
    monkeypatch.setattr(settings, "ELIGIBLE_FOR_GPT4", premium)
    backend.lines = ['data: {"text":"x"}']

    client.post(URL, headers=auth_headers, json={
        "model": "licensed-model",
        "messages": [{"role": "user", "content": "Hi"}],
    })

    assert backend.last_payload["model"] == expected


def test_options_preflight(client):
    response = client.options(URL)

    assert response.status_code == 200
    assert response.json() == {"message": "pong"}
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST"


def test_list_models(client):
    response = client.get("/hf/v1/models")

    assert response.status_code == 200
    body = response.json()
    assert body["object"] == "list"
    ids = {m["id"]: m["owned_by"] for m in body["data"]}
    assert ids["gpt-3.5-turbo"] == "openai"
    assert ids["claude-sonnet"] == "anthropic"


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_null_model_and_messages_use_defaults(client, backend, auth_headers):
    backend.lines = ['data: {"text":"x"}']

    response = client.post(URL, headers=auth_headers, json={"model": None, "messages": None})

    assert response.status_code == 200
    assert response.json()["model"] == "gpt-3.5-turbo"
    assert backend.last_payload["messages"] == []
