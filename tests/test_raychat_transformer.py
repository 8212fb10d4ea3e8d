import pytest

from raychat.auth import CallerContext
from raychat.model_resolver import ModelCatalog, ModelResolver
from raychat.raychat_transformer import RayChatTransformer, resolve_temperature
from raychat.schemas import ChatRequest


@pytest.fixture()
def transformer() -> RayChatTransformer:
    catalog = ModelCatalog.from_table({"gpt-3.5-turbo": "openai", "gpt-4o": "openai"})
    return RayChatTransformer(resolver=ModelResolver(catalog, default_model="gpt-3.5-turbo"))


def build(transformer, **fields):
    request = ChatRequest.model_validate(fields)
    body, _ = transformer.build_backend_request(request, CallerContext())
    return body


def test_system_message_folded_into_instructions(transformer):
    body = build(transformer, model="gpt-4o", messages=[
        {"role": "system", "content": "Be terse"},
        {"role": "user", "content": "Hi"},
    ])

    payload = body.to_payload()
    assert payload["temperature"] == 1.0
    assert payload["additional_system_instructions"] == "Be terse"
    assert payload["messages"] == [{"content": {"text": "Hi"}, "author": "user"}]


def test_multiple_system_messages_joined_in_order(transformer):
    body = build(transformer, model="gpt-4o", messages=[
        {"role": "system", "content": "A"},
        {"role": "user", "content": "q1"},
        {"role": "system", "content": [{"text": "B"}, {"text": "C"}]},
        {"role": "system", "content": "A"},
    ])

    assert body.additional_system_instructions == "A\n\nB\n\nC\n\nA"
    assert [m.content.text for m in body.messages] == ["q1"]
    assert all(m.author != "system" for m in body.messages)


def test_no_system_messages_omits_instructions(transformer):
    body = build(transformer, model="gpt-4o", messages=[{"role": "user", "content": "Hi"}])

    assert "additional_system_instructions" not in body.to_payload()


def test_message_order_preserved(transformer):
    body = build(transformer, model="gpt-4o", messages=[
        {"role": "user", "content": "1"},
        {"role": "system", "content": "s"},
        {"role": "assistant", "content": "2"},
        {"role": "user", "content": [{"text": "3"}]},
        {"bogus": True, "content": {"nested": "object"}},
        {"role": "assistant", "content": "4"},
    ])

    assert [m.content.text for m in body.messages] == ["1", "2", "3", "4"]
    assert [m.author for m in body.messages] == ["user", "assistant", "user", "assistant"]


def test_fixed_fields(transformer):
    payload = build(transformer, model="gpt-4o", messages=[]).to_payload()

    assert payload["locale"] == "en-CN"
    assert payload["debug"] is False
    assert payload["system_instruction"] == "markdown"
    assert payload["provider"] == "openai"
    assert payload["model"] == "gpt-4o"


def test_unknown_model_resolves_to_default(transformer):
    request = ChatRequest(model="not-a-real-model", messages=[{"role": "user", "content": "x"}])

    transformed = transformer.transform_request_in(request, CallerContext(backend_token="tok"))

    assert transformed["body"].model == "gpt-3.5-turbo"
    assert transformed["resolved"].substituted is True
    assert transformed["config"]["headers"]["Authorization"] == "Bearer tok"


@pytest.mark.parametrize("value,expected", [
    (None, 1.0),
    (0, 1.0),
    (0.0, 1.0),
    (0.2, 0.2),
    (1.7, 1.7),
])
def test_resolve_temperature(value, expected):
    assert resolve_temperature(value) == expected


def test_explicit_temperature_passes_through(transformer):
    body = build(transformer, model="gpt-4o", messages=[], temperature=0.3)

    assert body.temperature == 0.3
