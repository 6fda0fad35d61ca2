from typing import Any

import httpx
import pytest

from app.services.llm.client import LLMClient, LLMError


def _client(base_url: str | None = "https://llm.test/v1/") -> LLMClient:
    return LLMClient(
        base_url=base_url,
        api_key="k",
        default_model="gpt-4",
        embedding_model="text-embedding-3-small",
    )


def test_embed_orders_by_index(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_post(url: str, **kwargs: Any) -> httpx.Response:
        captured["url"] = url
        captured["json"] = kwargs["json"]
        payload = {
            "data": [
                {"index": 1, "embedding": [0.0, 1.0]},
                {"index": 0, "embedding": [1.0, 0.0]},
            ]
        }
        return httpx.Response(200, json=payload, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    vectors = _client().embed(["first", "second"])
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert captured["url"] == "https://llm.test/v1/embeddings"
    assert captured["json"] == {"model": "text-embedding-3-small", "input": ["first", "second"]}


def test_embed_count_mismatch(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, **kwargs: Any) -> httpx.Response:
        payload = {"data": [{"index": 0, "embedding": [1.0]}]}
        return httpx.Response(200, json=payload, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    with pytest.raises(LLMError, match="1 vectors for 2 inputs"):
        _client().embed(["a", "b"])


def test_embed_http_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_post(url: str, **kwargs: Any) -> httpx.Response:
        return httpx.Response(429, text="quota", request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    with pytest.raises(LLMError, match="429"):
        _client().embed(["a"])


def test_embed_requires_base_url() -> None:
    with pytest.raises(LLMError):
        _client(base_url=None).embed(["a"])
    assert _client(base_url=None).embed([]) == []


def test_complete_sends_system_instruction(monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, Any] = {}

    def fake_post(url: str, **kwargs: Any) -> httpx.Response:
        captured["url"] = url
        captured["json"] = kwargs["json"]
        payload = {"choices": [{"message": {"content": "  Fused text.  "}}]}
        return httpx.Response(200, json=payload, request=httpx.Request("POST", url))

    monkeypatch.setattr(httpx, "post", fake_post)
    text = _client().complete("merge these", "you merge checklists")
    assert text == "Fused text."
    assert captured["url"] == "https://llm.test/v1/chat/completions"
    assert captured["json"]["messages"] == [
        {"role": "system", "content": "you merge checklists"},
        {"role": "user", "content": "merge these"},
    ]
    assert captured["json"]["temperature"] == 0.3
    assert captured["json"]["max_tokens"] == 500


def test_extract_text_handles_objects() -> None:
    class Message:
        content = "hello"

    class Choice:
        message = Message()

    class Completion:
        choices = [Choice()]

    assert LLMClient._extract_text(Completion()) == "hello"
    assert LLMClient._extract_text({"choices": []}) == ""
