"""Tests for prompt construction and the generation workflow."""

import json

import httpx
import pytest

from dsg.datahub.client import CatalogClient
from dsg.errors import DecodeError, GenerationError, StorageError
from dsg.history import HistoryStore
from dsg.llm.base import ProviderConfig
from dsg.llm.providers import MockProvider
from dsg.prompting import PLACEHOLDER, build_prompt, load_reference_schema, strip_markdown_fence
from dsg.service import (
    GenerationResult,
    generate_schema,
    load_history_file,
    open_history,
    post_datasets,
    record_generation,
)


def test_build_prompt():
    prompt = build_prompt("a table of {weird} things", reference='[{"urn": "x"}]', stamp=1234)

    assert '[{"urn": "x"}]' in prompt
    assert "a table of {weird} things" in prompt
    assert f"replace {PLACEHOLDER} with 1234" in prompt
    assert prompt.endswith("Do not format the response as markdown.")


def test_build_prompt_uses_bundled_reference():
    assert load_reference_schema() in build_prompt("x")


@pytest.mark.parametrize(
    "text,expected",
    [
        ("[1]", "[1]"),
        ("```json\n[1]\n```", "[1]"),
        ("```\n{}\n```\n", "{}"),
    ],
)
def test_strip_markdown_fence(text, expected):
    assert strip_markdown_fence(text) == expected


class TestGenerateSchema:
    def test_generates_and_summarizes(self):
        provider = MockProvider(ProviderConfig())
        result = generate_schema(provider, "orders of a web shop")

        assert result.user_input == "orders of a web shop"
        assert "orders of a web shop" in provider.prompts[0]
        assert result.entity_count == 1
        assert result.summary.schema_name == "mock_orders"
        assert result.summary.dataset_name == "sales.mock_orders"
        json.loads(result.response)

    def test_fenced_answer(self):
        provider = MockProvider(ProviderConfig(), content='```json\n[{"urn": "a"}, {"urn": "b"}]\n```')
        result = generate_schema(provider, "x")
        assert result.response == '[{"urn": "a"}, {"urn": "b"}]'
        assert result.entity_count == 2

    def test_invalid_json(self):
        provider = MockProvider(ProviderConfig(), content="Sure! Here is your schema")
        with pytest.raises(DecodeError, match="parsing JSON"):
            generate_schema(provider, "x")

    def test_empty_description(self):
        with pytest.raises(GenerationError):
            generate_schema(MockProvider(ProviderConfig()), "  \n")


class TestRecordGeneration:
    def test_saves_summary(self, tmp_path):
        result = generate_schema(MockProvider(ProviderConfig()), "orders")
        with HistoryStore(tmp_path) as store:
            entry_id = record_generation(store, result)
            entry = store.get(entry_id)

        assert entry.prompt == "orders"
        assert entry.response == result.response
        assert entry.schema_name == "mock_orders"
        assert entry.schema_urn == result.summary.schema_urn

    def test_storage_failure_is_not_fatal(self, tmp_path, monkeypatch):
        result = GenerationResult(user_input="u", prompt="p", response="[]")
        with HistoryStore(tmp_path) as store:

            def broken_save(*args, **kwargs):
                raise StorageError("disk full")

            monkeypatch.setattr(store, "save", broken_save)
            assert record_generation(store, result) is None

    def test_open_history_failure_returns_none(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert open_history(blocker / "sub") is None


def test_post_datasets_accepts_single_object():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(200)

    client = CatalogClient("http://gms", http_client=httpx.Client(transport=httpx.MockTransport(handler)))
    assert post_datasets(client, '{"urn": "a"}') == 1
    assert post_datasets(client, '[{"urn": "a"}, {"urn": "b"}]') == 2
    assert len(requests) == 3


class TestLoadHistoryFile:
    def test_lowercase_keys(self, tmp_path):
        path = tmp_path / "h.json"
        path.write_text(json.dumps({"id": 3, "prompt": "p", "response": "[]"}))
        entry = load_history_file(path)
        assert (entry.id, entry.prompt, entry.response) == (3, "p", "[]")

    def test_capitalized_keys(self, tmp_path):
        path = tmp_path / "h.json"
        path.write_text(json.dumps({"ID": 4, "Prompt": "p", "Response": "[]"}))
        assert load_history_file(path).id == 4

    def test_missing_response(self, tmp_path):
        path = tmp_path / "h.json"
        path.write_text(json.dumps({"id": 1}))
        with pytest.raises(DecodeError):
            load_history_file(path)
