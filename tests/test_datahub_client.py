"""Tests for the DataHub catalog client, against an in-process mock transport."""

import json

import httpx
import pytest

from dsg.datahub.client import LIST_ASPECTS, CatalogClient
from dsg.datahub.models import Dataset, new_glossary_term
from dsg.errors import (
    BatchPostError,
    DecodeError,
    MalformedPayloadError,
    RemoteError,
    TransportError,
)

BASE = "http://gms.test"


def make_client(handler, token=None):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return CatalogClient(BASE, token=token, http_client=http)


class Recorder:
    """Handler that records requests and answers with queued responses."""

    def __init__(self, responses=None):
        self.requests = []
        self.responses = list(responses or [])

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.responses:
            return self.responses.pop(0)
        return httpx.Response(200, json=[])


class TestPostEntities:
    def test_posts_each_element_separately(self):
        rec = Recorder()
        client = make_client(rec)
        payload = json.dumps([{"urn": "a"}, {"urn": "b"}, {"urn": "c"}])

        assert client.post_entities("dataset", payload) == 3

        assert len(rec.requests) == 3
        bodies = [json.loads(r.content) for r in rec.requests]
        assert bodies == [[{"urn": "a"}], [{"urn": "b"}], [{"urn": "c"}]]

    def test_request_shape(self):
        rec = Recorder()
        client = make_client(rec, token="s3cret")

        client.post_entities("glossaryTerm", '[{"urn": "t"}]')

        req = rec.requests[0]
        assert req.method == "POST"
        assert req.url.path == "/openapi/v3/entity/glossaryTerm"
        assert req.url.params["async"] == "false"
        assert req.url.params["systemMetadata"] == "false"
        assert req.headers["accept"] == "application/json"
        assert req.headers["content-type"] == "application/json"
        assert req.headers["authorization"] == "Bearer s3cret"

    def test_no_token_no_authorization_header(self):
        rec = Recorder()
        make_client(rec).post_entities("dataset", '[{"urn": "a"}]')
        assert "authorization" not in rec.requests[0].headers

    def test_empty_array_posts_nothing(self):
        rec = Recorder()
        assert make_client(rec).post_entities("dataset", "[]") == 0
        assert rec.requests == []

    def test_bare_object_rejected_without_request(self):
        rec = Recorder()
        with pytest.raises(MalformedPayloadError):
            make_client(rec).post_entities("dataset", '{"a": 1}')
        assert rec.requests == []

    def test_bare_object_allowed_when_requested(self):
        rec = Recorder()
        assert make_client(rec).post_entities("dataset", '{"urn": "a"}', allow_single=True) == 1
        assert json.loads(rec.requests[0].content) == [{"urn": "a"}]

    def test_invalid_json(self):
        rec = Recorder()
        with pytest.raises(DecodeError):
            make_client(rec).post_entities("dataset", "[{")
        assert rec.requests == []

    def test_fail_fast_reports_index_and_posted(self):
        rec = Recorder([httpx.Response(200), httpx.Response(500, text="boom"), httpx.Response(200)])
        payload = json.dumps([{"urn": "a"}, {"urn": "b"}, {"urn": "c"}])

        with pytest.raises(BatchPostError) as exc_info:
            make_client(rec).post_entities("dataset", payload)

        err = exc_info.value
        assert err.index == 1
        assert err.posted == 1
        assert isinstance(err.cause, RemoteError)
        assert err.cause.status_code == 500
        assert err.__cause__ is err.cause
        assert "entity 2" in str(err)
        assert len(rec.requests) == 2

    def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(BatchPostError) as exc_info:
            make_client(handler).post_entities("dataset", '[{"urn": "a"}]')
        assert isinstance(exc_info.value.cause, TransportError)
        assert exc_info.value.posted == 0

    def test_post_models(self):
        rec = Recorder()
        count = make_client(rec).post_models("glossaryTerm", [new_glossary_term("Revenue")])

        assert count == 1
        body = json.loads(rec.requests[0].content)
        assert body[0]["urn"] == "urn:li:glossaryTerm:Revenue"
        assert body[0]["glossaryTermInfo"]["value"]["termSource"] == "INTERNAL"


def _page(n, start=0, scroll_id=None, total=None):
    body = {"entities": [{"urn": f"urn:li:dataset:{start + i}"} for i in range(n)]}
    if scroll_id is not None:
        body["scrollId"] = scroll_id
    if total is not None:
        body["metadata"] = {"total": total}
    return httpx.Response(200, json=body)


class TestListDatasets:
    def test_pagination_stops_on_missing_cursor(self):
        rec = Recorder([_page(5, 0, "c1"), _page(5, 5, "c2"), _page(3, 10, ""), _page(0)])
        client = make_client(rec)
        seen = []

        client.list_datasets(5, lambda entities: seen.append(len(entities)))

        assert seen == [5, 5, 3]
        assert len(rec.requests) == 3

    def test_pagination_stops_on_empty_page(self):
        rec = Recorder([_page(2, 0, "c1"), _page(0, scroll_id="c2")])
        seen = []

        make_client(rec).list_datasets(2, seen.append)

        assert len(seen) == 1
        assert len(rec.requests) == 2

    def test_first_and_follow_up_parameters(self):
        rec = Recorder([_page(2, 0, "c1", total=3), _page(1, 2)])
        list(make_client(rec).iter_dataset_pages(2))

        first, second = rec.requests
        assert first.url.path == "/openapi/v3/entity/dataset"
        assert first.url.params.get_list("aspects") == list(LIST_ASPECTS)
        assert first.url.params["systemMetadata"] == "false"
        assert first.url.params["count"] == "2"
        assert first.url.params["sort"] == "urn"
        assert first.url.params["sortOrder"] == "ASCENDING"
        assert first.url.params["query"] == "*"
        assert "scrollId" not in first.url.params

        assert second.url.params["scrollId"] == "c1"
        assert second.url.params.get_list("aspects") == list(LIST_ASPECTS)
        assert "sort" not in second.url.params
        assert "query" not in second.url.params

    def test_pages_are_decoded(self):
        rec = Recorder([_page(2)])
        (page,) = list(make_client(rec).iter_dataset_pages(10))
        assert all(isinstance(d, Dataset) for d in page)
        assert [d.urn for d in page] == ["urn:li:dataset:0", "urn:li:dataset:1"]

    def test_other_field_types_are_listed(self):
        field = {
            "fieldPath": "is_active",
            "type": {"type": {"com.linkedin.schema.BooleanType": {}}},
            "nativeDataType": "TINYINT(1)",
        }
        entity = {
            "urn": "urn:li:dataset:flags",
            "schemaMetadata": {"value": {"schemaName": "flags", "fields": [field]}},
        }
        rec = Recorder([httpx.Response(200, json={"entities": [entity]})])

        (page,) = list(make_client(rec).iter_dataset_pages(10))

        (ds,) = page
        (listed,) = ds.schema_metadata.value.fields
        assert listed.type.type.kind is None
        assert listed.model_dump(by_alias=True, exclude_none=True)["type"] == field["type"]

    def test_fresh_iteration_restarts(self):
        rec = Recorder([_page(1, 0, "c1"), _page(1, 0, "c1")])
        client = make_client(rec)

        pages = client.iter_dataset_pages(1)
        next(pages)
        pages = client.iter_dataset_pages(1)
        next(pages)

        assert all("scrollId" not in r.url.params for r in rec.requests)

    def test_callback_error_stops_iteration(self):
        rec = Recorder([_page(1, 0, "c1"), _page(1, 1, "c2")])

        def on_page(entities):
            raise RuntimeError("stop")

        with pytest.raises(RuntimeError, match="stop"):
            make_client(rec).list_datasets(1, on_page)
        assert len(rec.requests) == 1

    def test_remote_error(self):
        rec = Recorder([httpx.Response(401, text="unauthorized")])
        with pytest.raises(RemoteError) as exc_info:
            list(make_client(rec).iter_dataset_pages(10))
        assert exc_info.value.status_code == 401

    def test_bad_envelope(self):
        rec = Recorder([httpx.Response(200, text="<html>")])
        with pytest.raises(DecodeError):
            list(make_client(rec).iter_dataset_pages(10))

    def test_transport_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            list(make_client(handler).iter_dataset_pages(10))


def test_default_url():
    with CatalogClient() as client:
        assert client.url == "http://localhost:8080"
    with CatalogClient("http://x/") as client:
        assert client.url == "http://x"
