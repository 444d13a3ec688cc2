import json

import pytest
import requests

from notion_query import (
    QueryConfig,
    QueryError,
    make_payload,
    query_collection,
    roll_timestamped_file,
    size_hint,
)


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        self.text = text if text is not None else json.dumps(payload)

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "body": json.loads(data), "headers": headers, "timeout": timeout})
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r


def test_payload_carries_limit_and_ids():
    cfg = QueryConfig(space_id="s", collection_id="c", collection_view_id="v")
    p = make_payload(7, cfg)
    assert p["collection"] == {"id": "c", "spaceId": "s"}
    assert p["collectionView"] == {"id": "v", "spaceId": "s"}
    assert p["loader"]["reducers"]["collection_group_results"] == {"type": "results", "limit": 7}
    assert p["loader"]["userTimeZone"] == "UTC"


def test_config_from_env(monkeypatch):
    monkeypatch.setenv("NOTION_QUERY_URL", "https://example.test/q")
    monkeypatch.setenv("NOTION_READ_TIMEOUT", "5")
    cfg = QueryConfig.from_env()
    assert cfg.url == "https://example.test/q"
    assert cfg.read_timeout == 5.0
    assert cfg.connect_timeout == 15.0


def test_query_success_posts_json():
    body = {"result": {"sizeHint": 3}, "recordMap": {"block": {}, "collection": {}}}
    session = FakeSession([FakeResponse(payload=body)])
    cfg = QueryConfig(url="https://example.test/q", connect_timeout=1, read_timeout=2)

    assert query_collection(0, cfg, session=session) == body
    call = session.calls[0]
    assert call["url"] == "https://example.test/q"
    assert call["body"]["loader"]["reducers"]["collection_group_results"]["limit"] == 0
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["timeout"] == (1, 2)


def test_non_200_raises_with_body():
    session = FakeSession([FakeResponse(status_code=400, text='{"errorId":"x","name":"ValidationError"}')])
    with pytest.raises(QueryError) as ei:
        query_collection(0, QueryConfig(), session=session)
    assert ei.value.status_code == 400
    assert "ValidationError" in ei.value.body
    assert "request failed with code 400" in str(ei.value)


def test_decode_error_raises():
    session = FakeSession([FakeResponse(text="<html>oops</html>")])
    with pytest.raises(QueryError) as ei:
        query_collection(0, QueryConfig(), session=session)
    assert str(ei.value).startswith("decoding response")


def test_transport_error_raises():
    session = FakeSession([requests.ConnectionError("boom")])
    with pytest.raises(QueryError) as ei:
        query_collection(0, QueryConfig(), session=session)
    assert "sending the request" in str(ei.value)


def test_audit_lines_are_written(tmp_path):
    audit = roll_timestamped_file(tmp_path / "audit" / "sync.ndjson")
    assert audit.exists() and audit.name.startswith("sync_")

    body = {"result": {"sizeHint": 2}, "recordMap": {"block": {"a": {}, "b": {}}, "collection": {"c": {}}}}
    session = FakeSession([FakeResponse(payload=body), FakeResponse(status_code=500, text="down")])
    query_collection(0, QueryConfig(), session=session, audit=audit)
    with pytest.raises(QueryError):
        query_collection(2, QueryConfig(), session=session, audit=audit)

    rows = [json.loads(line) for line in audit.read_text(encoding="utf-8").splitlines()]
    assert rows[0]["status"] == 200
    assert rows[0]["response"] == {"sizeHint": 2, "blocks": 2, "collections": 1}
    assert rows[1]["status"] == 500 and rows[1]["limit"] == 2


def test_size_hint_defaults_to_zero():
    assert size_hint({}) == 0
    assert size_hint({"result": {"sizeHint": 12}}) == 12
