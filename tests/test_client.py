"""Tests for the HTTP client wrapper."""

from unittest.mock import MagicMock

import pytest
import requests

from intelx_cli import config as config_module
from intelx_cli.client import IntelXClient, IntelXError, is_quota_exhausted
from intelx_cli.models import AccountInfo, SearchRecord


def response(status=200, json_data=None, text="", content=b"", reason="OK"):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = status < 400
    resp.reason = reason
    resp.text = text
    resp.content = content
    if json_data is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = json_data
    return resp


@pytest.fixture
def client():
    c = IntelXClient("key-123", base_url="https://api.test/", poll_delay=0)
    c.session = MagicMock()
    return c


class TestIntelXClient:

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            IntelXClient("")

    def test_session_sends_key_header(self):
        c = IntelXClient("key-123")
        assert c.session.headers["x-key"] == "key-123"

    def test_search_returns_id(self, client):
        client.session.post.return_value = response(json_data={"id": "search-1", "status": 0})
        assert client.search("example.com") == "search-1"
        args, kwargs = client.session.post.call_args
        assert args[0] == "https://api.test/intelligent/search"
        assert kwargs["json"]["term"] == "example.com"

    def test_search_without_id_fails(self, client):
        client.session.post.return_value = response(json_data={"status": 1})
        with pytest.raises(IntelXError):
            client.search("example.com")

    def test_results_poll_until_ready(self, client):
        client.session.get.side_effect = [
            response(json_data={"status": 3, "records": []}),
            response(json_data={"status": 0, "records": [{"systemid": "a"}, {"systemid": "b"}]}),
        ]
        records = client.search_results("search-1", limit=10)
        assert [r.systemid for r in records] == ["a", "b"]
        assert all(isinstance(r, SearchRecord) for r in records)
        assert client.session.get.call_count == 2

    def test_results_respect_limit(self, client):
        client.session.get.return_value = response(
            json_data={"status": 1, "records": [{"systemid": str(i)} for i in range(5)]})
        assert len(client.search_results("search-1", limit=2)) == 2

    def test_find_chains_search_and_results(self, client):
        client.session.post.return_value = response(json_data={"id": "s"})
        client.session.get.return_value = response(json_data={"status": 1, "records": [{"systemid": "x"}]})
        assert [r.systemid for r in client.find("term")] == ["x"]

    def test_file_preview_and_tree_formats(self, client):
        client.session.get.return_value = response(text="content")
        assert client.file_preview("st", "bk") == "content"
        assert client.session.get.call_args[1]["params"]["f"] == 0
        assert client.file_tree("idx", "bk") == "content"
        params = client.session.get.call_args[1]["params"]
        assert params["f"] == 12
        assert params["storageid"] == "idx"

    def test_download_returns_bytes(self, client):
        client.session.get.return_value = response(content=b"\x00\x01")
        assert client.download("sys", "bk") == b"\x00\x01"
        assert client.session.get.call_args[0][0] == "https://api.test/file/read"

    def test_limits(self, client):
        client.session.get.return_value = response(json_data={
            "paths": {"/file/view": {"Credit": 7, "CreditMax": 10, "CreditReset": 3}}})
        info = client.limits()
        assert isinstance(info, AccountInfo)
        assert info.get_remaining_credits("/file/view") == 7

    def test_http_error_carries_status(self, client):
        client.session.get.return_value = response(status=402, text="no credits", reason="Payment Required")
        with pytest.raises(IntelXError) as excinfo:
            client.file_preview("st", "bk")
        assert excinfo.value.status_code == 402
        assert "Payment Required" in str(excinfo.value)

    def test_transport_error_is_wrapped(self, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError("boom")
        with pytest.raises(IntelXError) as excinfo:
            client.file_preview("st", "bk")
        assert excinfo.value.status_code is None

    def test_bad_json_is_wrapped(self, client):
        client.session.get.return_value = response(text="<html>")
        with pytest.raises(IntelXError):
            client.limits()


class TestQuotaDetection:

    @pytest.mark.parametrize("error", [
        IntelXError("Get file preview failed", 402),
        IntelXError("Get file preview failed", 429),
        IntelXError("Get file preview failed: Forbidden", 403, reason="Forbidden Not enough credits"),
        IntelXError("daily quota reached"),
    ])
    def test_quota_errors(self, error):
        assert is_quota_exhausted(error)

    @pytest.mark.parametrize("error", [
        IntelXError("Get file preview failed: Not Found", 404),
        IntelXError("Get file preview failed: connection reset"),
        IntelXError("Get file preview failed: Not Found <p>Upgrade for unlimited access</p>", 404),
        IntelXError("Get file preview failed: Server Error see rate limits docs", 500, reason="Internal Server Error"),
        IntelXError("Get results failed: Max retries exceeded with url: /intelligent/search/result?limit=100", reason=""),
    ])
    def test_other_errors(self, error):
        assert not is_quota_exhausted(error)

    def test_body_text_is_not_a_quota_signal(self, client):
        client.session.get.return_value = response(status=404, reason="Not Found",
                                                   text="<p>Upgrade for unlimited credits</p>")
        with pytest.raises(IntelXError) as excinfo:
            client.file_preview("st", "bk")
        assert "unlimited credits" in str(excinfo.value)
        assert not is_quota_exhausted(excinfo.value)

    def test_json_error_field_is_a_quota_signal(self, client):
        client.session.get.return_value = response(status=403, reason="Forbidden",
                                                   json_data={"error": "Not enough credits"})
        with pytest.raises(IntelXError) as excinfo:
            client.file_preview("st", "bk")
        assert excinfo.value.reason == "Forbidden Not enough credits"
        assert is_quota_exhausted(excinfo.value)


class TestApiKeyPrivacy:

    def test_key_not_sent_as_query_parameter(self, client):
        client.session.get.return_value = response(text="x", content=b"x")
        client.file_preview("st", "bk")
        assert "k" not in client.session.get.call_args[1]["params"]
        client.file_tree("idx", "bk")
        assert "k" not in client.session.get.call_args[1]["params"]
        client.download("sys", "bk")
        assert "k" not in client.session.get.call_args[1]["params"]

    def test_key_redacted_from_transport_errors(self, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError(
            "Max retries exceeded with url: /file/view?f=0&storageid=st&k=key-123")
        with pytest.raises(IntelXError) as excinfo:
            client.file_preview("st", "bk")
        assert "key-123" not in str(excinfo.value)
        assert "<api key>" in str(excinfo.value)

    def test_key_redacted_from_log(self, client):
        client.session.get.side_effect = requests.exceptions.ConnectionError("url: /file/read?k=key-123")
        with pytest.raises(IntelXError):
            client.download("sys", "bk")
        with open(config_module.LOG_PATH, encoding="utf-8") as fh:
            assert "key-123" not in fh.read()
