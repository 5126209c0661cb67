"""Tests for the execution engine and result formatting."""

import shlex
from unittest.mock import MagicMock, patch

import pytest
import requests

from rest_fusion.engine import (
    ExecutionResult,
    RequestExecutionFailed,
    build_curl_command,
    execute_request,
    format_result,
    is_json_content,
    request_data,
    status_line,
)
from rest_fusion.parser import (
    FileBodySource,
    ImportFileNotFound,
    InlineBodySource,
    RequestBlock,
)


def _mock_response(status_code=200, text="", headers=None, reason="OK"):
    resp = MagicMock()
    resp.status_code = status_code
    resp.reason = reason
    resp.text = text
    resp.headers = headers or {}
    return resp


class TestRequestData:
    """Tests for request body preparation."""

    def test_no_body(self):
        block = RequestBlock("GET", "http://x", {}, None)
        assert request_data(block) is None

    def test_inline_body_is_utf8(self):
        block = RequestBlock("POST", "http://x", {}, InlineBodySource("héllo"))
        assert request_data(block) == "héllo".encode("utf-8")

    def test_file_body_is_processed_like_inline(self, tmp_path):
        f = tmp_path / "body.json"
        f.write_text('{"n": "{{NAME}}"}\n# c\n')
        block = RequestBlock("POST", "http://x", {}, FileBodySource(str(f)))
        assert request_data(block, env={"NAME": "john"}) == b'{"n": "john"}'

    def test_raw_file_body_is_sent_untouched(self, tmp_path):
        f = tmp_path / "body.json"
        f.write_bytes(b'{"n": "{{NAME}}"}\n# c\n')
        block = RequestBlock("POST", "http://x", {}, FileBodySource(str(f)))
        data = request_data(block, raw_files=True, env={"NAME": "john"})
        assert data == b'{"n": "{{NAME}}"}\n# c\n'


class TestExecuteRequest:
    """Tests for execute_request."""

    @patch("rest_fusion.engine.requests.request")
    def test_sends_parsed_request(self, mock_request):
        mock_request.return_value = _mock_response(
            201, '{"id": 1}', {"Content-Type": "application/json"}, "Created"
        )
        block = RequestBlock(
            "POST",
            "http://localhost:3000/foo",
            {"content-type": "application/json"},
            InlineBodySource('{"a":1}'),
        )

        result = execute_request(block, timeout=5)

        kwargs = mock_request.call_args.kwargs
        assert kwargs["method"] == "POST"
        assert kwargs["url"] == "http://localhost:3000/foo"
        assert kwargs["headers"] == {"content-type": "application/json"}
        assert kwargs["data"] == b'{"a":1}'
        assert kwargs["timeout"] == 5
        assert kwargs["verify"] is True
        assert kwargs["proxies"] is None
        assert result.status_code == 201
        assert result.reason == "Created"
        assert result.body == '{"id": 1}'
        assert result.headers == {"Content-Type": "application/json"}

    @patch("rest_fusion.engine.requests.request")
    def test_proxy_applies_to_both_schemes(self, mock_request):
        mock_request.return_value = _mock_response()
        block = RequestBlock("GET", "http://x", {}, None)

        execute_request(block, proxy="http://127.0.0.1:8080", verify=False)

        kwargs = mock_request.call_args.kwargs
        assert kwargs["proxies"] == {
            "http": "http://127.0.0.1:8080",
            "https": "http://127.0.0.1:8080",
        }
        assert kwargs["verify"] is False

    @patch("rest_fusion.engine.requests.request")
    def test_transport_error_is_wrapped(self, mock_request):
        mock_request.side_effect = requests.ConnectionError("Connection refused")
        block = RequestBlock("GET", "http://localhost:1", {}, None)

        with pytest.raises(RequestExecutionFailed, match="Connection refused") as info:
            execute_request(block)
        assert isinstance(info.value.__cause__, requests.ConnectionError)

    @patch("rest_fusion.engine.requests.request")
    def test_missing_import_file_is_not_sent(self, mock_request, tmp_path):
        block = RequestBlock(
            "POST", "http://x", {}, FileBodySource(str(tmp_path / "nope.json"))
        )
        with pytest.raises(ImportFileNotFound):
            execute_request(block)
        mock_request.assert_not_called()

    @patch("rest_fusion.engine.requests.request")
    def test_non_latin1_header_error_is_wrapped(self, mock_request):
        mock_request.side_effect = UnicodeEncodeError(
            "latin-1", "€", 0, 1, "ordinal not in range(256)"
        )
        block = RequestBlock("GET", "http://x", {"x-note": "€"}, None)

        with pytest.raises(RequestExecutionFailed, match="latin-1") as info:
            execute_request(block)
        assert isinstance(info.value.__cause__, UnicodeEncodeError)


class TestIsJsonContent:
    def test_json_content_type(self):
        assert is_json_content({"Content-Type": "application/json; charset=utf-8"})

    def test_vendor_json_content_type(self):
        assert is_json_content({"content-type": "application/problem+json"})

    def test_other_content_type(self):
        assert not is_json_content({"Content-Type": "text/html"})

    def test_missing_content_type(self):
        assert not is_json_content({})


class TestStatusLine:
    def test_uses_server_reason(self):
        assert status_line(200, "Fine") == "HTTP/1.1 200 Fine"

    def test_falls_back_to_standard_phrase(self):
        assert status_line(404) == "HTTP/1.1 404 Not Found"

    def test_unknown_code(self):
        assert status_line(799) == "HTTP/1.1 799"


class TestFormatResult:
    """Tests for the result document."""

    def test_json_body_is_pretty_printed(self):
        result = ExecutionResult(
            method="GET",
            url="http://x/users",
            status_code=200,
            reason="OK",
            headers={"Content-Type": "application/json"},
            body='{"id":1}',
        )
        assert format_result(result) == [
            "GET http://x/users",
            "HTTP/1.1 200 OK",
            "Content-Type: application/json",
            "",
            "{",
            '  "id": 1',
            "}",
        ]

    def test_invalid_json_body_is_left_raw(self):
        result = ExecutionResult(
            "GET", "http://x", 200, "OK",
            {"Content-Type": "application/json"}, "not json",
        )
        assert format_result(result)[-1] == "not json"

    def test_text_body_is_left_raw(self):
        result = ExecutionResult(
            "GET", "http://x", 500, "", {"Content-Type": "text/plain"},
            "line one\nline two",
        )
        lines = format_result(result)
        assert lines[1] == "HTTP/1.1 500 Internal Server Error"
        assert lines[-2:] == ["line one", "line two"]


class TestBuildCurlCommand:
    """Tests for the dry-run curl preview."""

    def test_inline_body(self):
        block = RequestBlock(
            "POST",
            "http://x/foo",
            {"content-type": "application/json"},
            InlineBodySource('{"a": 1}'),
        )
        args = shlex.split(build_curl_command(block))
        assert args == [
            "curl", "-X", "POST", "http://x/foo",
            "-H", "content-type: application/json",
            "--data-raw", '{"a": 1}',
        ]

    def test_raw_file_body(self):
        block = RequestBlock("PUT", "http://x", {}, FileBodySource("/tmp/b.json"))
        args = shlex.split(build_curl_command(block, raw_files=True))
        assert args[-2:] == ["--data-binary", "@/tmp/b.json"]

    def test_processed_file_body(self, tmp_path):
        f = tmp_path / "body.json"
        f.write_text('// payload\n{"a": 1}\n')
        block = RequestBlock("PUT", "http://x", {}, FileBodySource(str(f)))
        args = shlex.split(build_curl_command(block))
        assert args[-2:] == ["--data-raw", '{"a": 1}']

    def test_no_body(self):
        block = RequestBlock("GET", "http://x", {}, None)
        assert build_curl_command(block) == "curl -X GET http://x"
