"""
Unit tests for HTTP response building.
"""

import json

import pytest

from crxserver.http.response import (
    HTTPResponse,
    ResponseBuilder,
    empty,
    error,
    format_http_date,
    internal_error,
    method_not_allowed,
    not_modified,
    ok,
)
from crxserver.http.status_codes import HTTPStatus, get_status_phrase


class TestHTTPResponse:
    """Tests for HTTPResponse class."""

    def test_status_line(self):
        """Test status line generation."""
        response = HTTPResponse(status=HTTPStatus.OK)
        assert response.status_line == "HTTP/1.1 200 OK"

        response = HTTPResponse(status=HTTPStatus.NOT_FOUND)
        assert response.status_line == "HTTP/1.1 404 Not Found"

    def test_to_bytes_includes_headers(self):
        """Test that to_bytes includes all headers."""
        response = HTTPResponse(
            status=HTTPStatus.OK,
            headers={"X-Custom": "value"},
            body=b"test",
        )

        result = response.to_bytes()

        assert b"HTTP/1.1 200 OK\r\n" in result
        assert b"X-Custom: value\r\n" in result
        assert b"Content-Length: 4\r\n" in result
        assert b"Server: CrxServer/1.0\r\n" in result
        assert b"Date: " in result
        assert result.endswith(b"\r\n\r\ntest")

    def test_to_bytes_sets_content_length(self):
        """Test that Content-Length is auto-set."""
        response = HTTPResponse(body=b"hello world")
        result = response.to_bytes()

        assert b"Content-Length: 11\r\n" in result

    def test_empty_body_has_zero_length(self):
        """Test the "no update" response on the wire."""
        result = empty().to_bytes()

        assert result.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"Content-Length: 0\r\n" in result
        assert result.endswith(b"\r\n\r\n")

    def test_server_name(self):
        """Test overriding the Server header value."""
        result = HTTPResponse().to_bytes(server_name="Test/2")
        assert b"Server: Test/2\r\n" in result

    def test_not_modified_has_no_body_or_length(self):
        """Test that 304 omits Content-Length and body."""
        response = HTTPResponse(
            status=HTTPStatus.NOT_MODIFIED,
            headers={"Content-Length": "100"},
            body=b"ignored",
        )
        result = response.to_bytes()

        assert b"Content-Length" not in result
        assert result.endswith(b"\r\n\r\n")

    def test_streamed_body(self):
        """Test a response whose body comes from an iterable."""
        response = HTTPResponse(
            headers={"Content-Length": "6"},
            stream=iter([b"abc", b"def"]),
        )

        assert response.is_streaming
        chunks = list(response.iter_bytes())
        assert chunks[0].endswith(b"\r\n\r\n")
        assert chunks[1:] == [b"abc", b"def"]

    def test_stream_requires_content_length(self):
        """Test that a stream without a length cannot be sent."""
        response = HTTPResponse(stream=iter([b"x"]))

        with pytest.raises(ValueError):
            response.head_bytes()

    def test_close_closes_stream(self):
        """Test that close() releases the stream."""
        class Closable:
            closed = False

            def __iter__(self):
                return iter([])

            def close(self):
                self.closed = True

        stream = Closable()
        HTTPResponse(stream=stream, headers={"Content-Length": "0"}).close()

        assert stream.closed

    def test_close_without_stream(self):
        """Test that close() is harmless on buffered responses."""
        HTTPResponse(body=b"x").close()

    def test_set_header_chaining(self):
        """Test method chaining for headers."""
        response = (HTTPResponse()
            .set_header("X-One", "1")
            .set_header("X-Two", "2"))

        assert response.headers["X-One"] == "1"
        assert response.headers["X-Two"] == "2"

    def test_set_body_drops_stream(self):
        """Test replacing a stream with a buffered body."""
        response = HTTPResponse(stream=iter([b"x"])).set_body("text")

        assert not response.is_streaming
        assert response.body == b"text"


class TestResponseBuilder:
    """Tests for ResponseBuilder class."""

    def test_status(self):
        """Test setting status code."""
        response = ResponseBuilder().status(HTTPStatus.NOT_FOUND).build()
        assert response.status == HTTPStatus.NOT_FOUND

    def test_json_body(self):
        """Test JSON body encoding."""
        data = {"name": "John", "age": 30}
        response = ResponseBuilder().json(data).build()

        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert json.loads(response.body) == data

    def test_xml_body(self):
        """Test XML body."""
        document = "<?xml version='1.0'?><a/>"
        response = ResponseBuilder().xml(document).build()

        assert response.headers["Content-Type"] == "text/xml; charset=utf-8"
        assert response.body == document.encode()

    def test_text_body(self):
        """Test plain text body."""
        text = "Hello, World!"
        response = ResponseBuilder().text(text).build()

        assert response.headers["Content-Type"] == "text/plain; charset=utf-8"
        assert response.body == text.encode()

    def test_stream(self):
        """Test a streamed body with its length."""
        response = ResponseBuilder().stream(iter([b"ab"]), 2).build()

        assert response.is_streaming
        assert response.headers["Content-Length"] == "2"

    def test_no_cache(self):
        """Test cache header setting."""
        response = ResponseBuilder().no_cache().build()
        assert response.headers["Cache-Control"] == "no-cache"

    def test_close_connection(self):
        """Test connection close header."""
        response = ResponseBuilder().close_connection().build()
        assert response.headers["Connection"] == "close"

    def test_method_chaining(self):
        """Test fluent API chaining."""
        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .header("X-Custom", "value")
            .headers({"X-Other": "other"})
            .json({"key": "value"})
            .build())

        assert response.status == HTTPStatus.OK
        assert response.headers["X-Custom"] == "value"
        assert response.headers["X-Other"] == "other"
        assert b'"key"' in response.body


class TestConvenienceFunctions:
    """Tests for convenience response functions."""

    def test_ok(self):
        """Test ok() function."""
        response = ok("Hello")
        assert response.status == HTTPStatus.OK
        assert response.body == b"Hello"

        response = ok(b"<x/>", content_type="text/xml")
        assert response.headers["Content-Type"] == "text/xml"

    def test_empty(self):
        """Test empty() function."""
        assert empty().body == b""
        assert empty(HTTPStatus.NOT_FOUND).status == HTTPStatus.NOT_FOUND

    def test_not_modified(self):
        """Test not_modified() function."""
        response = not_modified('"1-2"')
        assert response.status == HTTPStatus.NOT_MODIFIED
        assert response.headers["ETag"] == '"1-2"'

    def test_error(self):
        """Test error() function."""
        response = error(HTTPStatus.BAD_REQUEST, "Invalid input")
        assert response.status == HTTPStatus.BAD_REQUEST
        assert json.loads(response.body) == {"error": "Invalid input"}

        response = error(HTTPStatus.NOT_FOUND)
        assert json.loads(response.body) == {"error": "Not Found"}

    def test_method_not_allowed(self):
        """Test method_not_allowed() function."""
        response = method_not_allowed(["GET"])
        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "GET"

    def test_internal_error(self):
        """Test internal_error() function."""
        response = internal_error()
        assert response.status == HTTPStatus.INTERNAL_SERVER_ERROR


class TestHTTPStatus:
    """Tests for HTTPStatus enum."""

    def test_status_phrases(self):
        """Test that all statuses have phrases."""
        assert HTTPStatus.OK.phrase == "OK"
        assert HTTPStatus.NOT_FOUND.phrase == "Not Found"
        assert HTTPStatus.SERVICE_UNAVAILABLE.phrase == "Service Unavailable"
        assert HTTPStatus.INTERNAL_SERVER_ERROR.phrase == "Internal Server Error"

    def test_status_categories(self):
        """Test status category helpers."""
        assert HTTPStatus.OK.is_success
        assert HTTPStatus.NOT_FOUND.is_client_error
        assert HTTPStatus.INTERNAL_SERVER_ERROR.is_server_error
        assert not HTTPStatus.OK.is_client_error

    def test_allows_body(self):
        """Test which statuses may carry a body."""
        assert HTTPStatus.OK.allows_body
        assert not HTTPStatus.NO_CONTENT.allows_body
        assert not HTTPStatus.NOT_MODIFIED.allows_body

    def test_get_status_phrase(self):
        """Test phrase lookup by integer."""
        assert get_status_phrase(403) == "Forbidden"
        assert get_status_phrase(418) == "Unknown"


class TestFormatHTTPDate:
    """Tests for HTTP date formatting."""

    def test_format(self):
        """Test HTTP date format."""
        from datetime import datetime, timezone

        dt = datetime(2026, 1, 15, 12, 30, 45, tzinfo=timezone.utc)

        assert format_http_date(dt) == "Thu, 15 Jan 2026 12:30:45 GMT"
