"""Tests for request/response body decoding."""

from __future__ import annotations

from apitrace.interception.codec import (
    DecodedBody,
    decode_request_body,
    decode_response_body,
    parse_sse_events,
)


class TestDecodeRequestBody:
    def test_json_bytes(self):
        assert decode_request_body(b'{"model": "claude", "max_tokens": 10}') == {
            "model": "claude",
            "max_tokens": 10,
        }

    def test_form_encoded_last_value_wins(self):
        body = decode_request_body(b"a=1&b=2&a=3", "application/x-www-form-urlencoded")
        assert body == {"a": "3", "b": "2"}

    def test_mapping_becomes_dict(self):
        assert decode_request_body({"q": "x"}) == {"q": "x"}

    def test_plain_text_kept(self):
        assert decode_request_body(b"hello there", "text/plain") == "hello there"

    def test_empty_and_none(self):
        assert decode_request_body(None) is None
        assert decode_request_body(b"") is None

    def test_invalid_utf8_replaced(self):
        assert decode_request_body(b"\xff\xfeok") == "\ufffd\ufffdok"


class TestDecodeResponseBody:
    def test_json_parsed(self):
        decoded = decode_response_body(b'{"id": "msg_1"}', "application/json")
        assert decoded == DecodedBody(body={"id": "msg_1"}, body_raw=None)

    def test_json_with_charset_parsed(self):
        decoded = decode_response_body(b"[1, 2]", "application/json; charset=utf-8")
        assert decoded.body == [1, 2]

    def test_malformed_json_falls_back_to_raw(self):
        decoded = decode_response_body(b"{not json", "application/json")
        assert decoded.body is None
        assert decoded.body_raw == "{not json"

    def test_event_stream_never_parsed(self):
        raw = b'event: ping\ndata: {"type": "ping"}\n\n'
        decoded = decode_response_body(raw, "text/event-stream")
        assert decoded.body is None
        assert decoded.body_raw == raw.decode()

    def test_unknown_type_kept_as_text(self):
        decoded = decode_response_body(b'{"a": 1}', "")
        assert decoded.body_raw == '{"a": 1}'

    def test_none_body(self):
        assert decode_response_body(None, "application/json") == DecodedBody()


class TestParseSseEvents:
    def test_events_and_json_data(self):
        raw = (
            "event: message_start\n"
            'data: {"type": "message_start"}\n'
            "\n"
            "event: content_block_delta\n"
            'data: {"delta": {"text": "Hi"}}\n'
            "\n"
        )
        events = parse_sse_events(raw)
        assert [e["event"] for e in events] == ["message_start", "content_block_delta"]
        assert events[1]["data"] == {"delta": {"text": "Hi"}}

    def test_crlf_and_non_json_data(self):
        events = parse_sse_events("data: [DONE]\r\n\r\n")
        assert events == [{"event": "", "data": "[DONE]"}]

    def test_multiline_data_joined(self):
        events = parse_sse_events("data: line1\ndata: line2\n\n")
        assert events[0]["data"] == "line1\nline2"

    def test_empty(self):
        assert parse_sse_events("") == []
