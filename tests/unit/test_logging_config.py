"""Unit tests for request-id stamping and JSON log output."""

import json
import logging

from thesis_tracker.logging_config import JsonFormatter, RequestIdFilter, request_id_var


def make_record(**extra):
    record = logging.makeLogRecord({"name": "thesis_tracker.test", "msg": "Reviewed %s", "args": ("sub-1",)})
    record.__dict__.update(extra)
    return record


class TestRequestIdFilter:
    def test_outside_request_uses_placeholder(self):
        record = make_record()
        assert RequestIdFilter().filter(record) is True
        assert record.request_id == "-"

    def test_inside_request_uses_context_id(self):
        token = request_id_var.set("req-42")
        try:
            record = make_record()
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)
        assert record.request_id == "req-42"


class TestJsonFormatter:
    def test_extra_fields_are_merged(self):
        record = make_record(request_id="req-7", submission_id="sub-1", version=3)
        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "Reviewed sub-1"
        assert payload["logger"] == "thesis_tracker.test"
        assert payload["request_id"] == "req-7"
        assert payload["submission_id"] == "sub-1"
        assert payload["version"] == 3
        assert "lineno" not in payload

    def test_placeholder_request_id_is_omitted(self):
        payload = json.loads(JsonFormatter().format(make_record(request_id="-")))
        assert "request_id" not in payload

    def test_unserializable_values_become_strings(self):
        payload = json.loads(JsonFormatter().format(make_record(path=object())))
        assert payload["path"].startswith("<object object")
