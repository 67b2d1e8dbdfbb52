# tests/test_json_parser.py
"""Unit tests for the parseData payload helpers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from app.exceptions import PayloadParseError
from app.utils.json_parser import parse_payload, safe_parse_json


class TestSafeParseJson:
    def test_object(self):
        assert safe_parse_json('{"a": 1}') == {"a": 1}

    def test_invalid_and_non_object(self):
        assert safe_parse_json("{not json") is None
        assert safe_parse_json("[1, 2]") is None
        assert safe_parse_json(None) is None


class TestParsePayload:
    def test_empty_payload(self):
        assert parse_payload(None) == {}
        assert parse_payload("   ") == {}

    def test_values_become_strings(self):
        data = parse_payload('{"speedAlertValue": 80, "ratio": 1.5, "on": true, "name": "x", "gone": null}')
        assert data == {"speedAlertValue": "80", "ratio": "1.5", "on": "true", "name": "x", "gone": None}

    def test_geo_json_string_is_kept_verbatim(self):
        geo = '{\\"type\\":\\"Polygon\\"}'
        data = parse_payload('{"geoFenceGeoJSON": "' + geo + '"}')
        assert data["geoFenceGeoJSON"] == '{"type":"Polygon"}'

    def test_not_an_object_raises(self):
        with pytest.raises(PayloadParseError) as exc:
            parse_payload("[1, 2]", "Within")
        assert exc.value.alert_type == "Within"

    def test_malformed_raises(self):
        with pytest.raises(PayloadParseError):
            parse_payload("{oops")

    def test_nested_value_raises(self):
        with pytest.raises(PayloadParseError) as exc:
            parse_payload('{"geoFenceGeoJSON": {"type": "Polygon"}}')
        assert "nested dict" in str(exc.value)
