import pytest

from frameperfect.utils.image import decode_data_url, encode_data_url, split_data_url
from frameperfect.utils.llm_parse import (
    extract_json_array,
    extract_json_object,
    parse_string_list,
    strip_code_fences,
)


class TestDataUrls:
    def test_encode_then_split(self):
        url = encode_data_url(b"\xff\xd8jpeg", "image/jpeg")
        assert url.startswith("data:image/jpeg;base64,")
        assert split_data_url(url)[0] == "image/jpeg"
        assert decode_data_url(url) == b"\xff\xd8jpeg"

    def test_bare_base64_is_jpeg(self):
        assert split_data_url("QUJD") == ("image/jpeg", "QUJD")
        assert decode_data_url("QUJD") == b"ABC"

    def test_invalid_payload(self):
        with pytest.raises(ValueError):
            decode_data_url("data:image/png;base64,@@not-base64@@")


class TestJsonExtraction:
    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_object_inside_prose(self):
        assert extract_json_object('Sure! {"quality": "good"} Hope that helps') == '{"quality": "good"}'

    def test_array_inside_prose(self):
        assert extract_json_array('Here: ["Portrait", "Action"].') == '["Portrait", "Action"]'


class TestParseStringList:
    def test_json_array(self):
        assert parse_string_list('["Portrait", "Landscape"]') == ["Portrait", "Landscape"]

    def test_bulleted_lines(self):
        text = "- Portrait\n- Group Photo\n* Close-up\n1. Action"
        assert parse_string_list(text) == ["Portrait", "Group Photo", "Close-up", "Action"]

    def test_limit_and_dedupe(self):
        labels = ", ".join(f'"L{i % 10}"' for i in range(20))
        assert parse_string_list(f"[{labels}]") == [f"L{i}" for i in range(8)]

    def test_empty(self):
        assert parse_string_list("") == []
