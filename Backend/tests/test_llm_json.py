import pytest

from specmatch.core.errors import UpstreamFormatError
from specmatch.services.llm_json import extract_json_object


class TestExtractJsonObject:

    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == {"a": 1}

    def test_code_fence_and_prose(self):
        raw = 'Sure! Here you go:\n```json\n{"requirements": [], "links": []}\n```\nLet me know.'
        assert extract_json_object(raw) == {"requirements": [], "links": []}

    def test_braces_inside_string_values(self):
        raw = 'prefix {"text": "use {placeholder} and }", "n": 2} suffix }'
        assert extract_json_object(raw) == {"text": "use {placeholder} and }", "n": 2}

    def test_escaped_quotes_inside_strings(self):
        raw = '{"text": "say \\"hi\\" {now}", "ok": true}'
        assert extract_json_object(raw) == {"text": 'say "hi" {now}', "ok": True}

    def test_nested_objects_return_outermost(self):
        raw = 'x {"outer": {"inner": {"deep": 1}}} y'
        assert extract_json_object(raw) == {"outer": {"inner": {"deep": 1}}}

    def test_skips_unparseable_candidate(self):
        raw = 'Note {not json} then {"a": 1}'
        assert extract_json_object(raw) == {"a": 1}

    def test_unbalanced_outer_falls_back_to_inner(self):
        raw = '{"broken": {"b": 1}'
        assert extract_json_object(raw) == {"b": 1}

    def test_no_object_raises(self):
        with pytest.raises(UpstreamFormatError):
            extract_json_object("I could not analyze these documents.")

    def test_top_level_array_is_not_an_object(self):
        with pytest.raises(UpstreamFormatError):
            extract_json_object("[1, 2, 3]")

    def test_empty_response_raises(self):
        with pytest.raises(UpstreamFormatError, match="empty"):
            extract_json_object("")
