import asyncio
import json

import pytest

from conftest import FakeLLM, analysis_payload
from specmatch.core.errors import UpstreamFormatError
from specmatch.services.analyzer import ChunkedAnalyzer, parse_chunk_response, split_into_chunks

TABLE = [["ID", "Description"], ["TC-1", "validates input"]]


class TestSplitIntoChunks:

    def test_blank_lines_are_dropped(self):
        text = "REQ-1 a\n\n   \nREQ-2 b\r\nREQ-3 c\n"
        assert split_into_chunks(text, 10) == [["REQ-1 a", "REQ-2 b", "REQ-3 c"]]

    def test_fixed_size_groups(self):
        text = "\n".join(f"line {i}" for i in range(25))
        chunks = split_into_chunks(text, 10)
        assert [len(c) for c in chunks] == [10, 10, 5]
        assert chunks[2][0] == "line 20"

    def test_empty_document(self):
        assert split_into_chunks("\n\n", 10) == []


class TestParseChunkResponse:

    def test_defaults_for_missing_and_unknown_values(self):
        raw = json.dumps({
            "requirements": [{"id": "REQ-1", "text": None, "type": "Non-Functional", "status": "weird"}],
            "testcases": [{"id": "TC-1"}],
            "links": [{"requirementId": "REQ-1", "testcaseId": "TC-1", "matchType": "EXACT", "confidence": 1.7}],
        })
        chunk = parse_chunk_response(raw, 0)

        requirement = chunk.requirements[0]
        assert requirement.text == ""
        assert requirement.type == "non-functional"
        assert requirement.status == "new"
        assert requirement.risk == "medium"
        assert chunk.testcases[0].complexity == "moderate"
        assert chunk.links[0].match_type == "exact"
        assert chunk.links[0].confidence == 1.0
        assert chunk.links[0].coverage_areas == []

    @pytest.mark.parametrize("missing", ["requirements", "testcases", "links"])
    def test_missing_top_level_array_is_a_hard_failure(self, missing):
        data = {"requirements": [], "testcases": [], "links": []}
        data[missing] = {"not": "a list"}
        with pytest.raises(UpstreamFormatError, match=missing):
            parse_chunk_response(json.dumps(data), 2)

    def test_non_numeric_confidence_is_rejected(self):
        raw = analysis_payload(links=[{"requirementId": "REQ-1", "confidence": "very high"}])
        with pytest.raises(UpstreamFormatError, match="Chunk 1"):
            parse_chunk_response(raw, 0)

    def test_garbage_is_rejected(self):
        with pytest.raises(UpstreamFormatError):
            parse_chunk_response("Sorry, I can't help with that.", 0)


class TestChunkedAnalyzer:

    def test_one_call_per_chunk_with_full_test_table(self):
        llm = FakeLLM(responder=lambda prompt, purpose: analysis_payload())
        analyzer = ChunkedAnalyzer(llm, chunk_size=2)

        asyncio.run(analyzer.analyze("a\nb\nc\nd\ne", None, TABLE))

        calls = llm.calls_for("analysis")
        assert len(calls) == 3
        for _, prompt in calls:
            assert "TC-1, validates input" in prompt
            assert "Updated specification" not in prompt

    def test_updated_spec_is_sent_as_context(self):
        llm = FakeLLM(responder=lambda prompt, purpose: analysis_payload())
        asyncio.run(ChunkedAnalyzer(llm).analyze("REQ-1 x", "REQ-1 x (now mandatory)", TABLE))

        (_, prompt), = llm.calls_for("analysis")
        assert "REQ-1 x (now mandatory)" in prompt

    def test_chunk_order_survives_out_of_order_completion(self):
        def responder(prompt, purpose):
            text = "from chunk 1" if purpose.endswith("chunk-1") else "from chunk 2"
            return analysis_payload(
                requirements=[{"id": "REQ-1", "text": text}],
                links=[{"requirementId": "REQ-1", "testcaseId": "TC-1", "matchType": "exact", "confidence": 0.9}],
            )

        # chunk 1 finishes last
        llm = FakeLLM(responder=responder, delays={"analysis:chunk-1": 0.05})
        result = asyncio.run(ChunkedAnalyzer(llm, chunk_size=1).analyze("line a\nline b", None, TABLE))

        assert len(result.requirements) == 1
        assert result.requirements[0].text == "from chunk 1"
        assert len(result.links) == 2

    def test_one_bad_chunk_fails_the_analysis(self):
        def responder(prompt, purpose):
            return "not json" if purpose.endswith("chunk-2") else analysis_payload()

        llm = FakeLLM(responder=responder)
        with pytest.raises(UpstreamFormatError):
            asyncio.run(ChunkedAnalyzer(llm, chunk_size=1).analyze("a\nb", None, TABLE))

    def test_empty_document_makes_no_calls(self):
        llm = FakeLLM()
        result = asyncio.run(ChunkedAnalyzer(llm).analyze("   \n", None, TABLE))
        assert llm.calls == []
        assert result.status == "irrelevant_docs"
