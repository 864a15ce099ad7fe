"""
analyzer.py
~~~~~~~~~~~
Chunked LLM analysis of a requirements document against a test-case table.

The base document is cut into fixed-size groups of non-empty lines. Every
chunk goes to the LLM together with the whole test table, all chunks at
once, and the parsed responses are merged in chunk-index order.
"""
import asyncio
import logging
from typing import Optional, Sequence

from pydantic import ValidationError

from specmatch.core.config import settings
from specmatch.core.errors import UpstreamFormatError
from specmatch.services.llm_client import LLMClient, render_prompt
from specmatch.services.llm_json import extract_json_object
from specmatch.services.merger import merge_chunk_results
from specmatch.services.models import AnalysisResult, ChunkAnalysis

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("requirements", "testcases", "links")


def split_into_chunks(text: str, size: Optional[int] = None) -> list[list[str]]:
    """Group the non-empty lines of *text* into lists of at most *size* lines."""
    size = size or settings.ANALYSIS_CHUNK_SIZE
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    return [lines[i:i + size] for i in range(0, len(lines), size)]


def parse_chunk_response(raw: str, chunk_index: int) -> ChunkAnalysis:
    """
    Turn one raw LLM answer into a ChunkAnalysis.

    Raises:
        UpstreamFormatError: No JSON object, a missing top-level array, or a
            value that fails schema validation.
    """
    data = extract_json_object(raw)

    missing = [key for key in REQUIRED_KEYS if not isinstance(data.get(key), list)]
    if missing:
        raise UpstreamFormatError(
            f"Chunk {chunk_index + 1}: response is missing required array(s): {', '.join(missing)}"
        )

    try:
        return ChunkAnalysis.model_validate(data)
    except ValidationError as e:
        raise UpstreamFormatError(
            f"Chunk {chunk_index + 1}: response does not match the schema ({e.error_count()} error(s))"
        ) from e


class ChunkedAnalyzer:
    """Analyzer + merger pair: ``analyze(base, updated, tests) -> AnalysisResult``."""

    def __init__(self, llm: LLMClient, chunk_size: Optional[int] = None):
        self.llm = llm
        self.chunk_size = chunk_size or settings.ANALYSIS_CHUNK_SIZE

    async def _analyze_chunk(
        self,
        index: int,
        lines: list[str],
        updated_text: Optional[str],
        test_rows: Sequence[Sequence[str]],
        system_prompt: str,
    ) -> ChunkAnalysis:
        prompt = render_prompt(
            "analysis_user.txt",
            chunk_number=index + 1,
            requirements=lines,
            updated_text=updated_text,
            tests=test_rows,
        )
        raw = await self.llm.complete(prompt, system_prompt, purpose=f"analysis:chunk-{index + 1}")
        return parse_chunk_response(raw, index)

    async def analyze(
        self,
        base_text: str,
        updated_text: Optional[str],
        test_rows: Sequence[Sequence[str]],
    ) -> AnalysisResult:
        chunks = split_into_chunks(base_text, self.chunk_size)
        logger.info(f"Analyzing {len(chunks)} chunk(s) against {len(test_rows)} test row(s)")

        system_prompt = render_prompt("analysis_system.txt")
        # gather keeps results in submission order even though calls complete out of order
        partials = await asyncio.gather(*(
            self._analyze_chunk(i, lines, updated_text, test_rows, system_prompt)
            for i, lines in enumerate(chunks)
        ))
        return merge_chunk_results(partials, test_rows)
