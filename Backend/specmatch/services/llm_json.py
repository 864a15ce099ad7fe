"""
llm_json.py
~~~~~~~~~~~
Pull the first well-formed JSON object out of free-form LLM text.

Models wrap their answer in code fences, prose, or both. A naive
``text[text.find("{"):text.rfind("}") + 1]`` breaks as soon as a string
value contains a brace, so the scanner tracks string and escape state while
matching braces, and moves on to the next ``{`` when a candidate does not
parse.
"""
import json
from typing import Any, Optional

from specmatch.core.errors import UpstreamFormatError


def _matching_brace(text: str, start: int) -> Optional[int]:
    """Index of the ``}`` closing the object opened at *start*, or None."""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def extract_json_object(raw: str) -> dict[str, Any]:
    """
    Return the first ``{...}`` in *raw* that parses as a JSON object.

    Raises:
        UpstreamFormatError: If no candidate parses.
    """
    if not raw:
        raise UpstreamFormatError("LLM returned an empty response")

    start = raw.find("{")
    while start != -1:
        end = _matching_brace(raw, start)
        value = None
        if end is not None:
            try:
                value = json.loads(raw[start:end + 1])
            except json.JSONDecodeError:
                value = None
        if isinstance(value, dict):
            return value
        start = raw.find("{", start + 1)

    preview = raw[:120].replace("\n", " ")
    raise UpstreamFormatError(f"No JSON object found in LLM response: {preview!r}")
