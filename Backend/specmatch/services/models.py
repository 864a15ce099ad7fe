"""
models.py
~~~~~~~~~
Result data model shared by the analyzer, the merger, the cache, the job
repository and the search engine.

Every model serializes with camelCase keys (``coverageMetrics``,
``testCaseId`` ...) because that is the shape persisted in the key-value
store and returned to the web client.

The same models are the validation boundary for LLM output: a chunk response
is parsed into ``ChunkAnalysis``. Missing strings become ``""``, missing
numbers become ``0``, unknown enum values fall back to a per-field default.
Anything else (a missing top-level array, a non-numeric confidence, an object
where a list belongs) is a validation error.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

RequirementType = Literal["functional", "non-functional"]
RequirementStatus = Literal["new", "modified", "stable", "deprecated"]
Level = Literal["high", "medium", "low"]
TestCaseType = Literal["positive", "negative", "edge-case", "regression"]
Complexity = Literal["simple", "moderate", "complex"]
MatchType = Literal["exact", "partial", "none"]
AnalysisStatus = Literal["ok", "irrelevant_docs", "mismatched_tests"]

LEVELS: tuple[str, ...] = ("high", "medium", "low")


def coerce_choice(value: Any, allowed: tuple[str, ...], default: str) -> str:
    """Map *value* onto one of *allowed* (case-insensitive), else *default*."""
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in allowed:
            return lowered
    return default


def _blank_if_none(value: Any) -> Any:
    return "" if value is None else value


def _empty_if_none(value: Any) -> Any:
    return [] if value is None else value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the persisted / wire shape."""
        return self.model_dump(by_alias=True, mode="json")


# ─── Job State ───────────────────────────────────────────────────────────────

class Phase(str, Enum):
    EXTRACTING = "extracting"
    PROCESSING = "processing"
    ANALYZING = "analyzing"
    COMPLETE = "complete"
    ERROR = "error"


class JobStatus(CamelModel):
    phase: Phase
    message: str = ""
    progress: int = 0


class JobFiles(CamelModel):
    """Raw uploads, each stored as a base64 string."""
    base: str
    updated: str | None = None
    tests: str


class FileNames(CamelModel):
    base_spec_name: str
    updated_spec_name: str | None = None
    tests_name: str


# ─── Analysis Result ─────────────────────────────────────────────────────────

class Requirement(CamelModel):
    id: str = ""
    text: str = ""
    type: RequirementType = "functional"
    status: RequirementStatus = "new"
    priority: Level = "medium"
    risk: Level = "medium"

    @field_validator("id", "text", mode="before")
    @classmethod
    def blank_strings(cls, v: Any) -> Any:
        return _blank_if_none(v)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> str:
        return coerce_choice(v, ("functional", "non-functional"), "functional")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> str:
        return coerce_choice(v, ("new", "modified", "stable", "deprecated"), "new")

    @field_validator("priority", "risk", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> str:
        return coerce_choice(v, LEVELS, "medium")

    @property
    def dedup_key(self) -> str:
        return self.id or self.text


class TestCase(CamelModel):
    __test__ = False  # not a pytest class

    id: str = ""
    text: str = ""
    type: TestCaseType = "positive"
    complexity: Complexity = "moderate"

    @field_validator("id", "text", mode="before")
    @classmethod
    def blank_strings(cls, v: Any) -> Any:
        return _blank_if_none(v)

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, v: Any) -> str:
        return coerce_choice(v, ("positive", "negative", "edge-case", "regression"), "positive")

    @field_validator("complexity", mode="before")
    @classmethod
    def normalize_complexity(cls, v: Any) -> str:
        return coerce_choice(v, ("simple", "moderate", "complex"), "moderate")


class Link(CamelModel):
    id: str = ""
    requirement_id: str = ""
    testcase_id: str = ""
    match_type: MatchType = "none"
    confidence: float = 0.0
    explanation: str = ""
    coverage_areas: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)

    @field_validator("id", "requirement_id", "testcase_id", "explanation", mode="before")
    @classmethod
    def blank_strings(cls, v: Any) -> Any:
        return _blank_if_none(v)

    @field_validator("coverage_areas", "gaps", mode="before")
    @classmethod
    def empty_lists(cls, v: Any) -> Any:
        return _empty_if_none(v)

    @field_validator("match_type", mode="before")
    @classmethod
    def normalize_match_type(cls, v: Any) -> str:
        return coerce_choice(v, ("exact", "partial", "none"), "none")

    @field_validator("confidence", mode="before")
    @classmethod
    def default_confidence(cls, v: Any) -> Any:
        return 0.0 if v is None or v == "" else v

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return min(1.0, max(0.0, v))

    @property
    def is_match(self) -> bool:
        return self.match_type != "none"


class CoverageMetrics(CamelModel):
    total_requirements: int = 0
    covered_requirements: int = 0
    partially_covered_requirements: int = 0
    uncovered_requirements: int = 0
    coverage_percentage: float = 0.0
    high_risk_uncovered: int = 0
    medium_risk_uncovered: int = 0
    low_risk_uncovered: int = 0


class Recommendation(CamelModel):
    requirement_id: str
    priority: Level
    suggestion: str
    impact: str


class ChunkAnalysis(CamelModel):
    """One chunk's LLM output. All three arrays are mandatory."""
    requirements: list[Requirement]
    testcases: list[TestCase]
    links: list[Link]


class AnalysisResult(CamelModel):
    requirements: list[Requirement] = Field(default_factory=list)
    testcases: list[TestCase] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)
    coverage_metrics: CoverageMetrics = Field(default_factory=CoverageMetrics)
    recommendations: list[Recommendation] = Field(default_factory=list)
    status: AnalysisStatus = "ok"


# ─── Search ──────────────────────────────────────────────────────────────────

class SearchableItem(CamelModel):
    id: str
    requirement_id: str = ""
    requirement_text: str = ""
    requirement_source: str = ""
    test_case_id: str
    test_case_text: str = ""
    test_case_source: str = ""
    confidence: float = 1.0
    explanation: str = ""
    coverage_areas: list[str] = Field(default_factory=list)
    gaps: list[str] = Field(default_factory=list)
    fields: dict[str, str] = Field(default_factory=dict)
