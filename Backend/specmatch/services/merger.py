"""
merger.py
~~~~~~~~~
Deterministic merge of per-chunk LLM output into one Result.

    1. requirements  deduplicated by id (text when id is empty), first
                     occurrence in chunk order wins, risk/priority sanitized
    2. testcases     taken from chunk 0 (every chunk saw the same table)
    3. links         concatenated, never deduplicated
    4. metrics       recomputed from requirements + links; the LLM's own
                     numbers are never trusted
    5. status        ok / irrelevant_docs / mismatched_tests; anything but
                     "ok" replaces the link-derived metrics with plain counts
"""
from __future__ import annotations

import logging
from typing import Sequence

from specmatch.services.models import (
    LEVELS,
    AnalysisResult,
    AnalysisStatus,
    ChunkAnalysis,
    CoverageMetrics,
    Link,
    Recommendation,
    Requirement,
    coerce_choice,
)

logger = logging.getLogger(__name__)

# Credit given to a partially covered requirement in coveragePercentage
PARTIAL_COVERAGE_WEIGHT: float = 0.5


def sanitize_requirement(req: Requirement) -> Requirement:
    """Force risk and priority onto high/medium/low, defaulting to medium."""
    return req.model_copy(update={
        "risk": coerce_choice(req.risk, LEVELS, "medium"),
        "priority": coerce_choice(req.priority, LEVELS, "medium"),
    })


def dedupe_requirements(chunks: Sequence[ChunkAnalysis]) -> list[Requirement]:
    unique: dict[str, Requirement] = {}
    for chunk in chunks:
        for req in chunk.requirements:
            key = req.dedup_key
            if key not in unique:
                unique[key] = sanitize_requirement(req)
    return list(unique.values())


def concat_links(chunks: Sequence[ChunkAnalysis]) -> list[Link]:
    links: list[Link] = []
    for chunk in chunks:
        for link in chunk.links:
            if not link.id:
                link = link.model_copy(update={"id": f"link-{len(links) + 1}"})
            links.append(link)
    return links


def _matched_requirement_ids(links: Sequence[Link]) -> tuple[set[str], set[str]]:
    exact = {link.requirement_id for link in links if link.match_type == "exact"}
    partial = {link.requirement_id for link in links if link.match_type == "partial"}
    return exact, partial


def compute_coverage_metrics(requirements: Sequence[Requirement], links: Sequence[Link]) -> CoverageMetrics:
    """
    Coverage is judged per requirement:

        covered    at least one "exact" link
        partial    at least one "partial" link and no "exact" link
        uncovered  everything else

    so covered + partial + uncovered == total always holds. A requirement
    without an id can't be referenced by a link and is always uncovered.
    """
    exact_ids, partial_ids = _matched_requirement_ids(links)
    matched_ids = exact_ids | partial_ids

    total = len(requirements)
    covered = sum(1 for r in requirements if r.id and r.id in exact_ids)
    partial = sum(1 for r in requirements if r.id and r.id in partial_ids and r.id not in exact_ids)
    uncovered = max(0, total - covered - partial)

    percentage = 0.0
    if total > 0:
        percentage = min(100.0, (covered + partial * PARTIAL_COVERAGE_WEIGHT) / total * 100)

    unmatched = [r for r in requirements if not (r.id and r.id in matched_ids)]

    return CoverageMetrics(
        total_requirements=total,
        covered_requirements=covered,
        partially_covered_requirements=partial,
        uncovered_requirements=uncovered,
        coverage_percentage=percentage,
        high_risk_uncovered=sum(1 for r in unmatched if r.risk == "high"),
        medium_risk_uncovered=sum(1 for r in unmatched if r.risk == "medium"),
        low_risk_uncovered=sum(1 for r in unmatched if r.risk == "low"),
    )


def build_recommendations(requirements: Sequence[Requirement], links: Sequence[Link]) -> list[Recommendation]:
    """One recommendation per requirement that has no exact/partial link."""
    matched_ids = {link.requirement_id for link in links if link.is_match}
    return [
        Recommendation(
            requirement_id=req.id,
            priority=req.priority,
            suggestion=f"Add test cases to cover {req.text}",
            impact=f"Improves coverage of {req.type} requirement with {req.risk} risk",
        )
        for req in requirements
        if not (req.id and req.id in matched_ids)
    ]


def tests_are_malformed(test_rows: Sequence[Sequence[str]]) -> bool:
    """A usable table has a header with at least one column plus one data row."""
    return len(test_rows) < 2 or len(test_rows[0]) == 0


def classify_outcome(
    requirements: Sequence[Requirement],
    links: Sequence[Link],
    test_rows: Sequence[Sequence[str]],
) -> AnalysisStatus:
    if not requirements:
        return "irrelevant_docs"
    has_coverage = any(link.is_match for link in links)
    if not has_coverage or tests_are_malformed(test_rows):
        return "mismatched_tests"
    return "ok"


def unlinked_metrics(requirements: Sequence[Requirement]) -> CoverageMetrics:
    """Metrics for a non-"ok" outcome: links are ignored entirely."""
    total = len(requirements)
    return CoverageMetrics(
        total_requirements=total,
        covered_requirements=0,
        partially_covered_requirements=0,
        uncovered_requirements=total,
        coverage_percentage=0.0,
        high_risk_uncovered=sum(1 for r in requirements if r.risk == "high"),
        medium_risk_uncovered=sum(1 for r in requirements if r.risk == "medium"),
        low_risk_uncovered=sum(1 for r in requirements if r.risk == "low"),
    )


def merge_chunk_results(
    chunks: Sequence[ChunkAnalysis],
    test_rows: Sequence[Sequence[str]],
) -> AnalysisResult:
    """Combine chunk outputs (in chunk-index order) into the final Result."""
    requirements = dedupe_requirements(chunks)
    links = concat_links(chunks)
    testcases = list(chunks[0].testcases) if chunks else []

    status = classify_outcome(requirements, links, test_rows)
    if status == "ok":
        metrics = compute_coverage_metrics(requirements, links)
    else:
        metrics = unlinked_metrics(requirements)

    result = AnalysisResult(
        requirements=requirements,
        testcases=testcases,
        links=links,
        coverage_metrics=metrics,
        recommendations=build_recommendations(requirements, links),
        status=status,
    )
    logger.info(
        "Merged %d chunk(s): %d requirements, %d testcases, %d links, status=%s, coverage=%.1f%%",
        len(chunks), len(requirements), len(testcases), len(links),
        status, metrics.coverage_percentage,
    )
    return result
