from __future__ import annotations

import pytest

from tourgen.aggregator import merge
from tourgen.scheduler import ChunkResult
from tourgen.steps import RawStep


def _result(index: int, count: int) -> ChunkResult:
    return ChunkResult.success(
        index,
        [RawStep(title=f"c{index}-s{n}", file=f"f{index}.ts", description="d") for n in range(count)],
    )


def _titles(steps: list[RawStep]) -> list[str]:
    return [step.title for step in steps]


def test_merge_keeps_prefix_when_over_target() -> None:
    results = [_result(index, 5) for index in range(5)]

    merged = merge(results, 15)

    all_titles = [f"c{index}-s{n}" for index in range(5) for n in range(5)]
    assert _titles(merged) == all_titles[:15]


def test_merge_skips_failed_chunks() -> None:
    results = [_result(0, 2), ChunkResult.failure(1, "boom"), _result(2, 1)]

    assert _titles(merge(results, 15)) == ["c0-s0", "c0-s1", "c2-s0"]


def test_merge_under_target_returns_everything() -> None:
    results = [_result(0, 3), _result(1, 3)]

    assert len(merge(results, 15)) == 6


def test_first_per_chunk_policy_reserves_each_chunk_opening() -> None:
    results = [_result(index, 10) for index in range(3)]

    merged = merge(results, 5, policy="first-per-chunk")

    assert _titles(merged) == ["c0-s0", "c0-s1", "c0-s2", "c1-s0", "c2-s0"]


def test_first_per_chunk_policy_with_more_chunks_than_budget() -> None:
    results = [_result(index, 2) for index in range(6)]

    merged = merge(results, 3, policy="first-per-chunk")

    assert _titles(merged) == ["c0-s0", "c1-s0", "c2-s0"]


def test_merge_rejects_unknown_policy() -> None:
    with pytest.raises(ValueError):
        merge([_result(0, 1)], 5, policy="best")
